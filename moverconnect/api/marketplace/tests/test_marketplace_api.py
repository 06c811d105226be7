from __future__ import annotations

import importlib

from fastapi import FastAPI
from fastapi.testclient import TestClient

from moverconnect.api.auth import get_current_user
from moverconnect.api.marketplace.errors import ConflictError, NotAuthorizedError, NotFoundError
from moverconnect.api.marketplace.models import BookingRecord, BookingStatus, ReviewRecord
from moverconnect.api.marketplace.router import router as marketplace_router
from moverconnect.api.marketplace.state import BookingStateError


def _make_app(role: str = "mover", uid: str = "m1"):
    app = FastAPI()
    app.include_router(marketplace_router)
    app.dependency_overrides[get_current_user] = lambda: {"uid": uid, "role": role, "email": f"{uid}@example.com"}
    return app


def _booking(status: BookingStatus = BookingStatus.PENDING) -> BookingRecord:
    return BookingRecord(
        booking_id="b1",
        client_id="c1",
        client_email="c1@example.com",
        mover_id="m1",
        mover_name="Swift Movers",
        date="2026-11-02",
        time="09:00",
        status=status,
        created_at=1_700_000_000.0,
    )


def test_accept_booking(monkeypatch):
    r = importlib.import_module("moverconnect.api.marketplace.router")
    seen = {}

    def fake_transition(**kwargs):
        seen.update(kwargs)
        return _booking(kwargs["new_status"])

    monkeypatch.setattr(r.repo, "transition_booking", fake_transition)
    client = TestClient(_make_app())

    res = client.post("/bookings/b1/accept")
    assert res.status_code == 200
    assert res.json()["status"] == "accepted"
    assert seen["new_status"] == BookingStatus.ACCEPTED
    assert seen["user"]["uid"] == "m1"


def test_transition_errors_map_to_http(monkeypatch):
    r = importlib.import_module("moverconnect.api.marketplace.router")
    client = TestClient(_make_app())

    for exc, code in [
        (NotFoundError("Booking not found"), 404),
        (NotAuthorizedError("Only the booked mover can update this booking"), 403),
        (BookingStateError("Invalid booking transition: accepted -> declined"), 409),
    ]:
        def boom(**kwargs):
            raise exc

        monkeypatch.setattr(r.repo, "transition_booking", boom)
        res = client.post("/bookings/b1/decline")
        assert res.status_code == code
        assert res.json()["detail"] == str(exc)


def test_clients_cannot_accept_bookings(monkeypatch):
    client = TestClient(_make_app(role="client", uid="c1"))
    res = client.post("/bookings/b1/accept")
    assert res.status_code == 403


def test_movers_cannot_create_bookings():
    client = TestClient(_make_app(role="mover"))
    res = client.post("/bookings", json={"mover_id": "m1", "date": "2026-11-02", "time": "09:00"})
    assert res.status_code == 403


def test_quote_gate_maps_to_403(monkeypatch):
    r = importlib.import_module("moverconnect.api.marketplace.router")

    def gated(**kwargs):
        raise NotAuthorizedError(
            "Your account is pending verification. Please wait for admin approval before sending quotes."
        )

    monkeypatch.setattr(r.repo, "create_quote", gated)
    client = TestClient(_make_app())
    res = client.post("/quotes", json={"client_id": "c1", "request_id": "r1", "amount": 100})
    assert res.status_code == 403
    assert "pending verification" in res.json()["detail"]


def test_quote_amount_must_be_positive():
    client = TestClient(_make_app())
    res = client.post("/quotes", json={"client_id": "c1", "request_id": "r1", "amount": 0})
    assert res.status_code == 422
    # Rounds to zero cents.
    res = client.post("/quotes", json={"client_id": "c1", "request_id": "r1", "amount": 0.001})
    assert res.status_code == 422


def test_review_conflict_maps_to_409(monkeypatch):
    r = importlib.import_module("moverconnect.api.marketplace.router")

    def not_reviewable(**kwargs):
        raise ConflictError("This booking cannot be reviewed")

    monkeypatch.setattr(r.repo, "create_review", not_reviewable)
    client = TestClient(_make_app(role="client", uid="c1"))
    res = client.post("/bookings/b1/review", json={"rating": 5, "comment": "Great"})
    assert res.status_code == 409


def test_blank_message_rejected():
    client = TestClient(_make_app(role="client", uid="c1"))
    res = client.post("/bookings/b1/messages", json={"message": "   "})
    assert res.status_code == 422


def test_mover_reviews_include_average(monkeypatch):
    r = importlib.import_module("moverconnect.api.marketplace.router")
    reviews = [
        ReviewRecord(review_id=f"r{i}", booking_id=f"b{i}", mover_id="m1", client_id="c1", rating=rating, comment="ok", created_at=0.0)
        for i, rating in enumerate([5, 5, 4])
    ]
    monkeypatch.setattr(r.repo, "list_reviews_for_mover", lambda **kwargs: reviews)
    client = TestClient(_make_app(role="client", uid="c1"))

    res = client.get("/movers/m1/reviews")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 3
    assert body["average_rating"] == 4.7
