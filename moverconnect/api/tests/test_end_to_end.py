from __future__ import annotations


def _register_and_verify(api, fake_auth, path, payload):
    res = api.post(path, json=payload)
    assert res.status_code == 201, res.text
    fake_auth.verify_email(payload["email"])
    uid = res.json()["user_id"]
    return uid, fake_auth.headers(uid)


def test_client_mover_admin_flow(api, fake_db, fake_auth):
    client_id, client = _register_and_verify(
        api, fake_auth, "/auth/register/client",
        {"name": "Carol", "number": "555-0100", "email": "carol@example.com", "password": "secret123"},
    )
    res = api.post(
        "/requests",
        json={"name": "Carol", "address": "1 Main St", "contact": "555-0100", "description": "2BR apartment", "date": "Nov 2, 2026"},
        headers=client,
    )
    assert res.status_code == 201
    request_id = res.json()["request_id"]
    assert res.json()["date"] == "2026-11-02"

    mover_id, mover = _register_and_verify(
        api, fake_auth, "/auth/register/mover",
        {
            "company_name": "Swift Movers",
            "service_area": "Springfield",
            "contact_number": "555-0199",
            "email": "mike@example.com",
            "password": "secret123",
        },
    )
    assert fake_db.docs[f"users/{mover_id}/movers/{mover_id}"]["verification_status"] == "pending"

    feed = api.get("/requests", headers=mover).json()["requests"]
    assert [(r["request_id"], r["client_id"]) for r in feed] == [(request_id, client_id)]

    quote = {"client_id": client_id, "request_id": request_id, "amount": 450, "notes": "Two movers, one truck"}
    res = api.post("/quotes", json=quote, headers=mover)
    assert res.status_code == 403
    assert fake_db.under("quotes") == {}

    fake_auth.add_user("a1", "admin@admin.com", verified=False)
    res = api.post(f"/admin/movers/{mover_id}/verification", json={"status": "approved"}, headers=fake_auth.headers("a1"))
    assert res.status_code == 200

    res = api.post("/quotes", json=quote, headers=mover)
    assert res.status_code == 201
    body = res.json()
    assert (body["request_id"], body["mover_id"], body["client_id"]) == (request_id, mover_id, client_id)
    assert [q["quote_id"] for q in api.get("/quotes", headers=client).json()["quotes"]] == [body["quote_id"]]

    res = api.post("/bookings", json={"mover_id": mover_id, "date": "2026-11-02", "time": "09:00"}, headers=client)
    assert res.status_code == 201
    booking_id = res.json()["booking_id"]
    assert res.json()["status"] == "pending"

    api.post(f"/bookings/{booking_id}/messages", json={"message": "Is 9am ok?"}, headers=client)
    api.post(f"/bookings/{booking_id}/messages", json={"message": "Yes, see you then."}, headers=mover)
    thread = api.get(f"/bookings/{booking_id}/messages", headers=client).json()["messages"]
    assert [(m["sender"], m["message"]) for m in thread] == [("client", "Is 9am ok?"), ("mover", "Yes, see you then.")]

    res = api.post(f"/bookings/{booking_id}/accept", headers=mover)
    assert res.status_code == 200
    assert res.json()["status"] == "accepted"
    assert api.post(f"/bookings/{booking_id}/decline", headers=mover).status_code == 409

    bookings = api.get("/bookings", headers=client).json()["bookings"]
    assert bookings[0]["reviewable"] is True

    res = api.post(f"/bookings/{booking_id}/review", json={"rating": 5, "comment": "Fast and careful"}, headers=client)
    assert res.status_code == 201

    bookings = api.get("/bookings", headers=client).json()["bookings"]
    assert bookings[0]["reviewable"] is False
    assert api.post(f"/bookings/{booking_id}/review", json={"rating": 4, "comment": "again"}, headers=client).status_code == 409

    reviews = api.get(f"/movers/{mover_id}/reviews", headers=client).json()
    assert reviews["average_rating"] == 5.0
    assert api.get(f"/movers/{mover_id}", headers=client).json()["average_rating"] == 5.0
