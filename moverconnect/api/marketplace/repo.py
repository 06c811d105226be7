from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as gexc

from ..database import db
from .. import directory
from ..models import MoveRequestCreate, MoveRequestRecord, Role
from ..policy import AccessPolicy, get_policy
from ..utils import as_float, email_local_part, owner_uid_from_path, parse_any_date
from .errors import ConflictError, NotAuthorizedError, NotFoundError
from .models import (
    BookingCreateRequest,
    BookingRecord,
    BookingStatus,
    MessageRecord,
    QuoteCreateRequest,
    QuoteRecord,
    QuoteStatus,
    ReviewCreateRequest,
    ReviewRecord,
    SenderRole,
)
from .service import order_messages
from .state import assert_transition, is_reviewable

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def _uid(user: Dict[str, Any]) -> str:
    return str(user.get("uid") or "")


def _role(user: Dict[str, Any]) -> str:
    return str(user.get("role") or "").strip().lower()


# -----------------------------
# Client move requests
# -----------------------------

def _requests_col(client_id: str):
    return db.collection("users").document(client_id).collection("requests")


def _request_from_doc(request_id: str, client_id: str, data: Dict[str, Any]) -> MoveRequestRecord:
    return MoveRequestRecord(
        request_id=request_id,
        client_id=client_id,
        name=data.get("name"),
        address=data.get("address"),
        contact=data.get("contact"),
        description=data.get("description"),
        date=data.get("date"),
        created_at=as_float(data.get("created_at")),
    )


def create_request(*, request: MoveRequestCreate, user: Dict[str, Any]) -> MoveRequestRecord:
    uid = _uid(user)
    if _role(user) != Role.CLIENT.value:
        raise NotAuthorizedError("Only clients can post move requests")

    request_id = str(uuid.uuid4())
    data = {
        "name": request.name.strip(),
        "address": request.address.strip(),
        "contact": request.contact.strip(),
        "description": (request.description or "").strip(),
        "date": request.date,
        "created_at": _now(),
    }
    _requests_col(uid).document(request_id).set(data)
    return _request_from_doc(request_id, uid, data)


def list_requests_for_client(*, client_id: str) -> List[MoveRequestRecord]:
    out = [_request_from_doc(s.id, client_id, s.to_dict() or {}) for s in _requests_col(client_id).stream()]
    out.sort(key=lambda r: r.created_at or 0.0, reverse=True)
    return out


def requests_from_snapshots(snaps) -> List[MoveRequestRecord]:
    out: List[MoveRequestRecord] = []
    for snap in snaps:
        client_id = owner_uid_from_path(snap.reference.path)
        if not client_id:
            continue
        out.append(_request_from_doc(snap.id, client_id, snap.to_dict() or {}))
    out.sort(key=lambda r: r.created_at or 0.0, reverse=True)
    return out


def all_requests_query():
    return db.collection_group("requests")


def list_all_requests() -> List[MoveRequestRecord]:
    return requests_from_snapshots(all_requests_query().stream())


# -----------------------------
# Bookings
# -----------------------------

def _bookings_col():
    return db.collection("bookings")


def _booking_from_doc(booking_id: str, data: Dict[str, Any]) -> BookingRecord:
    return BookingRecord(
        booking_id=booking_id,
        client_id=str(data.get("client_id") or ""),
        client_email=data.get("client_email"),
        mover_id=str(data.get("mover_id") or ""),
        mover_name=data.get("mover_name"),
        date=str(data.get("date") or ""),
        time=str(data.get("time") or ""),
        status=str(data.get("status") or BookingStatus.PENDING.value),
        created_at=as_float(data.get("created_at")) or 0.0,
        updated_at=as_float(data.get("updated_at")),
    )


def _load_booking(booking_id: str) -> Dict[str, Any]:
    snap = _bookings_col().document(booking_id).get()
    if not snap.exists:
        raise NotFoundError("Booking not found")
    data = snap.to_dict() or {}
    data["booking_id"] = booking_id
    return data


def create_booking(*, request: BookingCreateRequest, user: Dict[str, Any]) -> BookingRecord:
    uid = _uid(user)
    if _role(user) != Role.CLIENT.value:
        raise NotAuthorizedError("Only clients can book movers")

    mover = directory.get_mover(request.mover_id)
    if mover is None:
        raise NotFoundError("Mover not found")
    if not mover.is_available:
        raise ConflictError("This mover is not currently available")

    booking_date = parse_any_date(request.date)
    if booking_date is None:
        raise ValueError("date must be a valid date")

    # Duplicate bookings for the same mover/date/time are allowed.
    booking_id = str(uuid.uuid4())
    data = {
        "client_id": uid,
        "client_email": user.get("email"),
        "mover_id": mover.uid,
        "mover_name": mover.display_name,
        "date": booking_date.date().isoformat(),
        "time": request.time.strip(),
        "status": BookingStatus.PENDING.value,
        "created_at": _now(),
    }
    _bookings_col().document(booking_id).set(data)
    return _booking_from_doc(booking_id, data)


def bookings_query_for(user: Dict[str, Any]):
    field = "mover_id" if _role(user) == Role.MOVER.value else "client_id"
    return _bookings_col().where(field, "==", _uid(user))


def list_bookings_for_user(*, user: Dict[str, Any]) -> List[BookingRecord]:
    role = _role(user)
    if role not in {Role.CLIENT.value, Role.MOVER.value}:
        raise NotAuthorizedError("Only clients and movers have bookings")

    docs = []
    for snap in bookings_query_for(user).stream():
        data = snap.to_dict() or {}
        data["booking_id"] = snap.id
        docs.append(data)

    reviews: List[Dict[str, Any]] = []
    if role == Role.CLIENT.value and docs:
        reviews = [s.to_dict() or {} for s in db.collection("reviews").where("client_id", "==", _uid(user)).stream()]

    out: List[BookingRecord] = []
    for data in docs:
        rec = _booking_from_doc(data["booking_id"], data)
        if role == Role.CLIENT.value:
            rec.reviewable = is_reviewable(data, reviews)
        out.append(rec)
    out.sort(key=lambda b: b.created_at, reverse=True)
    return out


def get_booking(*, booking_id: str, user: Dict[str, Any], policy: Optional[AccessPolicy] = None) -> BookingRecord:
    policy = policy or get_policy()
    data = _load_booking(booking_id)
    if not policy.is_booking_party(uid=_uid(user), role=_role(user), booking=data):
        raise NotAuthorizedError("Not authorized")
    return _booking_from_doc(booking_id, data)


def transition_booking(
    *,
    booking_id: str,
    new_status: BookingStatus,
    user: Dict[str, Any],
    policy: Optional[AccessPolicy] = None,
) -> BookingRecord:
    policy = policy or get_policy()
    data = _load_booking(booking_id)
    if not policy.can_transition_booking(uid=_uid(user), booking=data):
        raise NotAuthorizedError("Only the booked mover can update this booking")

    current = BookingStatus(str(data.get("status") or BookingStatus.PENDING.value))
    assert_transition(current, new_status)

    patch = {"status": new_status.value, "updated_at": _now()}
    _bookings_col().document(booking_id).set(patch, merge=True)
    data.update(patch)
    return _booking_from_doc(booking_id, data)


# -----------------------------
# Quotes
# -----------------------------

def _quote_from_doc(quote_id: str, data: Dict[str, Any]) -> QuoteRecord:
    return QuoteRecord(
        quote_id=quote_id,
        request_id=str(data.get("request_id") or ""),
        client_id=str(data.get("client_id") or ""),
        mover_id=str(data.get("mover_id") or ""),
        mover_name=data.get("mover_name"),
        mover_email=data.get("mover_email"),
        amount=float(data.get("amount") or 0.0),
        notes=str(data.get("notes") or ""),
        status=QuoteStatus.PENDING,
        created_at=as_float(data.get("created_at")) or 0.0,
    )


def create_quote(*, request: QuoteCreateRequest, user: Dict[str, Any], policy: Optional[AccessPolicy] = None) -> QuoteRecord:
    policy = policy or get_policy()
    uid = _uid(user)
    if _role(user) != Role.MOVER.value:
        raise NotAuthorizedError("Only movers can send quotes")

    # Verification gate runs before anything is written.
    mover_doc = directory.get_mover_doc(uid)
    if not policy.can_quote(mover_doc):
        raise NotAuthorizedError(
            "Your account is pending verification. Please wait for admin approval before sending quotes."
        )

    req_ref = _requests_col(request.client_id).document(request.request_id)
    snap = req_ref.get()
    if not snap.exists:
        raise NotFoundError("Move request not found")

    client_id = owner_uid_from_path(snap.reference.path) or request.client_id
    quote_id = str(uuid.uuid4())
    data = {
        "request_id": snap.id,
        "client_id": client_id,
        "mover_id": uid,
        "mover_name": mover_doc.get("company_name") or mover_doc.get("name"),
        "mover_email": mover_doc.get("email") or user.get("email"),
        "amount": round(float(request.amount), 2),
        "notes": (request.notes or "").strip(),
        "status": QuoteStatus.PENDING.value,
        "created_at": _now(),
    }
    db.collection("quotes").document(quote_id).set(data)
    return _quote_from_doc(quote_id, data)


def quotes_query_for(user: Dict[str, Any]):
    field = "mover_id" if _role(user) == Role.MOVER.value else "client_id"
    return db.collection("quotes").where(field, "==", _uid(user))


def quotes_from_snapshots(snaps) -> List[QuoteRecord]:
    out = [_quote_from_doc(s.id, s.to_dict() or {}) for s in snaps]
    out.sort(key=lambda q: q.created_at, reverse=True)
    return out


def list_quotes_for_user(*, user: Dict[str, Any]) -> List[QuoteRecord]:
    if _role(user) not in {Role.CLIENT.value, Role.MOVER.value}:
        raise NotAuthorizedError("Only clients and movers have quotes")
    return quotes_from_snapshots(quotes_query_for(user).stream())


# -----------------------------
# Messages
# -----------------------------

def messages_query(booking_id: str):
    return _bookings_col().document(booking_id).collection("messages")


def messages_from_snapshots(booking_id: str, snaps) -> List[MessageRecord]:
    docs = []
    for snap in snaps:
        data = snap.to_dict() or {}
        data["message_id"] = snap.id
        docs.append(data)
    return [
        MessageRecord(
            message_id=d["message_id"],
            booking_id=booking_id,
            message=str(d.get("message") or ""),
            sender=str(d.get("sender") or SenderRole.CLIENT.value),
            sender_name=str(d.get("sender_name") or ""),
            timestamp=as_float(d.get("timestamp")) or 0.0,
        )
        for d in order_messages(docs)
    ]


def assert_can_read_messages(*, booking_id: str, user: Dict[str, Any], policy: Optional[AccessPolicy] = None) -> Dict[str, Any]:
    policy = policy or get_policy()
    data = _load_booking(booking_id)
    if not policy.is_booking_party(uid=_uid(user), role=_role(user), booking=data):
        raise NotAuthorizedError("Not authorized")
    return data


def list_messages(*, booking_id: str, user: Dict[str, Any]) -> List[MessageRecord]:
    assert_can_read_messages(booking_id=booking_id, user=user)
    return messages_from_snapshots(booking_id, messages_query(booking_id).stream())


def sender_for(*, uid: str, booking: Dict[str, Any]) -> SenderRole:
    if uid == str(booking.get("client_id") or ""):
        return SenderRole.CLIENT
    if uid == str(booking.get("mover_id") or ""):
        return SenderRole.MOVER
    raise NotAuthorizedError("Only the booking's client or mover can send messages")


def send_message(*, booking_id: str, text: str, user: Dict[str, Any]) -> MessageRecord:
    booking = _load_booking(booking_id)
    uid = _uid(user)
    sender = sender_for(uid=uid, booking=booking)
    default_name = "Client" if sender == SenderRole.CLIENT else "Mover"

    message_id = str(uuid.uuid4())
    data = {
        "message": text,
        "sender": sender.value,
        "sender_id": uid,
        "sender_name": email_local_part(user.get("email"), default=default_name),
        "timestamp": _now(),
    }
    messages_query(booking_id).document(message_id).set(data)
    return MessageRecord(message_id=message_id, booking_id=booking_id, **{k: data[k] for k in ("message", "sender", "sender_name", "timestamp")})


# -----------------------------
# Reviews
# -----------------------------

def _review_from_doc(review_id: str, data: Dict[str, Any]) -> ReviewRecord:
    return ReviewRecord(
        review_id=review_id,
        booking_id=str(data.get("booking_id") or ""),
        mover_id=str(data.get("mover_id") or ""),
        client_id=str(data.get("client_id") or ""),
        rating=int(data.get("rating") or 0),
        comment=str(data.get("comment") or ""),
        created_at=as_float(data.get("created_at")) or 0.0,
    )


def _reviews_where(field: str, value: str) -> List[Dict[str, Any]]:
    out = []
    for snap in db.collection("reviews").where(field, "==", value).stream():
        data = snap.to_dict() or {}
        data["review_id"] = snap.id
        out.append(data)
    return out


def all_reviews() -> List[Dict[str, Any]]:
    return [s.to_dict() or {} for s in db.collection("reviews").stream()]


def list_reviews_for_mover(*, mover_id: str) -> List[ReviewRecord]:
    out = [_review_from_doc(d["review_id"], d) for d in _reviews_where("mover_id", mover_id)]
    out.sort(key=lambda r: r.created_at, reverse=True)
    return out


def list_reviews_for_client(*, client_id: str) -> List[ReviewRecord]:
    out = [_review_from_doc(d["review_id"], d) for d in _reviews_where("client_id", client_id)]
    out.sort(key=lambda r: r.created_at, reverse=True)
    return out


def create_review(*, booking_id: str, request: ReviewCreateRequest, user: Dict[str, Any]) -> ReviewRecord:
    uid = _uid(user)
    if _role(user) != Role.CLIENT.value:
        raise NotAuthorizedError("Only clients can review movers")

    booking = _load_booking(booking_id)
    if uid != str(booking.get("client_id") or ""):
        raise NotAuthorizedError("Only the client who made this booking can review it")

    existing = [r for r in _reviews_where("booking_id", booking_id) if str(r.get("client_id") or "") == uid]
    if not is_reviewable(booking, existing):
        raise ConflictError("This booking cannot be reviewed")

    # One document per (booking, client); create() fails if it already exists.
    review_id = f"{booking_id}_{uid}"
    data = {
        "booking_id": booking_id,
        "mover_id": str(booking.get("mover_id") or ""),
        "client_id": uid,
        "rating": int(request.rating),
        "comment": request.comment,
        "created_at": _now(),
    }
    try:
        db.collection("reviews").document(review_id).create(data)
    except gexc.Conflict:
        raise ConflictError("This booking has already been reviewed")
    return _review_from_doc(review_id, data)
