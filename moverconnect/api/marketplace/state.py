from __future__ import annotations

from typing import Any, Dict, Iterable

from .errors import ConflictError
from .models import BookingStatus


class BookingStateError(ConflictError):
    pass


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    allowed = {
        BookingStatus.PENDING: {BookingStatus.ACCEPTED, BookingStatus.DECLINED},
        BookingStatus.ACCEPTED: set(),
        BookingStatus.DECLINED: set(),
    }
    return new in allowed.get(current, set())


def assert_transition(current: BookingStatus, new: BookingStatus) -> None:
    if not can_transition(current, new):
        raise BookingStateError(f"Invalid booking transition: {current.value} -> {new.value}")


def is_reviewable(booking: Dict[str, Any], reviews: Iterable[Dict[str, Any]]) -> bool:
    """A booking may be reviewed once it is accepted, at most once per client.

    There is no separate "completed" state; acceptance stands in for it.
    """
    if str(booking.get("status") or "") != BookingStatus.ACCEPTED.value:
        return False
    booking_id = str(booking.get("booking_id") or "")
    client_id = str(booking.get("client_id") or "")
    for review in reviews:
        if str(review.get("booking_id") or "") == booking_id and str(review.get("client_id") or "") == client_id:
            return False
    return True
