from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth import get_current_user, get_user_from_query_token, require_role
from ..live import snapshot_events, stream_response
from ..models import Role
from . import repo
from .errors import ConflictError, NotAuthorizedError, NotFoundError
from .models import (
    BookingActionResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingRecord,
    BookingStatus,
    MessageCreateRequest,
    MessageListResponse,
    MessageRecord,
    MoverReviewsResponse,
    QuoteCreateRequest,
    QuoteListResponse,
    QuoteRecord,
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewRecord,
)
from .service import average_rating

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Marketplace"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, NotAuthorizedError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# -----------------------------
# Bookings
# -----------------------------

@router.post("/bookings", response_model=BookingRecord, status_code=status.HTTP_201_CREATED)
async def bookings_create(req: BookingCreateRequest, user: Dict[str, Any] = Depends(require_role(Role.CLIENT))):
    try:
        return repo.create_booking(request=req, user=user)
    except ValueError as e:
        raise _http_error(e)


@router.get("/bookings", response_model=BookingListResponse)
async def bookings_list(user: Dict[str, Any] = Depends(require_role(Role.CLIENT, Role.MOVER))):
    items = repo.list_bookings_for_user(user=user)
    return BookingListResponse(bookings=items, total=len(items))


@router.get("/bookings/{booking_id}", response_model=BookingRecord)
async def bookings_get(booking_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    try:
        return repo.get_booking(booking_id=booking_id, user=user)
    except ValueError as e:
        raise _http_error(e)


def _transition(booking_id: str, new_status: BookingStatus, user: Dict[str, Any]) -> BookingActionResponse:
    try:
        booking = repo.transition_booking(booking_id=booking_id, new_status=new_status, user=user)
    except ValueError as e:
        raise _http_error(e)
    return BookingActionResponse(
        booking_id=booking.booking_id,
        status=booking.status,
        message=f"Booking {booking.status.value}",
    )


@router.post("/bookings/{booking_id}/accept", response_model=BookingActionResponse)
async def bookings_accept(booking_id: str, user: Dict[str, Any] = Depends(require_role(Role.MOVER))):
    return _transition(booking_id, BookingStatus.ACCEPTED, user)


@router.post("/bookings/{booking_id}/decline", response_model=BookingActionResponse)
async def bookings_decline(booking_id: str, user: Dict[str, Any] = Depends(require_role(Role.MOVER))):
    return _transition(booking_id, BookingStatus.DECLINED, user)


# -----------------------------
# Messages
# -----------------------------

@router.get("/bookings/{booking_id}/messages", response_model=MessageListResponse)
async def messages_list(booking_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    try:
        items = repo.list_messages(booking_id=booking_id, user=user)
    except ValueError as e:
        raise _http_error(e)
    return MessageListResponse(messages=items, total=len(items))


@router.post("/bookings/{booking_id}/messages", response_model=MessageRecord, status_code=status.HTTP_201_CREATED)
async def messages_send(
    booking_id: str,
    req: MessageCreateRequest,
    user: Dict[str, Any] = Depends(require_role(Role.CLIENT, Role.MOVER)),
):
    try:
        return repo.send_message(booking_id=booking_id, text=req.message, user=user)
    except ValueError as e:
        raise _http_error(e)


@router.get("/bookings/{booking_id}/messages/stream")
async def messages_stream(
    booking_id: str,
    request: Request,
    user: Dict[str, Any] = Depends(get_user_from_query_token),
):
    """SSE stream of the whole thread, re-sent in timestamp order on every change."""
    try:
        repo.assert_can_read_messages(booking_id=booking_id, user=user)
    except ValueError as e:
        raise _http_error(e)

    def render(snaps) -> Dict[str, Any]:
        items = repo.messages_from_snapshots(booking_id, snaps)
        return {"booking_id": booking_id, "messages": [m.model_dump(mode="json") for m in items], "total": len(items)}

    return stream_response(snapshot_events(repo.messages_query(booking_id), render, request=request))


# -----------------------------
# Quotes
# -----------------------------

@router.post("/quotes", response_model=QuoteRecord, status_code=status.HTTP_201_CREATED)
async def quotes_create(req: QuoteCreateRequest, user: Dict[str, Any] = Depends(require_role(Role.MOVER))):
    try:
        return repo.create_quote(request=req, user=user)
    except ValueError as e:
        raise _http_error(e)


@router.get("/quotes", response_model=QuoteListResponse)
async def quotes_list(user: Dict[str, Any] = Depends(require_role(Role.CLIENT, Role.MOVER))):
    items = repo.list_quotes_for_user(user=user)
    return QuoteListResponse(quotes=items, total=len(items))


@router.get("/quotes/stream")
async def quotes_stream(request: Request, user: Dict[str, Any] = Depends(require_role(Role.CLIENT, stream=True))):
    def render(snaps) -> Dict[str, Any]:
        items = repo.quotes_from_snapshots(snaps)
        return {"quotes": [q.model_dump(mode="json") for q in items], "total": len(items)}

    return stream_response(snapshot_events(repo.quotes_query_for(user), render, request=request))


# -----------------------------
# Reviews
# -----------------------------

@router.post("/bookings/{booking_id}/review", response_model=ReviewRecord, status_code=status.HTTP_201_CREATED)
async def reviews_create(
    booking_id: str,
    req: ReviewCreateRequest,
    user: Dict[str, Any] = Depends(require_role(Role.CLIENT)),
):
    try:
        review = repo.create_review(booking_id=booking_id, request=req, user=user)
    except ValueError as e:
        raise _http_error(e)
    logger.info("Review %s added for mover %s", review.review_id, review.mover_id)
    return review


@router.get("/movers/{mover_id}/reviews", response_model=MoverReviewsResponse)
async def reviews_for_mover(mover_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    items = repo.list_reviews_for_mover(mover_id=mover_id)
    return MoverReviewsResponse(
        mover_id=mover_id,
        reviews=items,
        total=len(items),
        average_rating=average_rating(r.rating for r in items),
    )


@router.get("/reviews/mine", response_model=ReviewListResponse)
async def reviews_mine(user: Dict[str, Any] = Depends(require_role(Role.CLIENT))):
    items = repo.list_reviews_for_client(client_id=user["uid"])
    return ReviewListResponse(reviews=items, total=len(items))
