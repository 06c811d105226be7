from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class QuoteStatus(str, Enum):
    # Quotes are written once and never transitioned.
    PENDING = "pending"


class SenderRole(str, Enum):
    CLIENT = "client"
    MOVER = "mover"


def _require_text(value: str, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError(f"{field_name} must not be empty")
    return text


# -----------------------------
# Bookings
# -----------------------------

class BookingCreateRequest(BaseModel):
    mover_id: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    time: str = Field(..., min_length=1)


class BookingRecord(BaseModel):
    booking_id: str
    client_id: str
    client_email: Optional[str] = None
    mover_id: str
    mover_name: Optional[str] = None
    date: str
    time: str
    status: BookingStatus = BookingStatus.PENDING
    created_at: float
    updated_at: Optional[float] = None

    # Only filled in for the client's own listing.
    reviewable: Optional[bool] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingRecord]
    total: int


class BookingActionResponse(BaseModel):
    ok: bool = True
    booking_id: str
    status: BookingStatus
    message: str


# -----------------------------
# Quotes
# -----------------------------

class QuoteCreateRequest(BaseModel):
    client_id: str = Field(..., min_length=1)
    request_id: str = Field(..., min_length=1)
    amount: float = Field(..., allow_inf_nan=False)
    notes: str = ""

    @field_validator("amount")
    @classmethod
    def _cents(cls, value: float) -> float:
        cents = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if cents <= 0:
            raise ValueError("amount must be at least 0.01")
        return float(cents)


class QuoteRecord(BaseModel):
    quote_id: str
    request_id: str
    client_id: str
    mover_id: str
    mover_name: Optional[str] = None
    mover_email: Optional[str] = None
    amount: float
    notes: str = ""
    status: QuoteStatus = QuoteStatus.PENDING
    created_at: float


class QuoteListResponse(BaseModel):
    quotes: List[QuoteRecord]
    total: int


# -----------------------------
# Messages
# -----------------------------

class MessageCreateRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)

    @field_validator("message")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _require_text(value, "message")


class MessageRecord(BaseModel):
    message_id: str
    booking_id: str
    message: str
    sender: SenderRole
    sender_name: str = ""
    timestamp: float


class MessageListResponse(BaseModel):
    messages: List[MessageRecord]
    total: int


# -----------------------------
# Reviews
# -----------------------------

class ReviewCreateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str

    @field_validator("comment")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _require_text(value, "comment")


class ReviewRecord(BaseModel):
    review_id: str
    booking_id: str
    mover_id: str
    client_id: str
    rating: int
    comment: str
    created_at: float


class MoverReviewsResponse(BaseModel):
    mover_id: str
    reviews: List[ReviewRecord]
    total: int
    average_rating: Optional[float] = None


class ReviewListResponse(BaseModel):
    reviews: List[ReviewRecord]
    total: int
