from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..models import MoverProfile, VerificationStatus
from ..utils import as_float


def average_rating(ratings: Iterable[int]) -> Optional[float]:
    """Mean rating rounded half-up to one decimal; None when there are no ratings."""
    values = [int(r) for r in ratings]
    if not values:
        return None
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def order_messages(messages: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # sorted() is stable, so equal timestamps keep document order.
    return sorted(messages, key=lambda m: as_float(m.get("timestamp")) or 0.0)


def normalize_availability(data: Dict[str, Any]) -> bool:
    if "is_available" in data and data.get("is_available") is not None:
        return bool(data.get("is_available"))
    # Legacy documents only carry status: "available" | "unavailable".
    return str(data.get("status") or "").strip().lower() == "available"


def normalize_verification(data: Dict[str, Any]) -> str:
    raw = str(data.get("verification_status") or "").strip().lower()
    if raw in {s.value for s in VerificationStatus}:
        return raw
    return VerificationStatus.PENDING.value


def mover_from_doc(uid: str, data: Dict[str, Any]) -> MoverProfile:
    credentials = data.get("credentials") or []
    if not isinstance(credentials, list):
        credentials = []
    return MoverProfile(
        uid=uid,
        company_name=data.get("company_name"),
        name=data.get("name"),
        service_area=data.get("service_area"),
        contact_number=data.get("contact_number"),
        email=data.get("email"),
        photo_url=data.get("photo_url"),
        credentials=[str(c) for c in credentials],
        is_available=normalize_availability(data),
        verification_status=normalize_verification(data),
        admin_notes=data.get("admin_notes"),
        verified_at=as_float(data.get("verified_at")),
        verified_by=data.get("verified_by"),
        notes_updated_at=as_float(data.get("notes_updated_at")),
        notes_updated_by=data.get("notes_updated_by"),
        created_at=as_float(data.get("created_at")),
    )


def filter_movers(
    movers: Iterable[MoverProfile],
    *,
    q: Optional[str] = None,
    available: Optional[bool] = None,
    verification_status: Optional[str] = None,
) -> List[MoverProfile]:
    needle = (q or "").strip().lower()
    out: List[MoverProfile] = []
    for mover in movers:
        if needle:
            names = f"{mover.company_name or ''}\n{mover.name or ''}".lower()
            if needle not in names:
                continue
        if available is not None and mover.is_available != available:
            continue
        if verification_status and verification_status != "all" and mover.verification_status.value != verification_status:
            continue
        out.append(mover)
    return out


def count_by_status(movers: Iterable[MoverProfile]) -> Dict[str, int]:
    counts = {s.value: 0 for s in VerificationStatus}
    total = 0
    for mover in movers:
        counts[mover.verification_status.value] += 1
        total += 1
    counts["all"] = total
    return counts


def attach_ratings(movers: Iterable[MoverProfile], reviews: Iterable[Dict[str, Any]]) -> List[MoverProfile]:
    by_mover: Dict[str, List[int]] = {}
    for review in reviews:
        mover_id = str(review.get("mover_id") or "")
        try:
            by_mover.setdefault(mover_id, []).append(int(review.get("rating")))
        except (TypeError, ValueError):
            continue
    out: List[MoverProfile] = []
    for mover in movers:
        ratings = by_mover.get(mover.uid, [])
        out.append(mover.model_copy(update={"average_rating": average_rating(ratings), "review_count": len(ratings)}))
    return out
