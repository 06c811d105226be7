"""Firestore access for client and mover profiles.

Profiles live under the owning account:
    users/{uid}/clients/{uid}
    users/{uid}/movers/{uid}

Cross-account listings go through collection-group queries, and the
owner uid is recovered from each document's path.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from .database import db
from .models import ClientProfile, MoverProfile
from .marketplace.service import mover_from_doc
from .utils import as_float, owner_uid_from_path

logger = logging.getLogger(__name__)

MOVERS = "movers"
CLIENTS = "clients"


def _profile_ref(uid: str, kind: str):
    return db.collection("users").document(uid).collection(kind).document(uid)


def mover_ref(uid: str):
    return _profile_ref(uid, MOVERS)


def client_ref(uid: str):
    return _profile_ref(uid, CLIENTS)


def _get(uid: str, kind: str) -> Optional[Dict[str, Any]]:
    snap = _profile_ref(uid, kind).get()
    if not snap.exists:
        return None
    return snap.to_dict() or {}


def get_mover_doc(uid: str) -> Optional[Dict[str, Any]]:
    return _get(uid, MOVERS)


def get_client_doc(uid: str) -> Optional[Dict[str, Any]]:
    return _get(uid, CLIENTS)


def get_mover(uid: str) -> Optional[MoverProfile]:
    data = get_mover_doc(uid)
    if data is None:
        return None
    return mover_from_doc(uid, data)


def client_from_doc(uid: str, data: Dict[str, Any]) -> ClientProfile:
    return ClientProfile(
        uid=uid,
        name=data.get("name"),
        number=data.get("number") or data.get("phone"),
        email=data.get("email"),
        photo_url=data.get("photo_url"),
        created_at=as_float(data.get("created_at")),
    )


def has_profile_with_email(uid: str, kind: str, email: Optional[str]) -> bool:
    """True when users/{uid}/{kind} holds a profile for this email."""
    query = db.collection("users").document(uid).collection(kind)
    if email:
        query = query.where("email", "==", email)
    return bool(list(query.limit(1).stream()))


def _group_docs(kind: str) -> List[tuple]:
    out = []
    for snap in db.collection_group(kind).stream():
        uid = owner_uid_from_path(snap.reference.path) or snap.id
        out.append((uid, snap.to_dict() or {}))
    return out


def mover_profiles_from_snapshots(snaps) -> List[MoverProfile]:
    out: List[MoverProfile] = []
    for snap in snaps:
        uid = owner_uid_from_path(snap.reference.path) or snap.id
        out.append(mover_from_doc(uid, snap.to_dict() or {}))
    return out


def list_movers() -> List[MoverProfile]:
    return [mover_from_doc(uid, data) for uid, data in _group_docs(MOVERS)]


def list_clients() -> List[ClientProfile]:
    return [client_from_doc(uid, data) for uid, data in _group_docs(CLIENTS)]


def create_client_profile(uid: str, *, name: str, number: str, email: str) -> Dict[str, Any]:
    data = {
        "uid": uid,
        "name": name,
        "number": number,
        "email": email,
        "created_at": time.time(),
    }
    client_ref(uid).set(data)
    return data


def create_mover_profile(
    uid: str,
    *,
    company_name: str,
    service_area: str,
    contact_number: str,
    email: str,
    verification_status: str,
) -> Dict[str, Any]:
    data = {
        "uid": uid,
        "company_name": company_name,
        "name": company_name,
        "service_area": service_area,
        "contact_number": contact_number,
        "email": email,
        "credentials": [],
        "is_available": True,
        "verification_status": verification_status,
        "created_at": time.time(),
    }
    mover_ref(uid).set(data)
    return data


def update_profile(uid: str, kind: str, fields: Dict[str, Any]) -> None:
    _profile_ref(uid, kind).set({**fields, "updated_at": time.time()}, merge=True)


def set_availability(uid: str, is_available: bool) -> MoverProfile:
    ref = mover_ref(uid)
    if not ref.get().exists:
        raise LookupError("Mover profile not found")
    ref.set(
        {
            "is_available": bool(is_available),
            "status": "available" if is_available else "unavailable",
            "updated_at": time.time(),
        },
        merge=True,
    )
    return mover_from_doc(uid, ref.get().to_dict() or {})


def append_credentials(uid: str, urls: List[str]) -> List[str]:
    """Append new credential URLs after the existing ones; returns the full list."""
    ref = mover_ref(uid)
    snap = ref.get()
    existing = (snap.to_dict() or {}).get("credentials") if snap.exists else []
    if not isinstance(existing, list):
        existing = []
    merged = [*existing, *urls]
    ref.set({"credentials": merged, "updated_at": time.time()}, merge=True)
    return merged


def delete_profile(uid: str, kind: str) -> bool:
    ref = _profile_ref(uid, kind)
    if not ref.get().exists:
        return False
    ref.delete()
    return True
