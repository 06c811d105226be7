"""Admin dashboard: mover verification, notes and hard deletes.

Every route is gated by ``require_admin``; every mutation is audited.
Deletes remove only the profile document. Bookings, quotes and reviews
that reference the account are left as they are.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from . import directory
from .auth import require_admin
from .database import log_action
from .marketplace import repo as marketplace_repo
from .marketplace.service import attach_ratings, count_by_status, filter_movers
from .models import (
    ActionResponse,
    AdminMoverListResponse,
    AdminNotesRequest,
    ClientListResponse,
    VerificationUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

_STATUS_FILTERS = {"pending", "approved", "rejected", "all"}


@router.get("/movers", response_model=AdminMoverListResponse)
async def admin_list_movers(status: str = "pending", admin: Dict[str, Any] = Depends(require_admin)):
    status = (status or "pending").strip().lower()
    if status not in _STATUS_FILTERS:
        raise HTTPException(status_code=400, detail=f"status must be one of {sorted(_STATUS_FILTERS)}")
    try:
        movers = directory.list_movers()
    except Exception as e:
        logger.warning("Admin mover listing failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to load movers, please try again")

    counts = count_by_status(movers)
    selected = attach_ratings(filter_movers(movers, verification_status=status), marketplace_repo.all_reviews())
    return AdminMoverListResponse(movers=selected, total=len(selected), counts=counts)


@router.get("/clients", response_model=ClientListResponse)
async def admin_list_clients(admin: Dict[str, Any] = Depends(require_admin)):
    try:
        clients = directory.list_clients()
    except Exception as e:
        logger.warning("Admin client listing failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to load clients, please try again")
    return ClientListResponse(clients=clients, total=len(clients))


@router.post("/movers/{mover_id}/verification", response_model=ActionResponse)
async def admin_set_verification(
    mover_id: str,
    req: VerificationUpdateRequest,
    admin: Dict[str, Any] = Depends(require_admin),
):
    if directory.get_mover_doc(mover_id) is None:
        raise HTTPException(status_code=404, detail="Mover not found")

    patch = {
        "verification_status": req.status,
        "verified_at": time.time(),
        "verified_by": admin.get("email"),
    }
    directory.update_profile(mover_id, directory.MOVERS, patch)
    log_action(admin["uid"], "MOVER_VERIFICATION", f"{mover_id} -> {req.status}")
    return ActionResponse(message=f"Mover {req.status}", data={"mover_id": mover_id, **patch})


@router.put("/movers/{mover_id}/notes", response_model=ActionResponse)
async def admin_set_notes(
    mover_id: str,
    req: AdminNotesRequest,
    admin: Dict[str, Any] = Depends(require_admin),
):
    if directory.get_mover_doc(mover_id) is None:
        raise HTTPException(status_code=404, detail="Mover not found")

    patch = {
        "admin_notes": req.notes,
        "notes_updated_at": time.time(),
        "notes_updated_by": admin.get("email"),
    }
    directory.update_profile(mover_id, directory.MOVERS, patch)
    log_action(admin["uid"], "MOVER_NOTES", f"Notes updated for {mover_id}")
    return ActionResponse(message="Notes saved", data={"mover_id": mover_id, **patch})


def _delete(kind: str, uid: str, admin: Dict[str, Any]) -> ActionResponse:
    if not directory.delete_profile(uid, kind):
        raise HTTPException(status_code=404, detail="Profile not found")
    log_action(admin["uid"], "PROFILE_DELETE", f"Deleted {kind} profile {uid}")
    return ActionResponse(message="Profile deleted", data={"uid": uid, "kind": kind})


@router.delete("/movers/{mover_id}", response_model=ActionResponse)
async def admin_delete_mover(mover_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return _delete(directory.MOVERS, mover_id, admin)


@router.delete("/clients/{client_id}", response_model=ActionResponse)
async def admin_delete_client(client_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return _delete(directory.CLIENTS, client_id, admin)
