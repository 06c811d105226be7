from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from . import directory
from .auth import get_current_user
from .database import log_action
from .models import ClientProfileUpdate, MoverProfileUpdate, Role
from .uploads import profile_photo_path, upload_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])

_KINDS = {
    Role.CLIENT: directory.CLIENTS,
    Role.MOVER: directory.MOVERS,
}

_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
_MAX_PHOTO_BYTES = 5 * 1024 * 1024


def _own_kind(role: Role, user: Dict[str, Any]) -> str:
    if role not in _KINDS:
        raise HTTPException(status_code=404, detail="Unknown profile type")
    if user.get("role") != role.value:
        raise HTTPException(status_code=403, detail=f"Only {role.value}s can edit this profile")
    return _KINDS[role]


@router.get("/{role}")
async def get_profile(role: Role, user: Dict[str, Any] = Depends(get_current_user)):
    kind = _own_kind(role, user)
    data = directory.get_client_doc(user["uid"]) if kind == directory.CLIENTS else directory.get_mover_doc(user["uid"])
    if data is None:
        return {"email": user.get("email")}
    return data


@router.put("/client")
async def update_client_profile(req: ClientProfileUpdate, user: Dict[str, Any] = Depends(get_current_user)):
    _own_kind(Role.CLIENT, user)
    return _save(user, directory.CLIENTS, req.model_dump(exclude_none=True))


@router.put("/mover")
async def update_mover_profile(req: MoverProfileUpdate, user: Dict[str, Any] = Depends(get_current_user)):
    _own_kind(Role.MOVER, user)
    return _save(user, directory.MOVERS, req.model_dump(exclude_none=True))


def _save(user: Dict[str, Any], kind: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    uid = user["uid"]
    changes = {k: (v.strip() if isinstance(v, str) else v) for k, v in changes.items()}
    if not changes:
        raise HTTPException(status_code=400, detail="No profile fields to update")
    try:
        directory.update_profile(uid, kind, changes)
    except Exception as e:
        logger.warning("Profile update failed for %s: %s", uid, e)
        raise HTTPException(status_code=500, detail="Failed to update profile, please try again")
    log_action(uid, "PROFILE_UPDATE", f"Updated {', '.join(sorted(changes))}")
    return {"status": "success", "updated": sorted(changes)}


@router.post("/{role}/photo")
async def upload_profile_photo(
    role: Role,
    file: UploadFile = File(...),
    user: Dict[str, Any] = Depends(get_current_user),
):
    """Upload a profile photo and store its URL on the profile."""
    kind = _own_kind(role, user)
    uid = user["uid"]

    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    file_ext = file.filename.lower().rsplit(".", 1)[-1]
    if file_ext not in _IMAGE_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type. Allowed: {', '.join(sorted(_IMAGE_EXTENSIONS))}"
        )
    data = await file.read()
    if len(data) > _MAX_PHOTO_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 5MB")

    try:
        url = upload_public(profile_photo_path(role.value, uid), data, file.content_type or "image/jpeg")
        directory.update_profile(uid, kind, {"photo_url": url})
    except Exception as e:
        logger.warning("Profile photo upload failed for %s: %s", uid, e)
        raise HTTPException(status_code=500, detail="Failed to upload profile photo, please try again")

    log_action(uid, "PROFILE_PHOTO_UPLOAD", profile_photo_path(role.value, uid))
    return {"status": "success", "photo_url": url}
