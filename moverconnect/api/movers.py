from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from . import directory
from .auth import get_current_user, require_role
from .database import db, log_action
from .live import snapshot_events, stream_response
from .marketplace import repo as marketplace_repo
from .marketplace.service import attach_ratings, filter_movers
from .models import (
    AvailabilityUpdateRequest,
    CredentialUploadResponse,
    MoverListResponse,
    MoverProfile,
    Role,
    VerificationStatus,
)
from .uploads import content_type_for_filename, credential_path, upload_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/movers", tags=["Movers"])


def _with_ratings(movers: List[MoverProfile]) -> List[MoverProfile]:
    return attach_ratings(movers, marketplace_repo.all_reviews())


# -----------------------------
# Directory
# -----------------------------

@router.get("", response_model=MoverListResponse)
async def list_movers(
    q: Optional[str] = None,
    available: Optional[bool] = None,
    verification_status: Optional[VerificationStatus] = None,
    user: Dict[str, Any] = Depends(get_current_user),
):
    try:
        movers = filter_movers(
            directory.list_movers(),
            q=q,
            available=available,
            verification_status=verification_status.value if verification_status else None,
        )
        movers = _with_ratings(movers)
    except Exception as e:
        logger.warning("Failed to list movers: %s", e)
        raise HTTPException(status_code=500, detail="Failed to load movers, please try again")
    return MoverListResponse(movers=movers, total=len(movers))


@router.get("/stream")
async def stream_movers(
    request: Request,
    q: Optional[str] = None,
    available: Optional[bool] = None,
    verification_status: Optional[VerificationStatus] = None,
    user: Dict[str, Any] = Depends(require_role(Role.CLIENT, Role.MOVER, Role.ADMIN, stream=True)),
):
    """SSE stream of the filtered mover directory; every event is the full list.

    Events fire on mover document changes only. Ratings are read when an
    event is rendered, so a new review shows up with the next mover change.
    """
    status = verification_status.value if verification_status else None

    def render(snaps) -> Dict[str, Any]:
        movers = filter_movers(
            directory.mover_profiles_from_snapshots(snaps),
            q=q,
            available=available,
            verification_status=status,
        )
        movers = _with_ratings(movers)
        return {"movers": [m.model_dump(mode="json") for m in movers], "total": len(movers)}

    return stream_response(snapshot_events(db.collection_group(directory.MOVERS), render, request=request))


@router.patch("/me/availability", response_model=MoverProfile)
async def update_availability(
    req: AvailabilityUpdateRequest,
    user: Dict[str, Any] = Depends(require_role(Role.MOVER)),
):
    try:
        mover = directory.set_availability(user["uid"], req.is_available)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.warning("Availability update failed for %s: %s", user["uid"], e)
        raise HTTPException(status_code=500, detail="Failed to update availability, please try again")
    log_action(user["uid"], "AVAILABILITY_UPDATE", f"is_available={mover.is_available}")
    return mover


@router.post("/me/credentials", response_model=CredentialUploadResponse)
async def upload_credentials(
    files: List[UploadFile] = File(...),
    user: Dict[str, Any] = Depends(require_role(Role.MOVER)),
):
    """Upload any number of credential files.

    Each file is stored on its own; a failed upload is logged and left out,
    and whatever did upload is still appended to the mover's credentials.
    """
    uid = user["uid"]
    if directory.get_mover_doc(uid) is None:
        raise HTTPException(status_code=404, detail="Mover profile not found")

    urls: List[str] = []
    uploaded: List[str] = []
    failed: List[str] = []
    for f in files:
        filename = f.filename or "file"
        try:
            data = await f.read()
            url = upload_public(
                credential_path(uid, filename),
                data,
                content_type_for_filename(filename, fallback=f.content_type),
            )
        except Exception as e:
            logger.warning("Credential upload failed for %s (%s): %s", uid, filename, e)
            failed.append(filename)
            continue
        urls.append(url)
        uploaded.append(filename)

    credentials: List[str] = []
    if urls:
        try:
            credentials = directory.append_credentials(uid, urls)
        except Exception as e:
            logger.warning("Failed to link credentials for %s: %s", uid, e)
            raise HTTPException(status_code=500, detail="Failed to save credentials, please try again")
        log_action(uid, "CREDENTIALS_UPLOAD", f"Uploaded {len(urls)} credential file(s)")
    else:
        credentials = (directory.get_mover_doc(uid) or {}).get("credentials") or []

    return CredentialUploadResponse(uploaded=uploaded, failed=failed, credentials=credentials)


@router.get("/{mover_id}", response_model=MoverProfile)
async def get_mover(mover_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    mover = directory.get_mover(mover_id)
    if mover is None:
        raise HTTPException(status_code=404, detail="Mover not found")
    ratings = [r.model_dump() for r in marketplace_repo.list_reviews_for_mover(mover_id=mover_id)]
    return attach_ratings([mover], ratings)[0]
