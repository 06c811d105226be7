from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .auth import require_role
from .live import snapshot_events, stream_response
from .marketplace import repo
from .marketplace.errors import NotAuthorizedError
from .models import MoveRequestCreate, MoveRequestListResponse, MoveRequestRecord, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["Move Requests"])


@router.post("", response_model=MoveRequestRecord, status_code=status.HTTP_201_CREATED)
async def create_move_request(req: MoveRequestCreate, user: Dict[str, Any] = Depends(require_role(Role.CLIENT))):
    try:
        return repo.create_request(request=req, user=user)
    except NotAuthorizedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.warning("Failed to post move request for %s: %s", user.get("uid"), e)
        raise HTTPException(status_code=500, detail="Failed to post request, please try again")


@router.get("/mine", response_model=MoveRequestListResponse)
async def list_my_requests(user: Dict[str, Any] = Depends(require_role(Role.CLIENT))):
    items = repo.list_requests_for_client(client_id=user["uid"])
    return MoveRequestListResponse(requests=items, total=len(items))


@router.get("", response_model=MoveRequestListResponse)
async def list_all_requests(user: Dict[str, Any] = Depends(require_role(Role.MOVER, Role.ADMIN))):
    """Every client's move requests, each tagged with its owner's uid."""
    items = repo.list_all_requests()
    return MoveRequestListResponse(requests=items, total=len(items))


@router.get("/stream")
async def stream_requests(request: Request, user: Dict[str, Any] = Depends(require_role(Role.MOVER, Role.ADMIN, stream=True))):
    def render(snaps) -> Dict[str, Any]:
        items = repo.requests_from_snapshots(snaps)
        return {"requests": [r.model_dump(mode="json") for r in items], "total": len(items)}

    return stream_response(snapshot_events(repo.all_requests_query(), render, request=request))
