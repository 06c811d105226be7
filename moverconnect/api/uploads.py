from __future__ import annotations

import logging
from typing import Optional

from .database import bucket

logger = logging.getLogger(__name__)


def content_type_for_filename(filename: str, fallback: Optional[str] = None) -> str:
    fn = (filename or "").lower()
    if fn.endswith(".pdf"):
        return "application/pdf"
    if fn.endswith(".jpg") or fn.endswith(".jpeg"):
        return "image/jpeg"
    if fn.endswith(".png"):
        return "image/png"
    if fn.endswith(".webp"):
        return "image/webp"
    if fn.endswith(".doc"):
        return "application/msword"
    if fn.endswith(".docx"):
        return "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    return fallback or "application/octet-stream"


def safe_filename(filename: str) -> str:
    name = (filename or "").replace("/", "_").replace("\\", "_").strip()
    return name or "file"


def credential_path(mover_id: str, filename: str) -> str:
    # Same name, same path: re-uploading a filename replaces the stored file.
    return f"movers/{mover_id}/credentials/{safe_filename(filename)}"


def profile_photo_path(role: str, uid: str) -> str:
    return f"{role}s/{uid}/profile.jpg"


def upload_public(path: str, data: bytes, content_type: str) -> str:
    """Store bytes in the bucket and return their public URL."""
    blob = bucket.blob(path)
    blob.upload_from_string(data, content_type=content_type)
    blob.make_public()
    return blob.public_url
