import json
import logging
import os
import time
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore, storage

from .settings import settings

logger = logging.getLogger(__name__)

_firebase_app = None


def get_firebase_app():
    """Initialize the Firebase Admin app once, on first use."""
    global _firebase_app
    if _firebase_app:
        return _firebase_app
    if firebase_admin._apps:
        _firebase_app = firebase_admin.get_app()
        return _firebase_app

    options = {"storageBucket": settings.FIREBASE_STORAGE_BUCKET}

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if cred_path and os.path.exists(cred_path):
        _firebase_app = firebase_admin.initialize_app(credentials.Certificate(cred_path), options)
        logger.info("Firebase initialized from %s", cred_path)
        return _firebase_app

    if settings.FIREBASE_CREDENTIALS_JSON:
        cred = credentials.Certificate(json.loads(settings.FIREBASE_CREDENTIALS_JSON))
        _firebase_app = firebase_admin.initialize_app(cred, options)
        logger.info("Firebase initialized from FIREBASE_CREDENTIALS_JSON")
        return _firebase_app

    logger.warning("No Firebase service account configured; using application default credentials")
    _firebase_app = firebase_admin.initialize_app(options=options)
    return _firebase_app


class _LazyClient:
    """Defers creating a Firebase client until an attribute is first used."""

    def __init__(self, factory):
        self._factory = factory
        self._client = None

    def __getattr__(self, name: str) -> Any:
        if self._client is None:
            get_firebase_app()
            self._client = self._factory()
        return getattr(self._client, name)


db = _LazyClient(firestore.client)
bucket = _LazyClient(storage.bucket)


# Helper to log actions
def log_action(user_id: str, action: str, details: str, ip: Optional[str] = None):
    try:
        db.collection("audit_logs").add({
            "user_id": user_id,
            "action": action,
            "details": details,
            "ip_address": ip,
            "timestamp": time.time(),
        })
    except Exception as e:
        logger.warning("Audit log error: %s", e)
