from __future__ import annotations

import importlib
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from firebase_admin import auth as firebase_auth
from google.api_core import exceptions as gexc

from moverconnect.api.policy import AccessPolicy, get_policy


# -----------------------------
# Firestore
# -----------------------------

def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0]


@dataclass
class _Snap:
    id: str
    _data: Optional[Dict[str, Any]]
    reference: "_DocRef"

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class _DocRef:
    def __init__(self, db: "_FakeDB", path: str):
        self._db = db
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def get(self, transaction=None):
        _ = transaction
        return _Snap(self.id, self._db.docs.get(self.path), self)

    def set(self, data: Dict[str, Any], merge: bool = False):
        if merge and self.path in self._db.docs:
            merged = dict(self._db.docs[self.path])
            merged.update(dict(data))
            self._db.docs[self.path] = merged
        else:
            self._db.docs[self.path] = dict(data)
        self._db.notify()

    def create(self, data: Dict[str, Any]):
        if self.path in self._db.docs:
            raise gexc.AlreadyExists(f"Document already exists: {self.path}")
        self.set(data)

    def update(self, data: Dict[str, Any]):
        if self.path not in self._db.docs:
            raise KeyError(self.path)
        self.set(data, merge=True)

    def delete(self):
        self._db.docs.pop(self.path, None)
        self._db.notify()

    def collection(self, name: str) -> "_Query":
        return _Query(self._db, collection=f"{self.path}/{name}")


class _Watch:
    def __init__(self, db: "_FakeDB", query: "_Query", callback: Callable):
        self._db = db
        self.query = query
        self.callback = callback
        self.unsubscribed = False

    def fire(self):
        self.callback(self.query.stream(), [], None)

    def unsubscribe(self):
        self.unsubscribed = True
        if self in self._db.watches:
            self._db.watches.remove(self)


class _Query:
    def __init__(
        self,
        db: "_FakeDB",
        *,
        collection: Optional[str] = None,
        group: Optional[str] = None,
        filters: Tuple[Tuple[str, str, Any], ...] = (),
        limit: Optional[int] = None,
    ):
        self._db = db
        self._collection = collection
        self._group = group
        self._filters = filters
        self._limit = limit

    def _copy(self, **kwargs) -> "_Query":
        base = dict(collection=self._collection, group=self._group, filters=self._filters, limit=self._limit)
        base.update(kwargs)
        return _Query(self._db, **base)

    def document(self, doc_id: str) -> _DocRef:
        return _DocRef(self._db, f"{self._collection}/{doc_id}")

    def add(self, data: Dict[str, Any]):
        self._db.auto_id += 1
        ref = self.document(f"auto{self._db.auto_id}")
        ref.set(data)
        return None, ref

    def where(self, field: str, op: str, value: Any) -> "_Query":
        if op != "==":
            raise AssertionError(f"Unsupported op in fake db: {op}")
        return self._copy(filters=(*self._filters, (field, op, value)))

    def limit(self, n: int) -> "_Query":
        return self._copy(limit=int(n))

    def _in_scope(self, path: str) -> bool:
        if self._collection is not None:
            return _parent(path) == self._collection
        return _parent(path).rsplit("/", 1)[-1] == self._group

    def stream(self) -> List[_Snap]:
        out: List[_Snap] = []
        for path, data in list(self._db.docs.items()):
            if not self._in_scope(path):
                continue
            if all(data.get(f) == v for f, _, v in self._filters):
                out.append(_Snap(path.rsplit("/", 1)[-1], data, _DocRef(self._db, path)))
        if self._limit is not None:
            out = out[: self._limit]
        return out

    def on_snapshot(self, callback: Callable) -> _Watch:
        watch = _Watch(self._db, self, callback)
        self._db.watches.append(watch)
        watch.fire()
        return watch


class _FakeDB:
    """In-memory stand-in for the Firestore client, keyed by document path."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.watches: List[_Watch] = []
        self.auto_id = 0

    def collection(self, name: str) -> _Query:
        return _Query(self, collection=name)

    def collection_group(self, name: str) -> _Query:
        return _Query(self, group=name)

    def notify(self):
        for watch in list(self.watches):
            watch.fire()

    # Helpers for tests
    def seed(self, path: str, data: Dict[str, Any]) -> None:
        self.docs[path] = dict(data)

    def under(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return {p.rsplit("/", 1)[-1]: d for p, d in self.docs.items() if _parent(p) == collection}


_DB_MODULES = (
    "moverconnect.api.database",
    "moverconnect.api.directory",
    "moverconnect.api.movers",
    "moverconnect.api.marketplace.repo",
)


@pytest.fixture()
def fake_db(monkeypatch):
    db = _FakeDB()
    for name in _DB_MODULES:
        monkeypatch.setattr(importlib.import_module(name), "db", db)
    return db


# -----------------------------
# Storage
# -----------------------------

class _Blob:
    def __init__(self, bucket: "_FakeBucket", path: str):
        self._bucket = bucket
        self.path = path
        self.public_url = f"https://storage.test/{path}"

    def upload_from_string(self, data: bytes, content_type: Optional[str] = None):
        if any(marker in self.path for marker in self._bucket.fail_on):
            raise RuntimeError(f"upload failed: {self.path}")
        self._bucket.blobs[self.path] = (bytes(data), content_type)

    def make_public(self):
        return None


class _FakeBucket:
    def __init__(self):
        self.blobs: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self.fail_on: List[str] = []

    def blob(self, path: str) -> _Blob:
        return _Blob(self, path)


@pytest.fixture()
def fake_bucket(monkeypatch):
    bucket = _FakeBucket()
    monkeypatch.setattr(importlib.import_module("moverconnect.api.uploads"), "bucket", bucket)
    return bucket


# -----------------------------
# Firebase Auth
# -----------------------------

class _FakeAuth:
    """Accounts keyed by uid; tokens are "tok-<uid>"."""

    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}
        self.deleted: List[str] = []
        self.verification_emails: List[str] = []
        self.next_uid: Optional[str] = None
        self._seq = 0

    def create_user(self, email: str, password: str, display_name: str) -> str:
        if any(u.email == email for u in self.users.values()):
            raise firebase_auth.EmailAlreadyExistsError("EMAIL_EXISTS", None, None)
        self._seq += 1
        uid = self.next_uid or f"uid{self._seq}"
        self.next_uid = None
        self.users[uid] = SimpleNamespace(uid=uid, email=email, password=password, email_verified=False)
        return uid

    def delete_user(self, uid: str) -> None:
        self.users.pop(uid, None)
        self.deleted.append(uid)

    def get_user(self, uid: str):
        return self.users[uid]

    def get_user_by_email(self, email: str):
        return next((u for u in self.users.values() if u.email == email), None)

    def verify_email(self, email: str) -> str:
        user = self.get_user_by_email(email)
        user.email_verified = True
        return user.uid

    def add_user(self, uid: str, email: str, password: str = "secret123", verified: bool = True):
        self.users[uid] = SimpleNamespace(uid=uid, email=email, password=password, email_verified=verified)

    def verify_id_token(self, token: str) -> Dict[str, Any]:
        uid = token[len("tok-"):] if token.startswith("tok-") else ""
        user = self.users.get(uid)
        if user is None:
            raise ValueError("invalid token")
        return {"uid": uid, "email": user.email, "email_verified": user.email_verified}

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        user = self.get_user_by_email(email)
        if user is None or user.password != password:
            raise HTTPException(status_code=401, detail="Invalid email or password (INVALID_LOGIN_CREDENTIALS)")
        return {"localId": user.uid, "email": user.email, "idToken": f"tok-{user.uid}", "refreshToken": "r", "expiresIn": "3600"}

    @staticmethod
    def headers(uid: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer tok-{uid}"}


@pytest.fixture()
def fake_auth(monkeypatch):
    a = importlib.import_module("moverconnect.api.auth")
    fa = _FakeAuth()
    monkeypatch.setattr(a, "_create_auth_user", fa.create_user)
    monkeypatch.setattr(a, "_delete_auth_user", fa.delete_user)
    monkeypatch.setattr(a, "_get_auth_user", fa.get_user)
    monkeypatch.setattr(a, "_get_auth_user_by_email", fa.get_user_by_email)
    monkeypatch.setattr(a, "_verify_id_token", fa.verify_id_token)
    monkeypatch.setattr(a, "_email_verification_link", lambda email: f"https://verify.test/{email}")
    monkeypatch.setattr(a, "send_verification_email", lambda email, link: fa.verification_emails.append(email) or True)
    monkeypatch.setattr(a, "_firebase_verify_password", fa.sign_in)
    return fa


# -----------------------------
# App
# -----------------------------

ADMIN_EMAIL = "admin@admin.com"


@pytest.fixture()
def api(fake_db, fake_bucket, fake_auth, monkeypatch):
    """Full application wired to the in-memory backends."""
    main = importlib.import_module("moverconnect.api.main")
    monkeypatch.setitem(main.app.dependency_overrides, get_policy, lambda: AccessPolicy.with_admins({ADMIN_EMAIL}))
    return TestClient(main.app)
