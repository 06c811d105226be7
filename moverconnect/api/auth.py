# File: moverconnect/api/auth.py
from fastapi import APIRouter, HTTPException, Header, Depends, status
from firebase_admin import auth as firebase_auth
import firebase_admin
import asyncio
import logging
from typing import Optional, Dict, Any, Callable
import httpx

# Use relative imports
from .database import log_action
from . import directory
from .emailer import send_verification_email
from .models import (
    ClientSignup, MoverSignup, Role, SignupResponse, LoginRequest,
    TokenResponse, CurrentUser, VerificationStatus,
)
from .policy import AccessPolicy, get_policy
from .settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

UNVERIFIED_MESSAGE = "Please verify your email before logging in. Check your inbox for a verification link."
ROLE_NOT_FOUND_MESSAGE = "User not found in either movers or clients."
ADMIN_ONLY_MESSAGE = "This login is for administrators only. Please use the regular login page."


class UnverifiedEmailError(ValueError):
    pass


class RoleNotFoundError(LookupError):
    pass


async def _to_thread(fn, timeout_s: float = 25.0):
    """Run blocking SDK calls off the event loop with a soft timeout."""
    return await asyncio.wait_for(asyncio.to_thread(fn), timeout=timeout_s)


# ============================================================================
# Firebase Auth calls (kept thin so they can be swapped in tests)
# ============================================================================

def _create_auth_user(email: str, password: str, display_name: str) -> str:
    record = firebase_auth.create_user(email=email, password=password, display_name=display_name)
    return record.uid


def _delete_auth_user(uid: str) -> None:
    firebase_auth.delete_user(uid)


def _get_auth_user(uid: str):
    return firebase_auth.get_user(uid)


def _get_auth_user_by_email(email: str):
    try:
        return firebase_auth.get_user_by_email(email)
    except firebase_auth.UserNotFoundError:
        return None


def _verify_id_token(token: str) -> Dict[str, Any]:
    return firebase_auth.verify_id_token(token)


def _email_verification_link(email: str) -> str:
    return firebase_auth.generate_email_verification_link(email)


async def _firebase_verify_password(email: str, password: str) -> Dict[str, Any]:
    """Verifies email/password using Firebase Identity Toolkit."""
    api_key = settings.FIREBASE_WEB_API_KEY
    if not api_key:
        raise HTTPException(status_code=500, detail="FIREBASE_WEB_API_KEY is not configured")

    url = f"https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword?key={api_key}"
    payload = {"email": email, "password": password, "returnSecureToken": True}
    async with httpx.AsyncClient(timeout=15) as client:
        resp = await client.post(url, json=payload)
    if resp.status_code != 200:
        # Normalize Firebase errors
        try:
            data = resp.json()
            msg = data.get("error", {}).get("message", "INVALID_LOGIN")
        except Exception:
            msg = "INVALID_LOGIN"
        raise HTTPException(status_code=401, detail=f"Invalid email or password ({msg})")

    return resp.json()


# ============================================================================
# Role resolution
# ============================================================================

async def resolve_role(
    *,
    uid: str,
    email: Optional[str],
    email_verified: bool,
    policy: Optional[AccessPolicy] = None,
) -> Role:
    """Map an authenticated account to exactly one role.

    Allow-listed admins skip the email verification check. Everyone else
    must be verified, and is then looked up in the movers and clients
    profile collections (both probed concurrently).
    """
    policy = policy or get_policy()
    if policy.is_admin(email):
        return Role.ADMIN
    if not email_verified:
        raise UnverifiedEmailError(UNVERIFIED_MESSAGE)

    is_mover, is_client = await asyncio.gather(
        _to_thread(lambda: directory.has_profile_with_email(uid, directory.MOVERS, email)),
        _to_thread(lambda: directory.has_profile_with_email(uid, directory.CLIENTS, email)),
    )
    if is_mover:
        return Role.MOVER
    if is_client:
        return Role.CLIENT
    raise RoleNotFoundError(ROLE_NOT_FOUND_MESSAGE)


async def user_from_token(token: str, policy: Optional[AccessPolicy] = None) -> Dict[str, Any]:
    token = str(token or "").strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")
    try:
        decoded = await _to_thread(lambda: _verify_id_token(token))
        uid = decoded.get("uid")
        if not uid:
            raise HTTPException(status_code=401, detail="Invalid token structure")
        email = decoded.get("email")
        role = await resolve_role(
            uid=uid,
            email=email,
            email_verified=bool(decoded.get("email_verified")),
            policy=policy,
        )
        return {"uid": uid, "email": email, "role": role.value}
    except UnverifiedEmailError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except RoleNotFoundError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Auth service timeout. Please try again.")
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("Auth error: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired token")


# ============================================================================
# Current User Dependency
# ============================================================================

async def get_current_user(
    authorization: str = Header(...),
    policy: AccessPolicy = Depends(get_policy),
) -> Dict[str, Any]:
    """Verifies the ID token and resolves the caller's role."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return await user_from_token(authorization.split(" ", 1)[1], policy=policy)


async def get_user_from_query_token(token: str, policy: AccessPolicy = Depends(get_policy)) -> Dict[str, Any]:
    """EventSource cannot send Authorization headers, so streams take ?token=."""
    return await user_from_token(token, policy=policy)


def require_role(*allowed_roles: Role, stream: bool = False):
    """Dependency factory that requires one of the given roles."""
    source: Callable = get_user_from_query_token if stream else get_current_user

    async def role_check(user: Dict[str, Any] = Depends(source)):
        if user.get("role") not in {r.value for r in allowed_roles}:
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return user
    return role_check


def require_admin(user: Dict[str, Any] = Depends(get_current_user)):
    """Require the admin role."""
    if user.get("role") != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


# ============================================================================
# Registration
# ============================================================================

def _role_conflict_message(existing: Role) -> str:
    label = "Mover" if existing == Role.MOVER else "Client"
    return (
        f"This account is already registered as a {label}. Each user can only have one role. "
        f"Please login as a {existing.value} or use a different email."
    )


def _send_verification(email: str) -> bool:
    try:
        link = _email_verification_link(email)
    except Exception as e:
        logger.warning("Could not generate verification link for %s: %s", email, e)
        return False
    return send_verification_email(email, link)


async def _register(
    *,
    role: Role,
    email: str,
    password: str,
    display_name: str,
    write_profile: Callable[[str], Any],
) -> SignupResponse:
    other_role = Role.CLIENT if role == Role.MOVER else Role.MOVER
    other_kind = directory.CLIENTS if role == Role.MOVER else directory.MOVERS

    try:
        uid = await _to_thread(lambda: _create_auth_user(email, password, display_name))
    except firebase_auth.EmailAlreadyExistsError:
        existing = await _to_thread(lambda: _get_auth_user_by_email(email))
        if existing is not None and await _to_thread(
            lambda: directory.has_profile_with_email(existing.uid, other_kind, None)
        ):
            raise HTTPException(status_code=409, detail=_role_conflict_message(other_role))
        raise HTTPException(status_code=400, detail="Email already registered")
    except firebase_admin.exceptions.FirebaseError as e:
        logger.warning("Signup failed for %s: %s", email, e)
        raise HTTPException(status_code=500, detail="Signup failed, please try again")

    # One role per account: undo the auth account if the other role already exists.
    try:
        conflict = await _to_thread(lambda: directory.has_profile_with_email(uid, other_kind, None))
        if not conflict:
            await _to_thread(lambda: write_profile(uid))
    except Exception as e:
        logger.warning("Signup profile write failed for %s: %s", uid, e)
        await _to_thread(lambda: _delete_auth_user(uid))
        raise HTTPException(status_code=500, detail="Signup failed, please try again")

    if conflict:
        await _to_thread(lambda: _delete_auth_user(uid))
        log_action(uid, "SIGNUP_ROLE_CONFLICT", f"Rejected {role.value} signup; already a {other_role.value}")
        raise HTTPException(status_code=409, detail=_role_conflict_message(other_role))

    sent = await _to_thread(lambda: _send_verification(email))
    log_action(uid, "SIGNUP", f"User signed up as {role.value}")
    return SignupResponse(
        user_id=uid,
        email=email,
        role=role,
        requires_email_verification=True,
        message=(
            "Registration successful! Please check your email to verify your account."
            if sent
            else "Registration successful! We could not send the verification email; please request a new one."
        ),
    )


@router.post("/register/client", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def register_client(payload: ClientSignup):
    email = str(payload.email).strip()
    return await _register(
        role=Role.CLIENT,
        email=email,
        password=payload.password,
        display_name=payload.name.strip(),
        write_profile=lambda uid: directory.create_client_profile(
            uid, name=payload.name.strip(), number=payload.number.strip(), email=email
        ),
    )


@router.post("/register/mover", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def register_mover(payload: MoverSignup, policy: AccessPolicy = Depends(get_policy)):
    email = str(payload.email).strip()
    # Allow-listed admin addresses are approved on creation.
    verification = VerificationStatus.APPROVED if policy.is_admin(email) else VerificationStatus.PENDING
    return await _register(
        role=Role.MOVER,
        email=email,
        password=payload.password,
        display_name=payload.company_name.strip(),
        write_profile=lambda uid: directory.create_mover_profile(
            uid,
            company_name=payload.company_name.strip(),
            service_area=payload.service_area.strip(),
            contact_number=payload.contact_number.strip(),
            email=email,
            verification_status=verification.value,
        ),
    )


# ============================================================================
# Login
# ============================================================================

def _token_response(auth_res: Dict[str, Any], *, uid: str, email: str, role: Role, policy: AccessPolicy) -> TokenResponse:
    return TokenResponse(
        access_token=auth_res.get("idToken") or "",
        refresh_token=auth_res.get("refreshToken") or "",
        expires_in=int(auth_res.get("expiresIn") or 3600),
        role=role,
        redirect_to=policy.redirect_for(role),
        user={"uid": uid, "email": email, "role": role.value},
    )


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, policy: AccessPolicy = Depends(get_policy)):
    """Password login for every role; the response says where to go next."""
    auth_res = await _firebase_verify_password(str(request.email).strip(), request.password)
    uid = auth_res.get("localId")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    email = auth_res.get("email") or str(request.email).strip()

    try:
        if policy.is_admin(email):
            role = Role.ADMIN
        else:
            record = await _to_thread(lambda: _get_auth_user(uid))
            role = await resolve_role(
                uid=uid, email=email, email_verified=bool(record.email_verified), policy=policy
            )
    except UnverifiedEmailError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except RoleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Auth service timeout. Please try again.")
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("Login error for %s: %s", uid, e)
        raise HTTPException(status_code=500, detail="Login failed, please try again")

    log_action(uid, "LOGIN", f"User logged in as {role.value}")
    return _token_response(auth_res, uid=uid, email=email, role=role, policy=policy)


@router.post("/admin/login", response_model=TokenResponse)
async def admin_login(request: LoginRequest, policy: AccessPolicy = Depends(get_policy)):
    email = str(request.email).strip()
    # Reject before touching the identity provider.
    if not policy.is_admin(email):
        raise HTTPException(status_code=403, detail=ADMIN_ONLY_MESSAGE)

    auth_res = await _firebase_verify_password(email, request.password)
    uid = auth_res.get("localId")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    log_action(uid, "ADMIN_LOGIN", "Admin logged in")
    return _token_response(auth_res, uid=uid, email=email, role=Role.ADMIN, policy=policy)


@router.get("/me", response_model=CurrentUser)
async def get_current_user_profile(
    user: Dict[str, Any] = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_policy),
):
    role = Role(user["role"])
    profile: Dict[str, Any] = {}
    if role == Role.MOVER:
        profile = directory.get_mover_doc(user["uid"]) or {}
    elif role == Role.CLIENT:
        profile = directory.get_client_doc(user["uid"]) or {}
    return CurrentUser(
        uid=user["uid"],
        email=user.get("email"),
        role=role,
        redirect_to=policy.redirect_for(role),
        profile=profile,
    )
