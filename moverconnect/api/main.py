from __future__ import annotations

# File: moverconnect/api/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# --- Local Imports ---
from .settings import settings
from .policy import policy

# Auth/DB + Routers
from .auth import router as auth_router
from .admin import router as admin_router
from .marketplace.router import router as marketplace_router
from .move_requests import router as move_requests_router
from .movers import router as movers_router
from .profiles import router as profiles_router

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --- FastAPI App ---

app = FastAPI(title="Movers Connect API")

app.add_middleware(
    CORSMiddleware,
    # Explicit origins are required when using credentials (Authorization headers).
    # FRONTEND_BASE_URL is configurable via moverconnect/.env.
    allow_origins=list({
        str(getattr(settings, 'FRONTEND_BASE_URL', '') or '').rstrip('/'),
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    } - {''}),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


# Register Routers at the end to keep clean separation
app.include_router(auth_router)
app.include_router(movers_router)
app.include_router(profiles_router)
app.include_router(move_requests_router)
app.include_router(marketplace_router)
app.include_router(admin_router)


@app.on_event("startup")
def startup_events():
    logger.info(
        "Movers Connect API starting; admins=%d smtp_configured=%s",
        len(policy.admin_emails),
        bool(settings.SMTP_USERNAME),
    )
