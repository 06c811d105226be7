from pydantic_settings import BaseSettings
from pydantic import Field
import os
from pathlib import Path
import dotenv

# Always load moverconnect/.env (relative to this file), regardless of where the process is started.
_PKG_DIR = Path(__file__).resolve().parents[1]
dotenv.load_dotenv(dotenv_path=_PKG_DIR / ".env", override=False)


class Settings(BaseSettings):
    APP_HOST: str = Field(default=os.getenv("APP_HOST", "0.0.0.0"))
    APP_PORT: int = Field(default=int(os.getenv("APP_PORT", "8000")))
    FRONTEND_BASE_URL: str = Field(default=os.getenv("FRONTEND_BASE_URL", "http://localhost:5173"))
    LOG_LEVEL: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    # Firebase Admin SDK
    # A service account file wins over inline JSON; with neither, application default credentials are used.
    FIREBASE_CREDENTIALS_PATH: str = Field(default=os.getenv("FIREBASE_CREDENTIALS_PATH", str(_PKG_DIR / "serviceAccountKey.json")))
    FIREBASE_CREDENTIALS_JSON: str = Field(default=os.getenv("FIREBASE_CREDENTIALS_JSON", ""))
    FIREBASE_STORAGE_BUCKET: str = Field(default=os.getenv("FIREBASE_STORAGE_BUCKET", "moversconnect.appspot.com"))

    # Firebase Identity Toolkit (email/password verification)
    # Public API key; required for backend-driven password login.
    FIREBASE_WEB_API_KEY: str = Field(default=os.getenv("FIREBASE_WEB_API_KEY", ""))

    # Comma-separated allowlist of admin emails, compared exactly as written.
    ADMIN_EMAILS: str = Field(
        default=os.getenv("ADMIN_EMAILS", "admin@admin.com,admin@moversconnect.com,beastkee@example.com")
    )

    # Email settings
    SMTP_SERVER: str = Field(default=os.getenv("SMTP_SERVER", "smtp.gmail.com"))
    SMTP_PORT: int = Field(default=int(os.getenv("SMTP_PORT", "587")))
    SMTP_USERNAME: str = Field(default=os.getenv("SMTP_USERNAME", ""))
    # Gmail app passwords are often copied with spaces; SMTP login expects the raw token.
    SMTP_PASSWORD: str = Field(default=os.getenv("SMTP_PASSWORD", "").strip().replace(" ", ""))
    EMAIL_FROM: str = Field(default=os.getenv("EMAIL_FROM", "noreply@moversconnect.com"))

    # Live streams (SSE) send a comment line when idle this long.
    STREAM_HEARTBEAT_SECONDS: float = Field(default=float(os.getenv("STREAM_HEARTBEAT_SECONDS", "15")))

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
