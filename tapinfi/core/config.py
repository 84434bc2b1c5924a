"""
Configuration helpers for the Tapinfi backend.

Routers and services read settings through get_settings() instead of touching
os.environ directly, so tests can swap the environment and clear the cache.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    database_url: str
    uploads_dir: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    session_ttl_seconds: int
    admin_session_ttl_seconds: int
    email_confirm_ttl_seconds: int
    password_reset_ttl: int
    max_upload_bytes: int
    wallet_page_size: int
    log_level: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    default_uploads = os.path.join(base_dir, "web", "uploads")

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./tapinfi.db"),
        uploads_dir=os.getenv("UPLOADS_DIR", default_uploads),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        admin_session_ttl_seconds=max(600, _int(os.getenv("ADMIN_SESSION_TTL_SECONDS", "43200"), 43200)),
        email_confirm_ttl_seconds=_int(os.getenv("EMAIL_CONFIRM_TTL_SECONDS", "86400"), 86400),
        password_reset_ttl=_int(os.getenv("PASSWORD_RESET_TTL", "3600"), 3600),
        max_upload_bytes=_int(os.getenv("MAX_UPLOAD_BYTES", str(2 * 1024 * 1024)), 2 * 1024 * 1024),
        wallet_page_size=max(1, _int(os.getenv("WALLET_PAGE_SIZE", "5"), 5)),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
