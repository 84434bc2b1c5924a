import logging
import os
import urllib.parse as urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from tapinfi.admin_app import app as admin_app
from tapinfi.core.config import get_settings
from tapinfi.core.logging import configure_logging
from tapinfi.routers import auth as auth_router
from tapinfi.routers import cards as cards_router
from tapinfi.routers import pages as pages_router
from tapinfi.routers import profile as profile_router
from tapinfi.routers import themes as themes_router
from tapinfi.routers import wallet as wallet_router

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (CSP, anti clickjacking, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "style-src 'self' 'unsafe-inline' https://unpkg.com; "
            "script-src 'self' 'unsafe-inline'",
        )
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


BASE = os.path.dirname(__file__)
WEB = os.path.join(BASE, "web")
TEMPLATES = os.path.join(BASE, "templates")


def _error_page(request: Request, status_code: int, heading: str, body: str) -> Response:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "message.html",
        {"title": heading, "heading": heading, "body": body, "action_href": "/", "action_label": "Back home"},
        status_code=status_code,
    )


def create_app() -> FastAPI:
    """Build the public app with the admin dashboard mounted at /admin."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Tapinfi Cards")

    os.makedirs(settings.uploads_dir, exist_ok=True)
    app.mount("/static/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
    app.mount("/static", StaticFiles(directory=WEB), name="static")
    app.state.templates = Jinja2Templates(directory=TEMPLATES)

    allowed_cors = {settings.public_base_url}
    if settings.app_env != "prod":
        allowed_cors.update(
            {
                "http://localhost:8000",
                "http://127.0.0.1:8000",
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            }
        )
    allowed_cors = {origin for origin in allowed_cors if origin}
    if allowed_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(allowed_cors),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")

    @app.exception_handler(SQLAlchemyError)
    async def storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_page(request, 500, "Something went wrong", "Please try again in a moment.")

    app.include_router(pages_router.router)
    app.include_router(auth_router.router)
    app.include_router(profile_router.router)
    app.include_router(wallet_router.router)
    app.include_router(themes_router.router)
    app.include_router(cards_router.router)
    app.mount("/admin", admin_app, name="admin")

    host = (urlparse.urlparse(settings.public_base_url).hostname or "").lower()
    logger.info("Tapinfi ready (env=%s, host=%s)", settings.app_env, host or "-")
    return app


app = create_app()
