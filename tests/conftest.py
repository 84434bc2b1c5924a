from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the tapinfi package importable when running tests from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tapinfi.core import config as core_config
from tapinfi.core.rate_limiter import reset_limits
from tapinfi.core.security import hash_password
from tapinfi.db import models, session as db_session
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services import auth_service as auth_service_module
from tapinfi.services.session_service import build_session_context, issue_session

PASSWORD = "correct-horse"
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Point DATABASE_URL at a throwaway SQLite file and build the schema."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver")
    for var in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "SMTP_FROM"):
        monkeypatch.delenv(var, raising=False)
    core_config.get_settings.cache_clear()
    db_session.reset_engine()
    reset_limits()

    engine = db_session.get_engine()
    models.Base.metadata.create_all(bind=engine)

    yield tmp_path

    models.Base.metadata.drop_all(bind=engine)
    db_session.reset_engine()
    core_config.get_settings.cache_clear()


@pytest.fixture()
def outbox(monkeypatch):
    """Capture outgoing emails instead of talking to SMTP."""
    sent: list[dict] = []

    def fake_send(subject, to_email, html_body, text_body=None):
        sent.append({"subject": subject, "to": to_email, "html": html_body, "text": text_body or ""})
        return True

    monkeypatch.setattr(auth_service_module, "send_email", fake_send)
    return sent


@pytest.fixture()
def repo(db_env):
    return SQLRepository()


@pytest.fixture()
def make_user(db_env):
    """Create a confirmed identity with a profile row; returns the identity id."""
    repo = SQLRepository()

    def _make(email: str, *, username: str | None = None, full_name: str | None = None,
              publish: bool = False, is_admin: bool = False, confirmed: bool = True, **fields) -> str:
        identity = repo.create_identity(email, _PASSWORD_HASH)
        if confirmed:
            repo.set_identity_confirmed(identity.id)
        values = {
            "user_email": email,
            "username": username,
            "full_name": full_name or (username or "").title() or None,
            "publish": publish,
            "is_admin": is_admin,
        }
        values.update(fields)
        repo.upsert_profile(identity.id, values)
        return identity.id

    return _make


@pytest.fixture()
def ctx_for(db_env):
    return build_session_context


@pytest.fixture()
def themes(repo):
    """Register every renderable theme id plus one with no renderer."""
    for theme_id, name in (
        ("GreenProfile", "Green profile"),
        ("BlueTheme", "Blue"),
        ("EngineerTheme", "Engineer"),
        ("RetroWave", "Retro wave"),
    ):
        repo.create_available_theme(theme_id, name)
    return repo


@pytest.fixture()
def client(db_env, outbox):
    from fastapi.testclient import TestClient

    from tapinfi.app import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


def sign_in_as(client, identity_id: str) -> None:
    client.cookies.set("session", issue_session(identity_id))


def csrf_token(client, path: str = "/forgot-password") -> str:
    """Fetch a page so the CSRF cookie is set and return its value."""
    client.get(path, follow_redirects=False)
    token = client.cookies.get("csrf_token")
    assert token, "csrf cookie was not set"
    return token
