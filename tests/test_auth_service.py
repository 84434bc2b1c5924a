from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import PASSWORD
from tapinfi.core.utils import utcnow
from tapinfi.db.models import ConfirmToken
from tapinfi.db.session import get_session
from tapinfi.services.auth_service import (
    AccountExistsError,
    AuthService,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    NotAdminError,
    PasswordPolicyError,
    RegistrationError,
    TokenInvalidError,
)


def _token_from(path: str) -> str:
    return parse_qs(urlparse(path).query)["token"][0]


def test_token_expired_respects_timezone_offset():
    svc = AuthService()
    created = datetime.now(timezone(timedelta(hours=-3)))

    assert svc._token_expired(created, ttl_seconds=900) is False
    assert svc._token_expired(created - timedelta(hours=1), ttl_seconds=900) is True
    # naive values (SQLite) are read as UTC
    naive = utcnow().replace(tzinfo=None)
    assert svc._token_expired(naive, ttl_seconds=900) is False


def test_sign_up_sends_confirmation_and_creates_profile(db_env, outbox, repo):
    result = AuthService().sign_up("New@Example.com", PASSWORD, next_path="/profile/alice")

    assert result.email == "new@example.com"
    assert result.email_sent is True
    assert "next=/profile/alice" in result.confirm_path
    assert len(outbox) == 1
    assert outbox[0]["to"] == "new@example.com"
    assert _token_from(result.confirm_path) in outbox[0]["text"]

    profile = repo.get_profile(result.identity_id)
    assert profile is not None
    assert profile.user_email == "new@example.com"
    assert profile.publish is False


@pytest.mark.parametrize("email,password,error", [
    ("not-an-email", PASSWORD, RegistrationError),
    ("short@example.com", "abc", PasswordPolicyError),
])
def test_sign_up_rejects_bad_input(db_env, outbox, email, password, error):
    with pytest.raises(error):
        AuthService().sign_up(email, password)
    assert outbox == []


def test_sign_up_existing_confirmed_account(db_env, outbox, make_user):
    make_user("taken@example.com", username="taken")
    with pytest.raises(AccountExistsError):
        AuthService().sign_up("taken@example.com", PASSWORD)


def test_sign_up_again_while_unconfirmed_reissues_token(db_env, outbox, repo):
    svc = AuthService()
    first = svc.sign_up("again@example.com", PASSWORD)
    second = svc.sign_up("again@example.com", "another-password")

    assert first.identity_id == second.identity_id
    assert _token_from(first.confirm_path) != _token_from(second.confirm_path)
    assert repo.get_confirm_token(_token_from(first.confirm_path)) is None
    assert len(outbox) == 2


def test_confirm_email_marks_identity_and_opens_session(db_env, outbox, repo):
    svc = AuthService()
    signup = svc.sign_up("confirm@example.com", PASSWORD)

    result = svc.confirm_email(_token_from(signup.confirm_path))

    assert result.identity_id == signup.identity_id
    assert repo.get_identity(signup.identity_id).email_confirmed_at is not None
    assert repo.get_user_session(result.session_token).identity_id == signup.identity_id
    with pytest.raises(TokenInvalidError):
        svc.confirm_email(_token_from(signup.confirm_path))


def test_confirm_email_rejects_expired_token(db_env, outbox, repo):
    svc = AuthService()
    signup = svc.sign_up("late@example.com", PASSWORD)
    token = _token_from(signup.confirm_path)
    with get_session() as session:
        entity = session.get(ConfirmToken, token)
        entity.created_at = utcnow() - timedelta(days=3)
        session.commit()

    with pytest.raises(TokenInvalidError):
        svc.confirm_email(token)
    assert repo.get_confirm_token(token) is None


def test_sign_in_requires_confirmed_email(db_env, outbox):
    svc = AuthService()
    svc.sign_up("pending@example.com", PASSWORD)
    outbox.clear()

    with pytest.raises(EmailNotConfirmedError) as excinfo:
        svc.sign_in("pending@example.com", PASSWORD)

    # the sign-up token is still valid, so nothing new is sent
    assert excinfo.value.email == "pending@example.com"
    assert excinfo.value.email_sent is False
    assert outbox == []


def test_sign_in_with_wrong_password(db_env, make_user):
    make_user("alice@example.com", username="alice")
    with pytest.raises(InvalidCredentialsError):
        AuthService().sign_in("alice@example.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError):
        AuthService().sign_in("nobody@example.com", PASSWORD)


def test_sign_in_success(db_env, make_user, repo):
    uid = make_user("alice@example.com", username="alice")
    result = AuthService().sign_in(" Alice@Example.com ", PASSWORD)
    assert result.identity_id == uid
    assert repo.get_user_session(result.session_token) is not None


def test_authenticate_admin_requires_admin_flag(db_env, make_user):
    make_user("user@example.com", username="plainuser")
    admin_id = make_user("boss@example.com", username="boss", is_admin=True)
    svc = AuthService()

    with pytest.raises(NotAdminError):
        svc.authenticate_admin("user@example.com", PASSWORD)
    assert svc.authenticate_admin("boss@example.com", PASSWORD).id == admin_id


def test_password_reset_flow(db_env, outbox, make_user, repo):
    uid = make_user("reset@example.com", username="resetme")
    old_session = AuthService().sign_in("reset@example.com", PASSWORD).session_token
    svc = AuthService()

    assert svc.request_password_reset("reset@example.com") is True
    assert svc.request_password_reset("ghost@example.com") is False
    assert len(outbox) == 1
    token = outbox[0]["text"].rsplit("token=", 1)[1].strip()
    assert svc.validate_reset_token(token) == uid

    assert svc.reset_password(token, "brand-new-secret") == "reset@example.com"
    assert repo.get_user_session(old_session) is None
    assert svc.validate_reset_token(token) is None
    with pytest.raises(TokenInvalidError):
        svc.reset_password(token, "brand-new-secret")
    assert svc.sign_in("reset@example.com", "brand-new-secret").identity_id == uid


def test_change_password(db_env, make_user):
    uid = make_user("change@example.com", username="changer")
    svc = AuthService()

    with pytest.raises(InvalidCredentialsError):
        svc.change_password(uid, "wrong-password", "new-password-1")
    with pytest.raises(PasswordPolicyError):
        svc.change_password(uid, PASSWORD, "short")

    svc.change_password(uid, PASSWORD, "new-password-1")
    with pytest.raises(InvalidCredentialsError):
        svc.sign_in("change@example.com", PASSWORD)
    assert svc.sign_in("change@example.com", "new-password-1").identity_id == uid
