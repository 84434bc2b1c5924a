"""
Authentication and identity related use cases.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote

from tapinfi.core.config import get_settings
from tapinfi.core.mailer import send_email
from tapinfi.core.security import MIN_PASSWORD_LENGTH, hash_password, needs_rehash, verify_password
from tapinfi.core.utils import absolute_url, as_utc, utcnow
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services.session_service import delete_session, issue_session

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for authentication-related exceptions."""

    default_message = "Authentication failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RegistrationError(AuthError):
    default_message = "Could not create the account."


class AccountExistsError(AuthError):
    default_message = "An account with this email already exists."


class InvalidCredentialsError(AuthError):
    default_message = "Invalid email or password."


class EmailNotConfirmedError(AuthError):
    default_message = "Confirm your email before signing in."

    def __init__(self, email: str, email_sent: bool, message: str | None = None):
        super().__init__(message)
        self.email = email
        self.email_sent = email_sent


class TokenInvalidError(AuthError):
    default_message = "Invalid or expired link."


class PasswordPolicyError(AuthError):
    default_message = f"Password must have at least {MIN_PASSWORD_LENGTH} characters."


class NotAdminError(AuthError):
    default_message = "This account has no access to the admin dashboard."


@dataclass
class SignUpResult:
    identity_id: str
    email: str
    confirm_path: str
    email_sent: bool


@dataclass
class SignInSuccess:
    identity_id: str
    email: str
    session_token: str


@dataclass
class ConfirmResult:
    identity_id: str
    email: str
    session_token: str


def _normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


@dataclass
class AuthService:
    """Handles sign-up, sign-in, email confirmation and password reset flows."""

    def __post_init__(self):
        self.repository = SQLRepository()

    @property
    def settings(self):
        return get_settings()

    # -------------------------------------- helpers --------------------------------------
    def _token_expired(self, created_at: datetime | None, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        created = as_utc(created_at)
        if not created:
            return True
        return created + timedelta(seconds=ttl_seconds) < utcnow()

    def _ensure_confirm_token(self, identity_id: str, force_new: bool = False) -> tuple[str, bool]:
        ttl = self.settings.email_confirm_ttl_seconds
        existing = self.repository.get_confirm_token_for_identity(identity_id)
        if existing and not force_new and not self._token_expired(existing.created_at, ttl):
            return existing.token, False
        self.repository.delete_confirm_tokens_for_identity(identity_id)
        return self.repository.create_confirm_token(identity_id), True

    def _confirm_path(self, token: str, next_path: str | None = None) -> str:
        path = f"/confirm-email?token={quote(token, safe='')}"
        if next_path:
            path += f"&next={quote(next_path, safe='/')}"
        return path

    def _send_confirmation(self, email: str, token: str, next_path: str | None = None) -> bool:
        confirm_url = absolute_url(self._confirm_path(token, next_path))
        safe_url = html.escape(confirm_url)
        html_body = f"""
        <p>Hi!</p>
        <p>Confirm your email to start using your Tapinfi card:</p>
        <p><a href="{safe_url}" style="background:#0ea5e9;color:#fff;padding:12px 18px;border-radius:8px;text-decoration:none;">Confirm my email</a></p>
        <p>If the button does not work, paste this link in your browser:</p>
        <p><a href="{safe_url}">{safe_url}</a></p>
        """
        return send_email("Confirm your email - Tapinfi", email, html_body, f"Confirm your email: {confirm_url}")

    def _check_password(self, password: str) -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise PasswordPolicyError()

    # -------------------------------------- sign-up --------------------------------------
    def sign_up(self, email: str, password: str, next_path: str | None = None) -> SignUpResult:
        raw_email = _normalize_email(email)
        if not raw_email or "@" not in raw_email:
            raise RegistrationError("Enter a valid email address.")
        self._check_password(password)
        identity = self.repository.get_identity_by_email(raw_email)
        if identity and identity.email_confirmed_at:
            raise AccountExistsError()
        if identity:
            # unconfirmed account: take the new password and re-send the link
            self.repository.update_identity_password(identity.id, hash_password(password))
        else:
            identity = self.repository.create_identity(raw_email, hash_password(password))
        self.repository.ensure_profile(identity.id, raw_email)
        token, _ = self._ensure_confirm_token(identity.id, force_new=True)
        email_sent = self._send_confirmation(raw_email, token, next_path)
        logger.info("Sign-up for %s (confirmation sent: %s)", raw_email, email_sent)
        return SignUpResult(
            identity_id=identity.id,
            email=raw_email,
            confirm_path=self._confirm_path(token, next_path),
            email_sent=email_sent,
        )

    # -------------------------------------- confirmation --------------------------------------
    def confirm_email(self, token: str) -> ConfirmResult:
        token_value = (token or "").strip()
        if not token_value:
            raise TokenInvalidError()
        entity = self.repository.get_confirm_token(token_value)
        if not entity or self._token_expired(entity.created_at, self.settings.email_confirm_ttl_seconds):
            if entity:
                self.repository.delete_confirm_token(token_value)
            raise TokenInvalidError()
        identity = self.repository.get_identity(entity.identity_id)
        if not identity:
            self.repository.delete_confirm_token(token_value)
            raise TokenInvalidError()
        self.repository.set_identity_confirmed(identity.id)
        self.repository.delete_confirm_tokens_for_identity(identity.id)
        return ConfirmResult(identity_id=identity.id, email=identity.email, session_token=issue_session(identity.id))

    # -------------------------------------- sign-in --------------------------------------
    def _authenticate(self, email: str, password: str):
        raw_email = _normalize_email(email)
        identity = self.repository.get_identity_by_email(raw_email) if raw_email else None
        if not identity or not verify_password(password or "", identity.password_hash):
            logger.info("Failed sign-in for %s", raw_email or "<empty>")
            raise InvalidCredentialsError()
        if needs_rehash(identity.password_hash):
            self.repository.update_identity_password(identity.id, hash_password(password))
        return identity

    def sign_in(self, email: str, password: str) -> SignInSuccess:
        identity = self._authenticate(email, password)
        if not identity.email_confirmed_at:
            token, created = self._ensure_confirm_token(identity.id)
            email_sent = self._send_confirmation(identity.email, token) if created else False
            raise EmailNotConfirmedError(identity.email, email_sent)
        return SignInSuccess(identity_id=identity.id, email=identity.email, session_token=issue_session(identity.id))

    def authenticate_admin(self, email: str, password: str):
        """Check credentials for the admin dashboard; returns the identity."""
        identity = self._authenticate(email, password)
        profile = self.repository.get_profile(identity.id)
        if not identity.email_confirmed_at or not profile or not profile.is_admin:
            logger.warning("Non-admin %s tried to sign in to the dashboard", identity.email)
            raise NotAdminError()
        return identity

    def sign_out(self, session_token: Optional[str]) -> None:
        delete_session(session_token)

    # -------------------------------------- password --------------------------------------
    def request_password_reset(self, email: str) -> bool:
        """Send a reset link when the account exists; callers never learn which."""
        raw = _normalize_email(email)
        identity = self.repository.get_identity_by_email(raw) if raw else None
        if not identity:
            return False
        self.repository.delete_reset_tokens_for_identity(identity.id)
        token = self.repository.create_reset_token(identity.id)
        reset_url = absolute_url(f"/reset-password?token={quote(token, safe='')}")
        safe_url = html.escape(reset_url)
        html_body = f"""
        <p>Hi!</p>
        <p>We received a request to reset your password.</p>
        <p><a href="{safe_url}" style="background:#0ea5e9;color:#fff;padding:12px 18px;border-radius:8px;text-decoration:none;">Reset password</a></p>
        <p>If it was not you, ignore this message.</p>
        """
        send_email("Reset your password - Tapinfi", identity.email, html_body, f"Reset your password: {reset_url}")
        return True

    def validate_reset_token(self, token: str) -> str | None:
        """Return the identity id the token belongs to, or None when unusable."""
        token = (token or "").strip()
        if not token:
            return None
        entity = self.repository.get_reset_token(token)
        if not entity:
            return None
        if self._token_expired(entity.created_at, self.settings.password_reset_ttl):
            self.repository.delete_reset_token(token)
            return None
        return entity.identity_id

    def reset_password(self, token: str, password: str) -> str:
        self._check_password(password)
        identity_id = self.validate_reset_token(token)
        identity = self.repository.get_identity(identity_id) if identity_id else None
        if not identity:
            raise TokenInvalidError()
        self.repository.update_identity_password(identity.id, hash_password(password))
        self.repository.delete_reset_tokens_for_identity(identity.id)
        self.repository.delete_sessions_for_identity(identity.id)
        return identity.email

    def change_password(self, identity_id: str, current_password: str, new_password: str) -> None:
        identity = self.repository.get_identity(identity_id)
        if not identity or not verify_password(current_password or "", identity.password_hash):
            raise InvalidCredentialsError("Current password is incorrect.")
        self._check_password(new_password)
        self.repository.update_identity_password(identity.id, hash_password(new_password))
