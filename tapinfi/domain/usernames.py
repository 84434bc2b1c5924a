"""Domain helpers for username validation."""
from __future__ import annotations

import re

USERNAME_PATTERN = re.compile(r"[a-z0-9_.-]{3,30}")
RESERVED_USERNAMES = {
    "admin",
    "auth",
    "profile",
    "wallet",
    "themes",
    "static",
    "health",
    "confirm-email",
    "forgot-password",
    "reset-password",
}


def normalize_username(value: str | None) -> str:
    return (value or "").strip().lower()


def username_error(value: str | None) -> str | None:
    """Return a user-facing message when the username is unusable, else None."""
    raw = value or ""
    if not raw.strip():
        return "Username is required."
    if re.search(r"\s", raw.strip()):
        return "Username cannot contain spaces."
    candidate = normalize_username(raw)
    if not USERNAME_PATTERN.fullmatch(candidate):
        return "Use 3-30 characters: letters, digits, '.', '_' or '-'."
    if candidate in RESERVED_USERNAMES:
        return "This username is reserved."
    return None
