"""Validation rules for the editable contact/social fields of a profile."""
from __future__ import annotations

import re
import urllib.parse as urlparse

PHONE_RE = re.compile(r"^\+?[1-9]\d{7,14}$")
URL_RE = re.compile(r"^(https?:)//([\w.-]+)(:[0-9]+)?(/.*)?$", re.IGNORECASE)

SOCIAL_WHITELIST = (
    "linkedin.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "facebook.com",
    "wa.me",
    "whatsapp.com",
)

REQUIRED_FIELDS = {
    "full_name": "Full name is required.",
    "company": "Company is required.",
    "role": "Role / title is required.",
}

SOCIAL_FIELDS = {
    "linkedin_url": "Enter a valid LinkedIn URL.",
    "instagram_url": "Enter a valid Instagram URL.",
    "twitter_url": "Enter a valid X/Twitter URL.",
    "facebook_url": "Enter a valid Facebook URL.",
    "whatsapp_url": "Enter a valid WhatsApp link (wa.me or whatsapp.com).",
}

EDITABLE_FIELDS = (
    "username",
    "full_name",
    "role",
    "company",
    "about",
    "phone_number",
    "website_url",
    "portfolio_url",
    "facebook_url",
    "instagram_url",
    "linkedin_url",
    "twitter_url",
    "whatsapp_url",
)


def is_valid_phone(value: str | None) -> bool:
    if not value:
        return True
    return bool(PHONE_RE.match(value.strip()))


def is_valid_url(value: str | None) -> bool:
    if not value:
        return True
    return bool(URL_RE.match(value.strip()))


def is_valid_social_url(value: str | None) -> bool:
    if not value:
        return True
    if not is_valid_url(value):
        return False
    try:
        host = (urlparse.urlparse(value.strip()).hostname or "").lower()
    except ValueError:
        return False
    if host.startswith("www."):
        host = host[4:]
    return any(host == domain or host.endswith("." + domain) for domain in SOCIAL_WHITELIST)


def field_errors(fields: dict) -> dict[str, str]:
    """Collect per-field messages for everything except the username."""
    errors: dict[str, str] = {}
    for name, message in REQUIRED_FIELDS.items():
        if not (fields.get(name) or "").strip():
            errors[name] = message
    if not is_valid_phone(fields.get("phone_number")):
        errors["phone_number"] = "Enter a valid phone in international format (e.g. +919876543210)."
    if not is_valid_url(fields.get("website_url")):
        errors["website_url"] = "Enter a valid website URL starting with https://"
    if not is_valid_url(fields.get("portfolio_url")):
        errors["portfolio_url"] = "Enter a valid portfolio URL starting with https://"
    for name, message in SOCIAL_FIELDS.items():
        if not is_valid_social_url(fields.get(name)):
            errors[name] = message
    return errors
