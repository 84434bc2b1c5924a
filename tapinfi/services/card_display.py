"""Helpers for public card rendering: links, vCard export and QR codes."""
from __future__ import annotations

import io
import re

import qrcode

from tapinfi.core.utils import absolute_url
from tapinfi.db.models import UserProfile

DEFAULT_AVATAR = "/static/img/avatar.svg"
DEFAULT_ORG = "Tapinfi"

SOCIAL_LINKS = (
    ("linkedin_url", "LinkedIn"),
    ("instagram_url", "Instagram"),
    ("twitter_url", "X"),
    ("facebook_url", "Facebook"),
    ("whatsapp_url", "WhatsApp"),
)


def normalize_external_url(value: str | None) -> str:
    """
    Make sure external links carry a scheme (https:// by default).
    mailto: and tel: links are kept untouched.
    """
    v = (value or "").strip()
    if not v:
        return ""
    if re.match(r"^(https?://|mailto:|tel:)", v, re.IGNORECASE):
        return v
    return "https://" + v.lstrip("/")


def resolve_photo(photo: str | None) -> str:
    if photo and str(photo).strip():
        return photo
    return DEFAULT_AVATAR


def profile_share_url(username: str) -> str:
    return absolute_url(f"/profile/{username}")


def social_links(profile: UserProfile) -> list[tuple[str, str]]:
    links = []
    for attr, label in SOCIAL_LINKS:
        href = normalize_external_url(getattr(profile, attr, None))
        if href:
            links.append((label, href))
    return links


def _vcard_escape(value: str | None) -> str:
    text = (value or "").replace("\\", "\\\\")
    text = text.replace("\r\n", "\\n").replace("\n", "\\n")
    return text.replace(",", "\\,").replace(";", "\\;")


def build_vcard(profile: UserProfile) -> str:
    """vCard 3.0 text for "add to contacts"."""
    name = _vcard_escape(profile.full_name or profile.username)
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"N:{name};;;;",
        f"FN:{name}",
        f"ORG:{_vcard_escape(profile.company or DEFAULT_ORG)}",
    ]
    if profile.role:
        lines.append(f"TITLE:{_vcard_escape(profile.role)}")
    if profile.phone_number:
        lines.append(f"TEL;TYPE=CELL:{_vcard_escape(profile.phone_number)}")
    if profile.user_email:
        lines.append(f"EMAIL;TYPE=INTERNET:{_vcard_escape(profile.user_email)}")
    photo = (profile.profile_pic_url or "").strip()
    if photo:
        lines.append(f"PHOTO;VALUE=URI:{absolute_url(photo)}")
    website = normalize_external_url(profile.website_url)
    if website:
        lines.append(f"URL:{website}")
    lines.append(f"URL:{profile_share_url(profile.username)}")
    lines.append("END:VCARD")
    return "\r\n".join(lines) + "\r\n"


def qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
