"""Profile editing: validation, field locks and image uploads."""
from __future__ import annotations

import io
import logging
import secrets
import time
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy.exc import IntegrityError

from tapinfi.core.config import get_settings
from tapinfi.db.models import UserProfile
from tapinfi.domain.profile_fields import EDITABLE_FIELDS, field_errors
from tapinfi.domain.usernames import normalize_username, username_error
from tapinfi.repositories.object_store import LocalObjectStore, ObjectStoreError, get_object_store
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services.session_service import SessionContext

logger = logging.getLogger(__name__)

IMAGE_KINDS = {
    "profile": ("profile_pic_url", (800, 800)),
    "cover": ("cover_pic_url", (1600, 900)),
}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png"}
MAX_IMAGE_PIXELS = 40_000_000
USERNAME_TAKEN = "This username is already taken."


class ProfileError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotSignedInError(ProfileError):
    def __init__(self, message: str = "Sign in to edit your profile."):
        super().__init__(message)


class ProfileValidationError(ProfileError):
    """Carries one message per offending field plus the submitted values."""

    def __init__(self, errors: dict[str, str], values: dict[str, str] | None = None):
        super().__init__("Please fix the highlighted fields.")
        self.errors = errors
        self.values = values or {}


class ImageUploadError(ProfileError):
    pass


def _looks_like_image(data: bytes) -> bool:
    return data.startswith(b"\xff\xd8\xff") or data.startswith(b"\x89PNG\r\n\x1a\n")


def resize_to_jpeg(data: bytes, max_size: tuple[int, int]) -> bytes:
    try:
        image = Image.open(io.BytesIO(data))
        width, height = image.size
        if width * height > MAX_IMAGE_PIXELS:
            raise ImageUploadError("Image dimensions are too large.")
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageUploadError("Invalid image file.") from exc
    image = image.convert("RGB")
    image.thumbnail(max_size, Image.LANCZOS)
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=85, optimize=True)
    return buffer.getvalue()


@dataclass
class ProfileService:
    """Owner-side operations on the `users` row."""

    store: LocalObjectStore | None = None

    def __post_init__(self):
        self.repository = SQLRepository()

    def _store(self) -> LocalObjectStore:
        return self.store or get_object_store()

    def _require_identity(self, ctx: SessionContext) -> str:
        if not ctx.is_authenticated:
            raise NotSignedInError()
        return ctx.identity_id

    def load_own_profile(self, ctx: SessionContext) -> UserProfile:
        identity_id = self._require_identity(ctx)
        return self.repository.ensure_profile(identity_id, ctx.email)

    def save_profile(self, ctx: SessionContext, fields: dict) -> UserProfile:
        identity_id = self._require_identity(ctx)
        current = self.repository.ensure_profile(identity_id, ctx.email)
        values = {name: (fields.get(name) or "").strip() for name in EDITABLE_FIELDS}

        errors: dict[str, str] = {}
        if current.is_username_locked and current.username:
            values["username"] = current.username
        else:
            message = username_error(values["username"])
            if message:
                errors["username"] = message
            else:
                values["username"] = normalize_username(values["username"])
                if self.repository.username_taken(values["username"], exclude_user_id=identity_id):
                    errors["username"] = USERNAME_TAKEN
        if current.is_fullname_locked and current.full_name:
            values["full_name"] = current.full_name
        errors.update(field_errors(values))
        if errors:
            raise ProfileValidationError(errors, values)

        record = {name: (value or None) for name, value in values.items()}
        record["user_email"] = current.user_email or ctx.email
        record["is_username_locked"] = True
        record["is_fullname_locked"] = True
        try:
            return self.repository.upsert_profile(identity_id, record)
        except IntegrityError as exc:
            # lost a race for the same username
            raise ProfileValidationError({"username": USERNAME_TAKEN}, values) from exc

    def upload_image(self, ctx: SessionContext, kind: str, data: bytes, content_type: str | None) -> str:
        identity_id = self._require_identity(ctx)
        if kind not in IMAGE_KINDS:
            raise ImageUploadError("Unknown image kind.")
        column, max_size = IMAGE_KINDS[kind]
        if not data:
            raise ImageUploadError("Choose an image to upload.")
        if len(data) > get_settings().max_upload_bytes:
            raise ImageUploadError("Image is too large (max 2 MB).")
        if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES or not _looks_like_image(data):
            raise ImageUploadError("Only JPEG or PNG images are accepted.")
        payload = resize_to_jpeg(data, max_size)

        store = self._store()
        profile = self.repository.ensure_profile(identity_id, ctx.email)
        old_path = store.path_from_url(getattr(profile, column))
        path = f"{identity_id}/{kind}-{secrets.token_hex(6)}.jpg"
        try:
            store.upload(path, payload)
        except ObjectStoreError as exc:
            logger.error("Image upload failed for %s: %s", identity_id, exc)
            raise ImageUploadError("Could not store the image. Try again.") from exc
        if old_path and old_path != path and not store.remove(old_path):
            logger.info("Previous %s image %s was not removed", kind, old_path)
        url = f"{store.public_url(path)}?t={int(time.time())}"
        self.repository.upsert_profile(identity_id, {column: url})
        return url

    def remove_image(self, ctx: SessionContext, kind: str) -> None:
        identity_id = self._require_identity(ctx)
        if kind not in IMAGE_KINDS:
            raise ImageUploadError("Unknown image kind.")
        column, _ = IMAGE_KINDS[kind]
        profile = self.repository.get_profile(identity_id)
        if not profile:
            return
        store = self._store()
        path = store.path_from_url(getattr(profile, column))
        if path:
            store.remove(path)
        self.repository.upsert_profile(identity_id, {column: None})
