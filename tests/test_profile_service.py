from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from tapinfi.core.config import get_settings
from tapinfi.repositories.object_store import LocalObjectStore
from tapinfi.services.profile_service import (
    USERNAME_TAKEN,
    ImageUploadError,
    NotSignedInError,
    ProfileService,
    ProfileValidationError,
)
from tapinfi.services.session_service import SessionContext

VALID_FIELDS = {
    "username": "Alice",
    "full_name": "Alice Martins",
    "role": "Engineer",
    "company": "Acme",
    "phone_number": "+5511999998888",
    "website_url": "https://alice.dev",
    "linkedin_url": "https://www.linkedin.com/in/alice",
}


def _png(size=(1200, 1200), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def store(db_env):
    return LocalObjectStore(str(db_env / "uploads"))


@pytest.fixture()
def service(store):
    return ProfileService(store=store)


@pytest.fixture()
def owner(make_user, ctx_for):
    uid = make_user("owner@example.com", username=None, full_name=None)
    return ctx_for(uid)


def test_anonymous_cannot_edit(service):
    with pytest.raises(NotSignedInError):
        service.save_profile(SessionContext.anonymous(), VALID_FIELDS)


def test_save_profile_normalizes_and_locks(service, owner):
    profile = service.save_profile(owner, VALID_FIELDS)

    assert profile.username == "alice"
    assert profile.full_name == "Alice Martins"
    assert profile.is_username_locked is True
    assert profile.is_fullname_locked is True
    assert profile.publish is False
    assert profile.user_email == "owner@example.com"


def test_save_profile_reports_every_field(service, owner):
    fields = dict(
        VALID_FIELDS,
        username="a b",
        full_name="",
        phone_number="12",
        website_url="alice.dev",
        instagram_url="https://example.com/alice",
    )
    with pytest.raises(ProfileValidationError) as excinfo:
        service.save_profile(owner, fields)

    errors = excinfo.value.errors
    assert set(errors) == {"username", "full_name", "phone_number", "website_url", "instagram_url"}
    assert excinfo.value.values["company"] == "Acme"


def test_reserved_username_rejected(service, owner):
    with pytest.raises(ProfileValidationError) as excinfo:
        service.save_profile(owner, dict(VALID_FIELDS, username="wallet"))
    assert "reserved" in excinfo.value.errors["username"]


def test_duplicate_username(service, owner, make_user):
    make_user("first@example.com", username="alice")
    with pytest.raises(ProfileValidationError) as excinfo:
        service.save_profile(owner, VALID_FIELDS)
    assert excinfo.value.errors == {"username": USERNAME_TAKEN}


def test_locked_fields_keep_their_values(service, owner):
    service.save_profile(owner, VALID_FIELDS)
    updated = service.save_profile(owner, dict(VALID_FIELDS, username="mallory", full_name="Mallory", role="CTO"))

    assert updated.username == "alice"
    assert updated.full_name == "Alice Martins"
    assert updated.role == "CTO"


def test_unlocked_fields_can_change_again(service, owner, repo):
    service.save_profile(owner, VALID_FIELDS)
    repo.unlock_profile(owner.identity_id)

    updated = service.save_profile(owner, dict(VALID_FIELDS, username="alice.m", full_name="Alice M."))
    assert updated.username == "alice.m"
    assert updated.full_name == "Alice M."
    assert updated.is_username_locked is True


def test_upload_profile_image_resizes_and_replaces(service, owner, store, repo):
    first_url = service.upload_image(owner, "profile", _png(), "image/png")

    path = store.path_from_url(first_url)
    assert path.startswith(f"{owner.identity_id}/profile-")
    assert "?t=" in first_url
    with Image.open(Path(store.root, path)) as stored:
        assert stored.format == "JPEG"
        assert max(stored.size) <= 800

    second_url = service.upload_image(owner, "profile", _png(color=(0, 0, 255)), "image/png")
    assert not store.exists(path)
    assert store.exists(store.path_from_url(second_url))
    assert repo.get_profile(owner.identity_id).profile_pic_url == second_url


def test_upload_rejects_non_images(service, owner):
    with pytest.raises(ImageUploadError):
        service.upload_image(owner, "profile", b"GIF89a not really", "image/gif")
    with pytest.raises(ImageUploadError):
        service.upload_image(owner, "profile", b"plain text", "image/png")
    with pytest.raises(ImageUploadError):
        service.upload_image(owner, "avatar", _png(), "image/png")


def test_upload_rejects_huge_dimensions(service, owner, repo):
    buf = io.BytesIO()
    Image.new("1", (8000, 6000)).save(buf, format="PNG")

    with pytest.raises(ImageUploadError) as excinfo:
        service.upload_image(owner, "profile", buf.getvalue(), "image/png")
    assert "too large" in excinfo.value.message
    assert repo.get_profile(owner.identity_id).profile_pic_url is None


def test_upload_rejects_decompression_bomb(service, owner, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(ImageUploadError):
        service.upload_image(owner, "profile", _png((200, 200)), "image/png")


def test_upload_rejects_oversized_file(service, owner, monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "100")
    get_settings.cache_clear()
    with pytest.raises(ImageUploadError) as excinfo:
        service.upload_image(owner, "cover", _png(), "image/png")
    assert "too large" in excinfo.value.message


def test_remove_image(service, owner, store, repo):
    url = service.upload_image(owner, "cover", _png((2000, 1000)), "image/png")
    path = store.path_from_url(url)

    service.remove_image(owner, "cover")

    assert not store.exists(path)
    assert repo.get_profile(owner.identity_id).cover_pic_url is None
