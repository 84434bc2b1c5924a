from __future__ import annotations

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError

from tapinfi.db.models import AvailableTheme
from tapinfi.db.session import get_session
from tapinfi.domain.themes import ThemeKind, is_known_theme, parse_theme
from tapinfi.services.resolution_service import (
    NOT_FOUND_MESSAGE,
    UNPUBLISHED_MESSAGE,
    ResolutionService,
    ResolutionState,
)
from tapinfi.services.session_service import SessionContext


@pytest.fixture()
def resolver(db_env):
    return ResolutionService()


@pytest.fixture()
def alice(make_user):
    return make_user("alice@example.com", username="alice", full_name="Alice Martins", publish=True)


def _apply(repo, user_id, theme_id):
    repo.assign_theme(user_id, theme_id)
    assert repo.apply_theme(user_id, theme_id)


@pytest.mark.parametrize("username", ["ghost", "", "   ", "Alice-Unknown"])
def test_unknown_username_is_not_found(resolver, alice, username):
    result = resolver.resolve(username)
    assert result.state is ResolutionState.NOT_FOUND
    assert result.message == NOT_FOUND_MESSAGE
    assert result.profile is None


def test_unpublished_profile_hides_everything(resolver, make_user, ctx_for):
    uid = make_user("bob@example.com", username="bob", full_name="Bob Stone", publish=False)

    for ctx in (None, SessionContext.anonymous(), ctx_for(uid)):
        result = resolver.resolve("bob", ctx)
        assert result.state is ResolutionState.UNPUBLISHED
        assert result.message == UNPUBLISHED_MESSAGE
        assert result.profile is None
        assert result.theme is None


def test_admin_sees_unpublished_profile(resolver, make_user, ctx_for):
    make_user("bob@example.com", username="bob", publish=False)
    admin = make_user("root@example.com", username="root", is_admin=True)

    result = resolver.resolve("bob", ctx_for(admin))
    assert result.is_published
    assert result.profile.username == "bob"


def test_lookup_is_case_insensitive(resolver, alice):
    assert resolver.resolve(" ALICE ").profile.id == alice


def test_published_without_theme_row_is_neutral(resolver, alice):
    result = resolver.resolve("alice")
    assert result.state is ResolutionState.PUBLISHED
    assert result.theme is ThemeKind.NEUTRAL
    assert result.profile.full_name == "Alice Martins"


def test_published_with_green_theme(resolver, alice, themes):
    _apply(themes, alice, "GreenProfile")
    result = resolver.resolve("alice")
    assert result.theme is ThemeKind.GREEN_PROFILE
    assert result.theme.template == "themes/green_profile.html"


def test_theme_without_renderer_falls_back_to_neutral(resolver, alice, themes):
    _apply(themes, alice, "RetroWave")
    assert resolver.resolve("alice").theme is ThemeKind.NEUTRAL


def test_stale_themeid_column_is_ignored(resolver, alice, themes):
    themes.upsert_profile(alice, {"themeid": "EngineerTheme"})
    assert resolver.resolve("alice").theme is ThemeKind.NEUTRAL


def test_unassigned_theme_falls_back_to_neutral(resolver, alice, themes):
    _apply(themes, alice, "BlueTheme")
    themes.unassign_theme(alice, "BlueTheme")
    assert resolver.resolve("alice").theme is ThemeKind.NEUTRAL


def test_deleted_catalogue_theme_falls_back_to_neutral(resolver, alice, themes):
    _apply(themes, alice, "BlueTheme")
    with get_session() as session:
        session.execute(delete(AvailableTheme).where(AvailableTheme.id == "BlueTheme"))
        session.commit()
    assert resolver.resolve("alice").theme is ThemeKind.NEUTRAL


def test_storage_failure_reads_as_not_found(resolver, alice, monkeypatch):
    def boom(username):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(resolver.repository, "get_profile_by_username", boom)
    result = resolver.resolve("alice")
    assert result.state is ResolutionState.NOT_FOUND
    assert result.message == NOT_FOUND_MESSAGE


def test_every_theme_id_maps_to_exactly_one_kind():
    for kind in ThemeKind:
        if kind is ThemeKind.NEUTRAL:
            continue
        assert parse_theme(kind.value) is kind
    assert parse_theme(None) is ThemeKind.NEUTRAL
    assert parse_theme("neutral") is ThemeKind.NEUTRAL
    assert parse_theme("greenprofile") is ThemeKind.NEUTRAL
    assert is_known_theme("BlueTheme") is True
    assert is_known_theme("Vaporwave") is False
