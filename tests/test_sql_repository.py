"""
Smoke tests for the SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func, select

from tapinfi.core.utils import utcnow
from tapinfi.db.models import UserTheme
from tapinfi.db.session import get_session


def _applied_rows(user_id: str) -> int:
    with get_session() as session:
        stmt = select(func.count(UserTheme.id)).where(UserTheme.user_id == user_id, UserTheme.applied.is_(True))
        return session.execute(stmt).scalar_one()


def test_identity_and_profile_roundtrip(repo):
    identity = repo.create_identity("Ana@Example.com", "hash")
    assert repo.get_identity_by_email("ana@example.com").id == identity.id

    profile = repo.ensure_profile(identity.id, "ana@example.com")
    assert profile.publish is False
    assert repo.ensure_profile(identity.id, "other@example.com").user_email == "ana@example.com"

    repo.upsert_profile(identity.id, {"username": "ana", "full_name": "Ana Lima"})
    assert repo.get_profile_by_username("ana").full_name == "Ana Lima"
    assert repo.username_taken("ana") is True
    assert repo.username_taken("ana", exclude_user_id=identity.id) is False


def test_sessions_and_tokens(repo):
    identity = repo.create_identity("bob@example.com", "hash")
    token = repo.create_user_session(identity.id, utcnow() + timedelta(hours=1))
    assert repo.get_user_session(token).identity_id == identity.id
    repo.delete_sessions_for_identity(identity.id)
    assert repo.get_user_session(token) is None

    confirm = repo.create_confirm_token(identity.id)
    assert repo.get_confirm_token_for_identity(identity.id).token == confirm
    repo.delete_confirm_tokens_for_identity(identity.id)
    assert repo.get_confirm_token(confirm) is None

    reset = repo.create_reset_token(identity.id)
    assert repo.get_reset_token(reset).identity_id == identity.id
    repo.delete_reset_token(reset)
    assert repo.get_reset_token(reset) is None


def test_list_profiles_searches_email_and_username(make_user, repo):
    make_user("carla@example.com", username="carla")
    make_user("dan@corp.io", username="danny")

    assert [p.username for p in repo.list_profiles("CORP")] == ["danny"]
    assert [p.username for p in repo.list_profiles("carl")] == ["carla"]
    assert len(repo.list_profiles("")) == 2


def test_apply_theme_keeps_a_single_applied_row(make_user, themes):
    uid = make_user("eve@example.com", username="eve")
    themes.assign_theme(uid, "GreenProfile")
    themes.assign_theme(uid, "BlueTheme")

    assert themes.apply_theme(uid, "GreenProfile") is True
    assert themes.apply_theme(uid, "BlueTheme") is True
    assert _applied_rows(uid) == 1
    assert themes.get_applied_theme_id(uid) == "BlueTheme"
    assert themes.get_profile(uid).themeid == "BlueTheme"


def test_apply_theme_refuses_unassigned_theme(make_user, themes):
    uid = make_user("fay@example.com", username="fay")
    assert themes.apply_theme(uid, "GreenProfile") is False
    assert _applied_rows(uid) == 0
    assert themes.get_profile(uid).themeid is None


def test_unassigning_applied_theme_clears_cache(make_user, themes):
    uid = make_user("gus@example.com", username="gus")
    themes.assign_theme(uid, "EngineerTheme")
    themes.apply_theme(uid, "EngineerTheme")

    assert themes.unassign_theme(uid, "EngineerTheme") is True
    assert themes.get_applied_theme_id(uid) is None
    assert themes.get_profile(uid).themeid is None
    assert themes.unassign_theme(uid, "EngineerTheme") is False


def test_assign_theme_twice_reports_existing(make_user, themes):
    uid = make_user("hal@example.com", username="hal")
    assert themes.assign_theme(uid, "BlueTheme") is True
    assert themes.assign_theme(uid, "BlueTheme") is False
    assert themes.list_assignments() == {uid: {"BlueTheme"}}


def test_wallet_card_pair_is_unique(make_user, repo):
    uid = make_user("ivy@example.com", username="ivy")
    assert repo.insert_wallet_card(uid, "alice") is True
    assert repo.insert_wallet_card(uid, "alice") is False
    assert [c.card_username for c in repo.list_wallet_cards(uid)] == ["alice"]


def test_wallet_user_insert_is_idempotent(make_user, repo):
    uid = make_user("jo@example.com", username="jo")
    first = repo.insert_wallet_user(uid, "Jo", "jo@example.com", False)
    assert first is not None
    assert repo.insert_wallet_user(uid, "Jo again", "jo@example.com", True) is None
    assert repo.get_wallet_user(uid).full_name == "Jo"
