from __future__ import annotations

import pytest

from tapinfi.domain.themes import ThemeKind
from tapinfi.services.theme_service import (
    InvalidThemeError,
    ThemeExistsError,
    ThemeNotAssignedError,
    ThemeNotFoundError,
    ThemeService,
)


@pytest.fixture()
def service(themes):
    return ThemeService()


@pytest.fixture()
def user(make_user):
    return make_user("dana@example.com", username="dana", publish=True)


def test_create_theme_validates_and_rejects_duplicates(service):
    created = service.create_theme(" DirectorProfileTheme ", "Director", "https://cdn.example.com/d.png")
    assert created.id == "DirectorProfileTheme"
    assert created.image_url == "https://cdn.example.com/d.png"

    with pytest.raises(ThemeExistsError):
        service.create_theme("DirectorProfileTheme", "Director again")
    with pytest.raises(InvalidThemeError):
        service.create_theme("has space", "Bad")
    with pytest.raises(InvalidThemeError):
        service.create_theme("NoName", "  ")


def test_create_theme_without_renderer_is_accepted(service, caplog):
    created = service.create_theme("Vaporwave", "Vaporwave")
    assert created.id == "Vaporwave"
    assert "no renderer" in caplog.text
    assert [t.id for t in service.list_available()].count("Vaporwave") == 1


def test_assign_requires_known_theme_and_user(service, user):
    with pytest.raises(ThemeNotFoundError):
        service.assign(user, "Missing")
    with pytest.raises(ThemeNotFoundError):
        service.assign("no-such-user", "BlueTheme")
    assert service.assign(user, "BlueTheme") is True
    assert service.assign(user, "BlueTheme") is False


def test_toggle_assignment(service, user):
    assert service.toggle_assignment(user, "GreenProfile") is True
    assert service.assignments() == {user: {"GreenProfile"}}
    assert service.toggle_assignment(user, "GreenProfile") is False
    assert service.assignments() == {}


def test_apply_theme_is_idempotent(service, user):
    service.assign(user, "GreenProfile")
    service.assign(user, "EngineerTheme")

    service.apply_theme(user, "EngineerTheme")
    service.apply_theme(user, "EngineerTheme")

    listed = {t.id: t.applied for t in service.list_user_themes(user)}
    assert listed == {"EngineerTheme": True, "GreenProfile": False}
    assert service.current_theme(user) == "EngineerTheme"


def test_switching_theme_moves_the_applied_flag(service, user):
    service.assign(user, "GreenProfile")
    service.assign(user, "EngineerTheme")
    service.apply_theme(user, "GreenProfile")
    service.apply_theme(user, "EngineerTheme")

    applied = [t for t in service.list_user_themes(user) if t.applied]
    assert [t.id for t in applied] == ["EngineerTheme"]
    assert applied[0].kind is ThemeKind.ENGINEER


def test_apply_unassigned_theme_is_rejected(service, user):
    service.assign(user, "GreenProfile")
    service.apply_theme(user, "GreenProfile")

    with pytest.raises(ThemeNotAssignedError):
        service.apply_theme(user, "BlueTheme")
    assert service.current_theme(user) == "GreenProfile"


def test_assigned_theme_without_renderer_reports_neutral(service, user):
    service.assign(user, "RetroWave")
    (theme,) = service.list_user_themes(user)
    assert theme.kind is ThemeKind.NEUTRAL
