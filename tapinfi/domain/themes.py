"""Closed set of theme renderers a published profile can be shown with."""
from __future__ import annotations

from enum import Enum


class ThemeKind(str, Enum):
    """Theme identifiers understood by the public profile page.

    The value is the identifier admins store in `available_themes.id`.
    NEUTRAL is never stored: it is the fallback for a published profile
    whose applied theme is missing or unknown.
    """

    GREEN_PROFILE = "GreenProfile"
    DIRECTOR = "DirectorProfileTheme"
    PINK_BUSINESS_CARD = "PinkBusinessCardTheme"
    BUSINESS = "BusinessTheme"
    ENGINEER = "EngineerTheme"
    BLUE = "BlueTheme"
    NEUTRAL = "neutral"

    @property
    def template(self) -> str:
        return THEME_TEMPLATES[self]


THEME_TEMPLATES = {
    ThemeKind.GREEN_PROFILE: "themes/green_profile.html",
    ThemeKind.DIRECTOR: "themes/director.html",
    ThemeKind.PINK_BUSINESS_CARD: "themes/pink_business_card.html",
    ThemeKind.BUSINESS: "themes/business.html",
    ThemeKind.ENGINEER: "themes/engineer.html",
    ThemeKind.BLUE: "themes/blue.html",
    ThemeKind.NEUTRAL: "themes/neutral.html",
}


def parse_theme(identifier: str | None) -> ThemeKind:
    """Map a stored theme id to its renderer; anything unrecognised is NEUTRAL."""
    value = (identifier or "").strip()
    if not value:
        return ThemeKind.NEUTRAL
    for kind in ThemeKind:
        if kind is not ThemeKind.NEUTRAL and kind.value == value:
            return kind
    return ThemeKind.NEUTRAL


def is_known_theme(identifier: str | None) -> bool:
    return parse_theme(identifier) is not ThemeKind.NEUTRAL
