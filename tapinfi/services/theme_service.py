"""Theme catalogue, per-user assignment and the applied theme."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from tapinfi.db.models import AvailableTheme
from tapinfi.domain.themes import ThemeKind, is_known_theme, parse_theme
from tapinfi.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

THEME_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ThemeError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidThemeError(ThemeError):
    pass


class ThemeExistsError(ThemeError):
    pass


class ThemeNotFoundError(ThemeError):
    pass


class ThemeNotAssignedError(ThemeError):
    pass


@dataclass
class AssignedTheme:
    id: str
    name: str
    image_url: Optional[str]
    applied: bool

    @property
    def kind(self) -> ThemeKind:
        return parse_theme(self.id)


@dataclass
class ThemeService:
    def __post_init__(self):
        self.repository = SQLRepository()

    def list_available(self) -> list[AvailableTheme]:
        return self.repository.list_available_themes()

    def create_theme(self, theme_id: str, name: str, image_url: str | None = None) -> AvailableTheme:
        theme_id = (theme_id or "").strip()
        name = (name or "").strip()
        if not THEME_ID_RE.match(theme_id):
            raise InvalidThemeError("Theme id must be 1-64 letters, digits, '_' or '-'.")
        if not name:
            raise InvalidThemeError("Theme name is required.")
        if not is_known_theme(theme_id):
            logger.warning("Theme %s has no renderer; it will display with the neutral template", theme_id)
        created = self.repository.create_available_theme(theme_id, name, (image_url or "").strip() or None)
        if created is None:
            raise ThemeExistsError(f"Theme {theme_id} already exists.")
        return created

    def assign(self, user_id: str, theme_id: str) -> bool:
        if not self.repository.get_available_theme(theme_id):
            raise ThemeNotFoundError("Theme not found.")
        if not self.repository.get_profile(user_id):
            raise ThemeNotFoundError("User not found.")
        return self.repository.assign_theme(user_id, theme_id)

    def unassign(self, user_id: str, theme_id: str) -> bool:
        return self.repository.unassign_theme(user_id, theme_id)

    def toggle_assignment(self, user_id: str, theme_id: str) -> bool:
        """Flip the assignment; returns True when the theme is assigned afterwards."""
        if self.repository.get_user_theme(user_id, theme_id):
            self.unassign(user_id, theme_id)
            return False
        self.assign(user_id, theme_id)
        return True

    def list_user_themes(self, user_id: str) -> list[AssignedTheme]:
        return [
            AssignedTheme(id=theme.id, name=theme.name, image_url=theme.image_url, applied=applied)
            for theme, applied in self.repository.list_user_themes(user_id)
        ]

    def apply_theme(self, user_id: str, theme_id: str) -> None:
        if not self.repository.apply_theme(user_id, theme_id):
            raise ThemeNotAssignedError("This theme is not available for your account.")
        logger.info("User %s applied theme %s", user_id, theme_id)

    def current_theme(self, user_id: str) -> Optional[str]:
        return self.repository.get_applied_theme_id(user_id)

    def assignments(self) -> dict[str, set[str]]:
        return self.repository.list_assignments()
