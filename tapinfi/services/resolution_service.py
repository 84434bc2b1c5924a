"""
Public profile resolution.

Given a requested username decide what the visitor may see:

* NOT_FOUND   - no row with that username, or the lookup itself failed;
* UNPUBLISHED - the row exists but is not published and the visitor is no admin;
* PUBLISHED   - the row is visible, rendered with exactly one ThemeKind.

Each request re-runs the whole resolution; nothing is cached between calls.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from tapinfi.db.models import UserProfile
from tapinfi.domain.themes import ThemeKind, parse_theme
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services.session_service import SessionContext

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Profile not found."
UNPUBLISHED_MESSAGE = "This profile is not published yet."


class ResolutionState(str, enum.Enum):
    NOT_FOUND = "not_found"
    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"


@dataclass(frozen=True)
class ProfileResolution:
    state: ResolutionState
    theme: Optional[ThemeKind] = None
    profile: Optional[UserProfile] = None
    message: str = ""

    @property
    def is_published(self) -> bool:
        return self.state is ResolutionState.PUBLISHED


_NOT_FOUND = ProfileResolution(ResolutionState.NOT_FOUND, message=NOT_FOUND_MESSAGE)
_UNPUBLISHED = ProfileResolution(ResolutionState.UNPUBLISHED, message=UNPUBLISHED_MESSAGE)


@dataclass
class ResolutionService:
    def __post_init__(self):
        self.repository = SQLRepository()

    def resolve(self, username: str, ctx: SessionContext | None = None) -> ProfileResolution:
        ctx = ctx or SessionContext.anonymous()
        value = (username or "").strip().lower()
        if not value:
            return _NOT_FOUND
        try:
            profile = self.repository.get_profile_by_username(value)
        except SQLAlchemyError:
            logger.exception("Profile lookup failed for %s", value)
            return _NOT_FOUND
        if profile is None:
            return _NOT_FOUND
        if not profile.publish and not ctx.is_admin:
            return _UNPUBLISHED
        return ProfileResolution(
            ResolutionState.PUBLISHED,
            theme=self.current_theme(profile.id),
            profile=profile,
        )

    def current_theme(self, user_id: str) -> ThemeKind:
        """Theme from the applied user_themes row; NEUTRAL when there is none or it is unknown."""
        try:
            theme_id = self.repository.get_applied_theme_id(user_id)
        except SQLAlchemyError:
            logger.exception("Theme lookup failed for user %s", user_id)
            return ThemeKind.NEUTRAL
        return parse_theme(theme_id)
