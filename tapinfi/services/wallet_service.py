"""
Wallet membership and saved cards.

A viewer has to be signed in and a wallet member before saving a profile.
Both gates are raised as exceptions carrying the path to resume afterwards,
so routers can redirect with `next=` and the save happens on the way back.
Uniqueness of memberships and saved cards is held by the database keys; the
pre-checks only pick the friendlier outcome.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tapinfi.core.config import get_settings
from tapinfi.core.utils import as_utc, safe_next_path
from tapinfi.db.models import UserProfile, WalletUser
from tapinfi.domain.usernames import normalize_username
from tapinfi.repositories.sql_repository import SQLRepository
from tapinfi.services.session_service import SessionContext

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("full_name", "username", "role", "company", "phone_number")


class WalletError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(WalletError):
    def __init__(self, next_path: str):
        super().__init__("Sign in to use your wallet.")
        self.next_path = next_path


class MembershipRequired(WalletError):
    def __init__(self, next_path: str):
        super().__init__("Join the wallet to save cards.")
        self.next_path = next_path


class CardNotFoundError(WalletError):
    def __init__(self, message: str = "Profile not found."):
        super().__init__(message)


class SaveOutcome(str, enum.Enum):
    SAVED = "saved"
    ALREADY_SAVED = "already_saved"


@dataclass
class WalletEntry:
    username: str
    profile: UserProfile
    saved_at: Optional[datetime]
    viewed_at: Optional[datetime]
    last_viewed: bool = False


@dataclass
class WalletPage:
    cards: list[WalletEntry]
    page: int
    total_pages: int
    total: int
    search: str = ""

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _matches(profile: UserProfile, term: str) -> bool:
    return any(term in (getattr(profile, name) or "").lower() for name in SEARCH_FIELDS)


@dataclass
class WalletService:
    def __post_init__(self):
        self.repository = SQLRepository()

    def _require_member(self, ctx: SessionContext, next_path: str) -> str:
        if not ctx.is_authenticated:
            raise AuthenticationRequired(next_path)
        if not ctx.is_wallet_member:
            raise MembershipRequired(next_path)
        return ctx.identity_id

    def ensure_membership(self, ctx: SessionContext) -> WalletUser:
        if not ctx.is_authenticated:
            raise AuthenticationRequired("/wallet")
        existing = self.repository.get_wallet_user(ctx.identity_id)
        if existing:
            return existing
        profile = self.repository.get_profile(ctx.identity_id)
        created = self.repository.insert_wallet_user(
            ctx.identity_id,
            full_name=(profile.full_name if profile else "") or "",
            email=(profile.user_email if profile else "") or ctx.email or "",
            is_card_owner=self.repository.has_wallet_cards(ctx.identity_id),
        )
        if created is None:
            # another request created the row between our read and insert
            return self.repository.get_wallet_user(ctx.identity_id)
        logger.info("Wallet membership created for %s", ctx.identity_id)
        return created

    def save(self, ctx: SessionContext, target_username: str, next_path: str | None = None) -> SaveOutcome:
        username = normalize_username(target_username)
        resume = safe_next_path(next_path, f"/profile/{username}")
        user_id = self._require_member(ctx, resume)
        target = self.repository.get_profile_by_username(username)
        if not target or not target.publish:
            raise CardNotFoundError()
        if self.repository.get_wallet_card(user_id, username):
            return SaveOutcome.ALREADY_SAVED
        if not self.repository.insert_wallet_card(user_id, username):
            return SaveOutcome.ALREADY_SAVED
        return SaveOutcome.SAVED

    def is_saved(self, ctx: SessionContext, username: str) -> bool:
        if not ctx.is_authenticated:
            return False
        return self.repository.get_wallet_card(ctx.identity_id, normalize_username(username)) is not None

    def list_cards(self, ctx: SessionContext, search: str = "", page: int = 1, page_size: int | None = None) -> WalletPage:
        user_id = self._require_member(ctx, "/wallet")
        size = page_size or get_settings().wallet_page_size
        cards = self.repository.list_wallet_cards(user_id)
        profiles = {p.username: p for p in self.repository.list_published_profiles(c.card_username for c in cards)}
        term = (search or "").strip().lower()
        entries = [
            WalletEntry(
                username=card.card_username,
                profile=profiles[card.card_username],
                saved_at=as_utc(card.saved_at),
                viewed_at=as_utc(card.viewed_at),
            )
            for card in cards
            if card.card_username in profiles
        ]
        if term:
            entries = [entry for entry in entries if _matches(entry.profile, term)]

        viewed = sorted((e for e in entries if e.viewed_at), key=lambda e: e.viewed_at, reverse=True)
        never_viewed = [e for e in entries if not e.viewed_at]
        if viewed:
            viewed[0].last_viewed = True
        ordered = viewed + never_viewed

        total_pages = max(1, math.ceil(len(ordered) / size))
        page = min(max(1, page or 1), total_pages)
        start = (page - 1) * size
        return WalletPage(
            cards=ordered[start:start + size],
            page=page,
            total_pages=total_pages,
            total=len(ordered),
            search=search or "",
        )

    def mark_viewed(self, ctx: SessionContext, username: str) -> bool:
        if not ctx.is_authenticated:
            return False
        return self.repository.touch_wallet_card(ctx.identity_id, normalize_username(username))

    def remove(self, ctx: SessionContext, username: str) -> bool:
        user_id = self._require_member(ctx, "/wallet")
        return self.repository.delete_wallet_card(user_id, normalize_username(username))
