"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

import secrets
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from tapinfi.core.utils import utcnow
from tapinfi.db.models import (
    AdminSession,
    AvailableTheme,
    ConfirmToken,
    Identity,
    ResetToken,
    UserProfile,
    UserSession,
    UserTheme,
    WalletCard,
    WalletUser,
)
from tapinfi.db.session import get_session


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- identities --------------------------
    def get_identity(self, identity_id: str) -> Optional[Identity]:
        with get_session() as session:
            return session.get(Identity, identity_id)

    def get_identity_by_email(self, email: str) -> Optional[Identity]:
        with get_session() as session:
            stmt = select(Identity).where(func.lower(Identity.email) == (email or "").strip().lower())
            return session.execute(stmt).scalar_one_or_none()

    def create_identity(self, email: str, password_hash: str) -> Identity:
        now = utcnow()
        entity = Identity(email=email, password_hash=password_hash, created_at=now, updated_at=now)
        with get_session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def update_identity_password(self, identity_id: str, password_hash: str) -> None:
        with get_session() as session:
            stmt = (
                update(Identity)
                .where(Identity.id == identity_id)
                .values(password_hash=password_hash, updated_at=utcnow())
            )
            session.execute(stmt)
            session.commit()

    def set_identity_confirmed(self, identity_id: str) -> None:
        now = utcnow()
        with get_session() as session:
            stmt = update(Identity).where(Identity.id == identity_id).values(email_confirmed_at=now, updated_at=now)
            session.execute(stmt)
            session.commit()

    # -------------------------- user sessions --------------------------
    def create_user_session(self, identity_id: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        with get_session() as session:
            session.add(UserSession(token=token, identity_id=identity_id, expires_at=expires_at))
            session.commit()
        return token

    def get_user_session(self, token: str) -> Optional[UserSession]:
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_user_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    def delete_sessions_for_identity(self, identity_id: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.identity_id == identity_id))
            session.commit()

    # -------------------------- admin sessions --------------------------
    def create_admin_session(self, identity_id: str, csrf_token: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        entity = AdminSession(token=token, identity_id=identity_id, csrf_token=csrf_token, expires_at=expires_at)
        with get_session() as session:
            session.add(entity)
            session.commit()
        return token

    def get_admin_session(self, token: str) -> Optional[AdminSession]:
        with get_session() as session:
            return session.get(AdminSession, token)

    def delete_admin_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(AdminSession).where(AdminSession.token == token))
            session.commit()

    # -------------------------- tokens --------------------------
    def create_confirm_token(self, identity_id: str, token: Optional[str] = None) -> str:
        token_value = token or secrets.token_urlsafe(24)
        with get_session() as session:
            session.add(ConfirmToken(token=token_value, identity_id=identity_id, created_at=utcnow()))
            session.commit()
        return token_value

    def get_confirm_token(self, token: str) -> Optional[ConfirmToken]:
        with get_session() as session:
            return session.get(ConfirmToken, token)

    def get_confirm_token_for_identity(self, identity_id: str) -> Optional[ConfirmToken]:
        with get_session() as session:
            stmt = (
                select(ConfirmToken)
                .where(ConfirmToken.identity_id == identity_id)
                .order_by(ConfirmToken.created_at.desc())
            )
            return session.execute(stmt).scalars().first()

    def delete_confirm_token(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(ConfirmToken).where(ConfirmToken.token == token))
            session.commit()

    def delete_confirm_tokens_for_identity(self, identity_id: str) -> None:
        with get_session() as session:
            session.execute(delete(ConfirmToken).where(ConfirmToken.identity_id == identity_id))
            session.commit()

    def create_reset_token(self, identity_id: str, token: Optional[str] = None) -> str:
        token_value = token or secrets.token_urlsafe(24)
        with get_session() as session:
            session.add(ResetToken(token=token_value, identity_id=identity_id, created_at=utcnow()))
            session.commit()
        return token_value

    def get_reset_token(self, token: str) -> Optional[ResetToken]:
        with get_session() as session:
            return session.get(ResetToken, token)

    def delete_reset_token(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(ResetToken).where(ResetToken.token == token))
            session.commit()

    def delete_reset_tokens_for_identity(self, identity_id: str) -> None:
        with get_session() as session:
            session.execute(delete(ResetToken).where(ResetToken.identity_id == identity_id))
            session.commit()

    # -------------------------- profiles --------------------------
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with get_session() as session:
            return session.get(UserProfile, user_id)

    def get_profile_by_username(self, username: str) -> Optional[UserProfile]:
        value = (username or "").strip()
        if not value:
            return None
        with get_session() as session:
            stmt = select(UserProfile).where(UserProfile.username == value)
            return session.execute(stmt).scalar_one_or_none()

    def username_taken(self, username: str, *, exclude_user_id: Optional[str] = None) -> bool:
        value = (username or "").strip()
        if not value:
            return False
        with get_session() as session:
            stmt = select(UserProfile.id).where(UserProfile.username == value)
            if exclude_user_id:
                stmt = stmt.where(UserProfile.id != exclude_user_id)
            return session.execute(stmt.limit(1)).first() is not None

    def ensure_profile(self, user_id: str, email: str | None) -> UserProfile:
        with get_session() as session:
            profile = session.get(UserProfile, user_id)
            if profile:
                return profile
            now = utcnow()
            profile = UserProfile(id=user_id, user_email=email, created_at=now, updated_at=now)
            session.add(profile)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return session.get(UserProfile, user_id)
            session.refresh(profile)
            return profile

    def upsert_profile(self, user_id: str, values: dict) -> UserProfile:
        now = utcnow()
        with get_session() as session:
            profile = session.get(UserProfile, user_id)
            if not profile:
                profile = UserProfile(id=user_id, created_at=now)
                session.add(profile)
            for key, value in values.items():
                setattr(profile, key, value)
            profile.updated_at = now
            session.commit()
            session.refresh(profile)
            return profile

    def list_profiles(self, search: str = "") -> list[UserProfile]:
        term = (search or "").strip().lower()
        with get_session() as session:
            stmt = select(UserProfile).order_by(UserProfile.created_at)
            if term:
                like = f"%{term}%"
                stmt = stmt.where(
                    or_(
                        func.lower(UserProfile.user_email).like(like),
                        func.lower(UserProfile.username).like(like),
                    )
                )
            return session.execute(stmt).scalars().all()

    def list_published_profiles(self, usernames: Iterable[str]) -> list[UserProfile]:
        names = [u for u in usernames if u]
        if not names:
            return []
        with get_session() as session:
            stmt = select(UserProfile).where(UserProfile.username.in_(names), UserProfile.publish.is_(True))
            return session.execute(stmt).scalars().all()

    def set_publish(self, user_id: str, publish: bool) -> None:
        with get_session() as session:
            stmt = update(UserProfile).where(UserProfile.id == user_id).values(publish=publish, updated_at=utcnow())
            session.execute(stmt)
            session.commit()

    def unlock_profile(self, user_id: str) -> None:
        with get_session() as session:
            stmt = (
                update(UserProfile)
                .where(UserProfile.id == user_id)
                .values(is_username_locked=False, is_fullname_locked=False, updated_at=utcnow())
            )
            session.execute(stmt)
            session.commit()

    def set_admin(self, user_id: str, is_admin: bool) -> None:
        with get_session() as session:
            stmt = update(UserProfile).where(UserProfile.id == user_id).values(is_admin=is_admin, updated_at=utcnow())
            session.execute(stmt)
            session.commit()

    # -------------------------- themes --------------------------
    def list_available_themes(self) -> list[AvailableTheme]:
        with get_session() as session:
            return session.execute(select(AvailableTheme).order_by(AvailableTheme.name)).scalars().all()

    def get_available_theme(self, theme_id: str) -> Optional[AvailableTheme]:
        with get_session() as session:
            return session.get(AvailableTheme, theme_id)

    def create_available_theme(self, theme_id: str, name: str, image_url: str | None = None) -> Optional[AvailableTheme]:
        """Insert a theme; returns None when the id already exists."""
        entity = AvailableTheme(id=theme_id, name=name, image_url=image_url, created_at=utcnow())
        with get_session() as session:
            session.add(entity)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            session.refresh(entity)
            return entity

    def list_user_themes(self, user_id: str) -> list[tuple[AvailableTheme, bool]]:
        with get_session() as session:
            stmt = (
                select(AvailableTheme, UserTheme.applied)
                .join(UserTheme, UserTheme.theme_id == AvailableTheme.id)
                .where(UserTheme.user_id == user_id)
                .order_by(AvailableTheme.name)
            )
            return [(theme, bool(applied)) for theme, applied in session.execute(stmt).all()]

    def list_assignments(self) -> dict[str, set[str]]:
        with get_session() as session:
            rows = session.execute(select(UserTheme.user_id, UserTheme.theme_id)).all()
        assigned: dict[str, set[str]] = {}
        for user_id, theme_id in rows:
            assigned.setdefault(user_id, set()).add(theme_id)
        return assigned

    def get_user_theme(self, user_id: str, theme_id: str) -> Optional[UserTheme]:
        with get_session() as session:
            stmt = select(UserTheme).where(UserTheme.user_id == user_id, UserTheme.theme_id == theme_id)
            return session.execute(stmt).scalar_one_or_none()

    def assign_theme(self, user_id: str, theme_id: str) -> bool:
        """Create the assignment; False when it already existed."""
        with get_session() as session:
            session.add(UserTheme(user_id=user_id, theme_id=theme_id, applied=False))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def unassign_theme(self, user_id: str, theme_id: str) -> bool:
        """Delete the assignment; clears the themeid cache when it was the applied one."""
        with get_session() as session:
            row = session.execute(
                select(UserTheme).where(UserTheme.user_id == user_id, UserTheme.theme_id == theme_id)
            ).scalar_one_or_none()
            if not row:
                return False
            was_applied = bool(row.applied)
            session.delete(row)
            if was_applied:
                session.execute(
                    update(UserProfile).where(UserProfile.id == user_id).values(themeid=None, updated_at=utcnow())
                )
            session.commit()
            return True

    def apply_theme(self, user_id: str, theme_id: str) -> bool:
        """Mark exactly one assignment applied in a single transaction.

        Returns False (and changes nothing) when the theme is not assigned to the user.
        """
        with get_session() as session:
            with session.begin():
                target = session.execute(
                    select(UserTheme.id).where(UserTheme.user_id == user_id, UserTheme.theme_id == theme_id)
                ).first()
                if not target:
                    return False
                session.execute(
                    update(UserTheme)
                    .where(UserTheme.user_id == user_id, UserTheme.theme_id != theme_id, UserTheme.applied.is_(True))
                    .values(applied=False)
                )
                session.execute(
                    update(UserTheme)
                    .where(UserTheme.user_id == user_id, UserTheme.theme_id == theme_id)
                    .values(applied=True)
                )
                session.execute(
                    update(UserProfile).where(UserProfile.id == user_id).values(themeid=theme_id, updated_at=utcnow())
                )
            return True

    def get_applied_theme_id(self, user_id: str) -> Optional[str]:
        with get_session() as session:
            # an orphaned row (theme deleted from available_themes) counts as no theme
            stmt = (
                select(UserTheme.theme_id)
                .join(AvailableTheme, AvailableTheme.id == UserTheme.theme_id)
                .where(UserTheme.user_id == user_id, UserTheme.applied.is_(True))
            )
            return session.execute(stmt.limit(1)).scalar_one_or_none()

    # -------------------------- wallet --------------------------
    def get_wallet_user(self, user_id: str) -> Optional[WalletUser]:
        with get_session() as session:
            return session.get(WalletUser, user_id)

    def insert_wallet_user(self, user_id: str, full_name: str, email: str, is_card_owner: bool) -> Optional[WalletUser]:
        """Insert a membership row; None when another request created it first."""
        entity = WalletUser(
            user_id=user_id,
            full_name=full_name or "",
            email=email or "",
            is_card_owner=is_card_owner,
            created_at=utcnow(),
        )
        with get_session() as session:
            session.add(entity)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            session.refresh(entity)
            return entity

    def has_wallet_cards(self, user_id: str) -> bool:
        with get_session() as session:
            stmt = select(WalletCard.id).where(WalletCard.user_id == user_id).limit(1)
            return session.execute(stmt).first() is not None

    def get_wallet_card(self, user_id: str, card_username: str) -> Optional[WalletCard]:
        with get_session() as session:
            stmt = select(WalletCard).where(WalletCard.user_id == user_id, WalletCard.card_username == card_username)
            return session.execute(stmt).scalar_one_or_none()

    def insert_wallet_card(self, user_id: str, card_username: str) -> bool:
        """Insert a saved card; False when the (user, card) pair already exists."""
        with get_session() as session:
            session.add(WalletCard(user_id=user_id, card_username=card_username, saved_at=utcnow()))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def list_wallet_cards(self, user_id: str) -> list[WalletCard]:
        with get_session() as session:
            stmt = select(WalletCard).where(WalletCard.user_id == user_id).order_by(WalletCard.saved_at, WalletCard.id)
            return session.execute(stmt).scalars().all()

    def touch_wallet_card(self, user_id: str, card_username: str) -> bool:
        with get_session() as session:
            result = session.execute(
                update(WalletCard)
                .where(WalletCard.user_id == user_id, WalletCard.card_username == card_username)
                .values(viewed_at=utcnow())
            )
            session.commit()
            return bool(result.rowcount)

    def delete_wallet_card(self, user_id: str, card_username: str) -> bool:
        with get_session() as session:
            result = session.execute(
                delete(WalletCard).where(WalletCard.user_id == user_id, WalletCard.card_username == card_username)
            )
            session.commit()
            return bool(result.rowcount)
