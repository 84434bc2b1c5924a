"""SQLAlchemy models for identities, profiles, themes and wallets."""
from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Identity(Base):
    __tablename__ = "identities"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    profile = relationship("UserProfile", uselist=False, back_populates="identity", cascade="all,delete-orphan")


class UserProfile(Base):
    """Public business-card record; `id` is the owning identity's id."""

    __tablename__ = "users"

    id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), primary_key=True)
    username = Column(String(64), unique=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    about = Column(Text, nullable=True)
    user_email = Column(String(255), nullable=True)
    phone_number = Column(String(32), nullable=True)
    website_url = Column(Text, nullable=True)
    portfolio_url = Column(Text, nullable=True)
    facebook_url = Column(Text, nullable=True)
    instagram_url = Column(Text, nullable=True)
    linkedin_url = Column(Text, nullable=True)
    twitter_url = Column(Text, nullable=True)
    whatsapp_url = Column(Text, nullable=True)
    profile_pic_url = Column(Text, nullable=True)
    cover_pic_url = Column(Text, nullable=True)
    publish = Column(Boolean, default=False, nullable=False)
    # cache of the applied user_themes row; never read for resolution
    themeid = Column(String(64), nullable=True)
    is_username_locked = Column(Boolean, default=False, nullable=False)
    is_fullname_locked = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    identity = relationship("Identity", back_populates="profile")


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    identity_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AdminSession(Base):
    __tablename__ = "sessions_admin"

    token = Column(String(128), primary_key=True)
    identity_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    csrf_token = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ConfirmToken(Base):
    __tablename__ = "confirm_tokens"

    token = Column(String(255), primary_key=True)
    identity_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ResetToken(Base):
    __tablename__ = "reset_tokens"

    token = Column(String(255), primary_key=True)
    identity_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AvailableTheme(Base):
    __tablename__ = "available_themes"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UserTheme(Base):
    __tablename__ = "user_themes"
    __table_args__ = (
        UniqueConstraint("user_id", "theme_id", name="uq_user_themes_user_theme"),
        # at most one applied theme per user
        Index(
            "uq_user_themes_one_applied",
            "user_id",
            unique=True,
            sqlite_where=text("applied = 1"),
            postgresql_where=text("applied"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    theme_id = Column(String(64), ForeignKey("available_themes.id", ondelete="CASCADE"), nullable=False)
    applied = Column(Boolean, default=False, nullable=False)

    theme = relationship("AvailableTheme")


class WalletUser(Base):
    __tablename__ = "wallet_users"

    user_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    is_card_owner = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class WalletCard(Base):
    __tablename__ = "wallet_cards"
    __table_args__ = (UniqueConstraint("user_id", "card_username", name="uq_wallet_cards_user_card"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    card_username = Column(String(64), nullable=False)
    saved_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    viewed_at = Column(DateTime(timezone=True), nullable=True)
