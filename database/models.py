"""Database models - users, Messenger traffic, feedback, login flows and Studia3 sessions."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

NICKNAME_MAX_LENGTH = 24
FEEDBACK_MAX_LENGTH = 500


class ConversationState(enum.IntEnum):
    """Per-user dialogue state, stored in `users.msg_state`."""

    NO_STATE = -1
    ASK_NICKNAME = 100
    INPUT_NICKNAME = 101
    CONFIRM_NICKNAME = 102  # reserved, no transition targets it
    FEEDBACK = 200

    @classmethod
    def coerce(cls, value) -> "ConversationState":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NO_STATE


@dataclass(frozen=True)
class UserProfile:
    """
    Immutable snapshot of a `users` row.

    Handlers read one at dispatch start and persist changes explicitly through
    `UserService.save_changes`, which hands back a fresh snapshot.
    """

    id: int
    facebook_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    gender: Optional[str] = None
    locale: Optional[str] = None
    state: ConversationState = ConversationState.NO_STATE
    is_registered: bool = False
    is_admin: bool = False
    usos_course: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.nickname or self.first_name or ""

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class User(Base):
    """Messenger users - created lazily on first contact, never deleted."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    facebook_id = Column(String(64), nullable=False, unique=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    nickname = Column(String(NICKNAME_MAX_LENGTH), nullable=True)
    msg_state = Column(Integer, nullable=False, default=int(ConversationState.NO_STATE))
    gender = Column(String(16), nullable=True)
    locale = Column(String(16), nullable=True)
    is_registered = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)

    # USOS link
    usos_course = Column(Integer, nullable=True)
    usos_token_key = Column(String, nullable=True)
    usos_token_secret = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    feedback = relationship("FeedbackTicket", back_populates="user")

    __table_args__ = (
        Index("idx_users_gender", "gender"),
        Index("idx_users_locale", "locale"),
    )

    def to_profile(self) -> UserProfile:
        return UserProfile(
            id=int(self.id),
            facebook_id=str(self.facebook_id),
            first_name=self.first_name,
            last_name=self.last_name,
            nickname=self.nickname,
            gender=self.gender,
            locale=self.locale,
            state=ConversationState.coerce(self.msg_state),
            is_registered=bool(self.is_registered),
            is_admin=bool(self.is_admin),
            usos_course=int(self.usos_course) if self.usos_course is not None else None,
        )

    def __repr__(self):
        return f"<User(id={self.id}, facebook_id={self.facebook_id})>"


class MessengerMessage(Base):
    """Inbound and outbound text messages, kept verbatim for audit."""
    __tablename__ = "msg_messages"

    id = Column(String(128), primary_key=True, autoincrement=False)
    sender = Column(String(64), nullable=True)
    recipient = Column(String(64), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    text = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_msg_messages_sender", "sender", "timestamp"),
        Index("idx_msg_messages_recipient", "recipient", "timestamp"),
    )


class MessengerEvent(Base):
    """Postback and quick-reply clicks."""
    __tablename__ = "msg_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender = Column(String(64), nullable=False)
    recipient = Column(String(64), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    text = Column(Text, nullable=True)
    payload = Column(String(1000), nullable=True)

    __table_args__ = (
        Index("uq_msg_events_delivery", "sender", "recipient", "timestamp", unique=True),
    )


class FeedbackTicket(Base):
    """Free-text feedback left through the menu."""
    __tablename__ = "feedback_tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    text = Column(String(FEEDBACK_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="feedback")

    __table_args__ = (
        Index("idx_feedback_user", "user_id", "created_at"),
    )


class LoginFlow(Base):
    """In-flight USOS OAuth handshake started from a Messenger account-link button."""
    __tablename__ = "bot_login"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    messenger_linking_token = Column(String, nullable=False)
    messenger_callback_url = Column(Text, nullable=False)
    messenger_auth_code = Column(String(64), nullable=False, unique=True)
    usos_oauth_token = Column(String(128), nullable=False, unique=True)
    usos_oauth_secret = Column(String(128), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_bot_login_created", "created_at"),
    )

    def __repr__(self):
        return f"<LoginFlow(id={self.id}, user_id={self.user_id})>"


class Studia3Session(Base):
    """Cached Studia3 session cookie, one per study programme."""
    __tablename__ = "studia3_sessions"

    program_id = Column(Integer, primary_key=True, autoincrement=False)
    program_name = Column(String, nullable=False)
    cookie = Column(String, nullable=True)
    last_login = Column(DateTime, nullable=True)

    @property
    def alive(self) -> bool:
        return self.cookie is not None
