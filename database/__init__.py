"""Database package - models and connection management."""
from database.db import Database
from database.models import (
    Base,
    ConversationState,
    FeedbackTicket,
    LoginFlow,
    MessengerEvent,
    MessengerMessage,
    Studia3Session,
    User,
    UserProfile,
)

__all__ = [
    "Database",
    "Base",
    "ConversationState",
    "FeedbackTicket",
    "LoginFlow",
    "MessengerEvent",
    "MessengerMessage",
    "Studia3Session",
    "User",
    "UserProfile",
]
