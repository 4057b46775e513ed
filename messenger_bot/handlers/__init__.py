"""Handlers package - webhook entry dispatch and the conversation flow."""
from messenger_bot.handlers.conversation import ConversationHandler
from messenger_bot.handlers.dispatcher import Dispatcher

__all__ = [
    "ConversationHandler",
    "Dispatcher",
]
