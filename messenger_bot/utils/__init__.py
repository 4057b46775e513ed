"""Utilities package - helper functions and tools."""
from messenger_bot.utils.keyed_lock import KeyedLock
from messenger_bot.utils.webhook_auth import WebhookAuthError, verify_payload_signature, verify_subscription

__all__ = [
    "KeyedLock",
    "WebhookAuthError",
    "verify_payload_signature",
    "verify_subscription",
]
