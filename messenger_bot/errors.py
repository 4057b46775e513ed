"""Error taxonomy for the dispatch core and its collaborators."""


class BotError(Exception):
    """Base class for recoverable bot errors."""


class MalformedPayload(BotError, ValueError):
    """A webhook entry is missing the nested fields needed to classify it."""


class UnknownConversationCommand(BotError):
    """A payload token or input that the current conversation state does not accept."""

    def __init__(self, state, trigger: str):
        super().__init__(f"no transition from {state!r} on {trigger!r}")
        self.state = state
        self.trigger = trigger


class ValidationFailure(BotError, ValueError):
    """User input (nickname, feedback) was rejected; the user is re-prompted."""


class TransportError(BotError):
    """An outbound call to the Messenger platform or another HTTP service failed."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class OAuthError(TransportError):
    """The USOS OAuth handshake returned an unusable response."""
