"""Dispatcher - routes classified webhook events to the conversation handler."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from messenger_bot.errors import MalformedPayload, TransportError
from messenger_bot.handlers.conversation import ConversationHandler
from messenger_bot.messaging.events import (
    AccountLinkingEvent,
    InboundEvent,
    LinkingStatus,
    PostbackEvent,
    QuickReplyEvent,
    TextMessage,
    UnsupportedMessage,
    classify_entry,
)
from messenger_bot.messaging.outbound import SenderAction
from messenger_bot.utils import messages
from messenger_bot.utils.keyed_lock import KeyedLock

if TYPE_CHECKING:
    from messenger_bot.container import ServiceContainer

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Entry point for webhook entries.

    Events from the same sender are handled one at a time; different senders
    run concurrently.
    """

    def __init__(self, container: "ServiceContainer"):
        self.container = container
        self.users = container.user_service
        self.outbound = container.outbound_service
        self.message_log = container.message_log_service
        self.conversation = ConversationHandler(container)
        self.locks = KeyedLock()

    async def process_entry(self, entry: Any) -> bool:
        """Classify and dispatch one webhook entry; malformed entries are logged and dropped."""
        try:
            event = classify_entry(entry)
        except MalformedPayload as e:
            logger.warning(f"Dropping malformed webhook entry: {e}")
            return False

        try:
            await self.dispatch(event)
        except Exception as e:
            logger.error(f"Failed to handle {type(event).__name__} from {event.sender_id}: {e}", exc_info=True)
            return False
        return True

    async def dispatch(self, event: InboundEvent) -> None:
        async with self.locks.hold(event.sender_id):
            await self._dispatch(event)

    async def _dispatch(self, event: InboundEvent) -> None:
        await self.outbound.sender_action(event.sender_id, SenderAction.MARK_SEEN)
        user = await self.users.get_or_create(event.sender_id, self._fetch_profile)

        if isinstance(event, UnsupportedMessage):
            logger.debug(f"User {user.id} sent a non-text message")
            await self.outbound.reply(user.facebook_id, messages.unsupported_message_message())
            return

        if isinstance(event, TextMessage):
            await self.message_log.upsert_message(
                message_id=event.message_id,
                sender=event.sender_id,
                recipient=event.recipient_id,
                text=event.text,
                timestamp=event.timestamp,
            )
            logger.debug(f"User {user.id} sent text ({len(event.text)} chars) in state {user.state.name}")
            await self.conversation.handle_text(user, event.text)
            return

        if isinstance(event, (PostbackEvent, QuickReplyEvent)):
            label = event.title if isinstance(event, PostbackEvent) else event.text
            await self.message_log.upsert_event(
                sender=event.sender_id,
                recipient=event.recipient_id,
                timestamp=event.timestamp,
                text=label,
                payload=event.payload,
            )
            logger.debug(f"User {user.id} sent payload {event.payload!r} in state {user.state.name}")
            await self.conversation.handle_payload(user, event.payload)
            return

        if isinstance(event, AccountLinkingEvent):
            await self._handle_account_linking(user, event)
            return

        raise TypeError(f"unhandled event type: {type(event).__name__}")

    async def _handle_account_linking(self, user, event: AccountLinkingEvent) -> None:
        if event.status == LinkingStatus.LINKED:
            flow = None
            if event.authorization_code:
                flow = await self.container.login_flow_service.consume_by_auth_code(event.authorization_code)
            if flow is None:
                logger.warning(f"User {user.id} linked without a matching login flow")
            await self.outbound.reply(user.facebook_id, messages.account_linked_message())
            return

        await self.users.clear_link(user.id)
        await self.outbound.reply(user.facebook_id, messages.account_unlinked_message())

    async def _fetch_profile(self, facebook_id: str) -> dict:
        try:
            return await self.container.messenger_client.get_user_profile(facebook_id)
        except TransportError as e:
            logger.warning(f"Could not fetch profile for {facebook_id}: {e}")
            return {}
