"""Outbound service - send replies through the Graph API and keep an audit copy."""
import logging
import uuid
from typing import Optional, Union

from messenger_bot.errors import TransportError
from messenger_bot.messaging.outbound import Directive, MessagingType, SenderAction, as_directive
from messenger_bot.services.graph_api import MessengerClient
from messenger_bot.services.message_log_service import MessageLogService

logger = logging.getLogger(__name__)


class OutboundService:
    def __init__(self, client: MessengerClient, message_log: MessageLogService, page_id: Optional[str] = None):
        self.client = client
        self.message_log = message_log
        self.page_id = page_id or "page"

    async def deliver(
        self,
        recipient_id: str,
        reply: Union[str, Directive],
        messaging_type: MessagingType = MessagingType.RESPONSE,
    ) -> str:
        """
        Send one message and persist it.

        Returns:
            The platform message id, or a generated `local-<uuid>` id when the platform returned none

        Raises:
            TransportError: the send failed; nothing is persisted

        A message that was sent but could not be persisted is logged, not raised.
        """
        directive = as_directive(reply)
        message_id = await self.client.send_message(recipient_id, directive, messaging_type)
        if not message_id:
            message_id = f"local-{uuid.uuid4()}"

        try:
            await self.message_log.upsert_message(
                message_id=message_id,
                sender=self.page_id,
                recipient=str(recipient_id),
                text=directive.summary,
            )
        except Exception as e:
            logger.error(f"Sent message {message_id} to {recipient_id} was not persisted: {e}", exc_info=True)
        return message_id

    async def reply(self, recipient_id: str, reply: Union[str, Directive]) -> Optional[str]:
        """Conversational reply; a failed send is logged and yields None."""
        try:
            return await self.deliver(recipient_id, reply, MessagingType.RESPONSE)
        except TransportError as e:
            logger.warning(f"Reply to {recipient_id} was not delivered: {e}")
            return None

    async def sender_action(self, recipient_id: str, action: SenderAction) -> bool:
        try:
            await self.client.sender_action(recipient_id, action)
            return True
        except TransportError as e:
            logger.debug(f"Sender action {action.value} for {recipient_id} failed: {e}")
            return False
