"""Message log service - audit trail of Messenger messages and postback events."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from database import Database, MessengerEvent, MessengerMessage
from messenger_bot.utils.datetime_utils import to_naive_utc, utcnow_naive

logger = logging.getLogger(__name__)


class MessageLogService:
    """Upserts for `msg_messages` and `msg_events`; platform re-deliveries overwrite, never duplicate."""

    def __init__(self, db: Database):
        self.db = db

    async def upsert_message(
        self,
        *,
        message_id: str,
        sender: str,
        recipient: str,
        text: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> None:
        moment = to_naive_utc(timestamp) if timestamp else utcnow_naive()
        async with self.db.session() as session:
            row = await session.get(MessengerMessage, str(message_id))
            if row is None:
                session.add(
                    MessengerMessage(
                        id=str(message_id),
                        sender=str(sender),
                        recipient=str(recipient),
                        timestamp=moment,
                        text=text,
                    )
                )
            else:
                row.text = text

    async def upsert_event(
        self,
        *,
        sender: str,
        recipient: str,
        timestamp: datetime,
        text: Optional[str],
        payload: Optional[str],
    ) -> None:
        moment = to_naive_utc(timestamp)
        async with self.db.session() as session:
            result = await session.execute(
                select(MessengerEvent).where(
                    MessengerEvent.sender == str(sender),
                    MessengerEvent.recipient == str(recipient),
                    MessengerEvent.timestamp == moment,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(
                    MessengerEvent(
                        sender=str(sender),
                        recipient=str(recipient),
                        timestamp=moment,
                        text=text,
                        payload=payload,
                    )
                )
            else:
                row.text = text
                row.payload = payload
