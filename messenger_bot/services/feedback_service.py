"""Feedback service - tickets left through the persistent menu."""
import logging

from database import Database, FeedbackTicket
from database.models import FEEDBACK_MAX_LENGTH
from messenger_bot.errors import ValidationFailure
from messenger_bot.utils.datetime_utils import utcnow_naive

logger = logging.getLogger(__name__)


class FeedbackService:
    def __init__(self, db: Database):
        self.db = db

    async def create_ticket(self, *, user_id: int, text: str) -> int:
        """
        Store feedback and return the ticket id.

        Text longer than 500 characters is truncated.

        Raises:
            ValidationFailure: the text is empty after trimming
        """
        text = (text or "").strip()
        if not text:
            raise ValidationFailure("feedback is empty")

        async with self.db.session() as session:
            ticket = FeedbackTicket(
                user_id=int(user_id),
                text=text[:FEEDBACK_MAX_LENGTH],
                created_at=utcnow_naive(),
            )
            session.add(ticket)
            await session.flush()
            ticket_id = int(ticket.id)

        logger.info(f"Feedback ticket {ticket_id} created by user {user_id} ({len(text)} chars)")
        return ticket_id
