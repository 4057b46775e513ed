"""Service container - wires configuration, API clients, and domain services."""
import logging
from dataclasses import dataclass
from typing import Optional

from database import Database
from messenger_bot.config import Config
from messenger_bot.services.broadcast_service import BroadcastService
from messenger_bot.services.feedback_service import FeedbackService
from messenger_bot.services.graph_api import MessengerClient
from messenger_bot.services.login_flow_service import LoginFlowService
from messenger_bot.services.message_log_service import MessageLogService
from messenger_bot.services.outbound_service import OutboundService
from messenger_bot.services.studia3_service import Studia3Service
from messenger_bot.services.usos_oauth import UsosOAuthClient
from messenger_bot.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Simple dependency container to share services across handlers."""

    config: Config
    db: Database
    messenger_client: MessengerClient
    usos_client: UsosOAuthClient
    user_service: UserService
    message_log_service: MessageLogService
    feedback_service: FeedbackService
    login_flow_service: LoginFlowService
    studia3_service: Studia3Service
    outbound_service: OutboundService
    broadcast_service: BroadcastService

    @classmethod
    async def create(cls, config: Config, db: Optional[Database] = None) -> "ServiceContainer":
        """
        Build the service container with all dependencies.

        Args:
            config: Loaded Config instance
            db: Connected Database; a new one is created from DATABASE_URL when omitted

        Returns:
            ServiceContainer with initialized services
        """
        logger.info("Building service container...")

        if db is None:
            db = Database()
            await db.connect()

        messenger_client = MessengerClient(config.graph_api_url, config.page_access_token)
        usos_client = UsosOAuthClient(
            config.usos_api_url,
            config.usos_key,
            config.usos_secret,
            scopes=config.usos_scopes,
        )

        user_service = UserService(db)
        message_log_service = MessageLogService(db)
        outbound_service = OutboundService(messenger_client, message_log_service, page_id=config.page_id)
        broadcast_service = BroadcastService(
            user_service,
            outbound_service,
            send_interval=config.broadcast_send_interval,
        )

        logger.info("Service container ready")

        return cls(
            config=config,
            db=db,
            messenger_client=messenger_client,
            usos_client=usos_client,
            user_service=user_service,
            message_log_service=message_log_service,
            feedback_service=FeedbackService(db),
            login_flow_service=LoginFlowService(db, ttl_seconds=config.login_flow_ttl_seconds),
            studia3_service=Studia3Service(db),
            outbound_service=outbound_service,
            broadcast_service=broadcast_service,
        )

    async def cleanup(self):
        """Cancel running broadcasts and close HTTP clients; the database is closed by its owner."""
        await self.broadcast_service.shutdown()
        for client in (self.messenger_client, self.studia3_service):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Failed to close {type(client).__name__}: {e}")
        logger.info("Service container cleanup complete")
