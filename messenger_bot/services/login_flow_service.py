"""Login flow service - pending USOS OAuth handshakes (`bot_login`)."""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select

from database import Database, LoginFlow
from messenger_bot.utils.datetime_utils import utcnow_naive

logger = logging.getLogger(__name__)


class LoginFlowService:
    """
    Rows live from the account-link redirect until Messenger confirms the link.

    A flow older than `ttl_seconds` is treated as absent and removed by `purge_expired`.
    """

    def __init__(self, db: Database, ttl_seconds: int = 3600):
        self.db = db
        self.ttl_seconds = int(ttl_seconds)

    def _cutoff(self):
        return utcnow_naive() - timedelta(seconds=self.ttl_seconds)

    async def start(
        self,
        *,
        user_id: int,
        linking_token: str,
        callback_url: str,
        oauth_token: str,
        oauth_secret: str,
    ) -> LoginFlow:
        async with self.db.session() as session:
            flow = LoginFlow(
                user_id=int(user_id),
                messenger_linking_token=linking_token,
                messenger_callback_url=callback_url,
                messenger_auth_code=secrets.token_hex(32),
                usos_oauth_token=oauth_token,
                usos_oauth_secret=oauth_secret,
                created_at=utcnow_naive(),
            )
            session.add(flow)
            await session.flush()
            logger.info(f"Started login flow {flow.id} for user {user_id}")
            return flow

    async def get_by_oauth_token(self, oauth_token: str) -> Optional[LoginFlow]:
        """Pending flow for a USOS request token, or None when unknown or expired."""
        async with self.db.session() as session:
            result = await session.execute(
                select(LoginFlow).where(
                    LoginFlow.usos_oauth_token == str(oauth_token),
                    LoginFlow.created_at >= self._cutoff(),
                )
            )
            return result.scalar_one_or_none()

    async def consume_by_auth_code(self, auth_code: str) -> Optional[LoginFlow]:
        """Fetch and delete the flow Messenger confirmed with `authorization_code`."""
        async with self.db.session() as session:
            result = await session.execute(
                select(LoginFlow).where(LoginFlow.messenger_auth_code == str(auth_code))
            )
            flow = result.scalar_one_or_none()
            if flow is None:
                return None
            await session.delete(flow)
            logger.info(f"Completed login flow {flow.id} for user {flow.user_id}")
            return flow

    async def purge_expired(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(delete(LoginFlow).where(LoginFlow.created_at < self._cutoff()))
            removed = int(result.rowcount or 0)
        if removed:
            logger.info(f"Purged {removed} expired login flows")
        return removed
