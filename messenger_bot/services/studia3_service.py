"""Studia3 service - keeps one LDAP session cookie per study programme."""
import logging
from typing import List, Optional

import httpx
from sqlalchemy import select

from database import Database, Studia3Session
from messenger_bot.errors import TransportError
from messenger_bot.utils.datetime_utils import utcnow_naive

logger = logging.getLogger(__name__)

STUDIA3_BASE_URL = "https://studia3.elka.pw.edu.pl/en/19Z/-"


class Studia3Service:
    """Best-effort scraper login; the portal signals success with a 302."""

    def __init__(self, db: Database, base_url: str = STUDIA3_BASE_URL, client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0), follow_redirects=False)

    async def close(self) -> None:
        await self._client.aclose()

    async def list_sessions(self) -> List[Studia3Session]:
        async with self.db.session() as session:
            result = await session.execute(select(Studia3Session).order_by(Studia3Session.program_name.asc()))
            return list(result.scalars().all())

    async def get_session(self, program_id: int) -> Optional[Studia3Session]:
        async with self.db.session() as session:
            return await session.get(Studia3Session, int(program_id))

    async def attempt_login(self, username: str, password: str) -> Optional[str]:
        """
        Log in through the LDAP form.

        Returns:
            The STUDIA_SID cookie on success, None when the portal rejected the credentials

        Raises:
            TransportError: the portal could not be reached
        """
        try:
            response = await self._client.get(
                f"{self.base_url}/login/",
                headers={"Cookie": "STUDIA_COOKIES=YES;"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Studia3 login page failed: {e}") from e

        cookie = response.cookies.get("STUDIA_SID")
        if not cookie:
            logger.error("Session cookie not set by Studia3")
            return None

        try:
            response = await self._client.post(
                f"{self.base_url}/login-ldap",
                data={"studia_login": username, "studia_passwd": password},
                headers={"Cookie": f"STUDIA_COOKIES=YES;STUDIA_SID={cookie}"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Studia3 login failed: {e}") from e

        if response.status_code == 302:
            return cookie
        logger.info(f"Studia3 rejected login (status {response.status_code})")
        return None

    async def login(self, program_id: int, username: str, password: str) -> bool:
        """Log in for a programme and store the cookie; False when the programme is unknown or login fails."""
        existing = await self.get_session(program_id)
        if existing is None:
            return False

        cookie = await self.attempt_login(username, password)
        if cookie is None:
            return False

        async with self.db.session() as session:
            row = await session.get(Studia3Session, int(program_id))
            row.cookie = cookie
            row.last_login = utcnow_naive()

        logger.info(f"Studia3 session refreshed for programme {program_id}")
        return True
