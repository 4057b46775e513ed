"""USOS OAuth 1.0a client (request token -> authorize -> access token)."""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth1Client

from messenger_bot.errors import OAuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    key: str
    secret: str


class UsosOAuthClient:
    """
    Client for the USOS API OAuth endpoints.

    Each handshake step gets its own signing client, since the token it signs
    with differs per user.
    """

    def __init__(
        self,
        api_url: str,
        consumer_key: str,
        consumer_secret: str,
        *,
        scopes: str = "grades|offline_access|studies|crstests",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.scopes = scopes
        self._transport = transport

    @property
    def request_token_url(self) -> str:
        return f"{self.api_url}/oauth/request_token"

    @property
    def access_token_url(self) -> str:
        return f"{self.api_url}/oauth/access_token"

    def authorize_url(self, request_token: str) -> str:
        return f"{self.api_url}/oauth/authorize?{urlencode({'oauth_token': request_token})}"

    def _session(self, token: Optional[TokenPair] = None, callback_url: Optional[str] = None) -> AsyncOAuth1Client:
        return AsyncOAuth1Client(
            self.consumer_key,
            self.consumer_secret,
            token=token.key if token else None,
            token_secret=token.secret if token else None,
            redirect_uri=callback_url,
            timeout=httpx.Timeout(30.0),
            transport=self._transport,
        )

    async def _fetch(self, url: str, fetch) -> TokenPair:
        try:
            data = await fetch()
        except httpx.HTTPError as e:
            raise OAuthError(f"USOS request to {url} failed: {e}") from e
        except (AuthlibBaseError, KeyError, ValueError) as e:
            raise OAuthError(f"USOS {url} refused the token request: {e}") from e

        key = data.get("oauth_token")
        secret = data.get("oauth_token_secret")
        if not key or not secret:
            raise OAuthError(f"USOS {url} response has no token pair")
        return TokenPair(key=key, secret=secret)

    async def request_token(self, callback_url: str) -> TokenPair:
        """
        Step 1: obtain an unauthorized request token.

        Raises:
            OAuthError: transport failure or unusable response
        """
        async with self._session(callback_url=callback_url) as session:
            pair = await self._fetch(
                self.request_token_url,
                lambda: session.fetch_request_token(self.request_token_url, params={"scopes": self.scopes}),
            )
        logger.debug("Got USOS request token")
        return pair

    async def access_token(self, request_token: TokenPair, verifier: str) -> TokenPair:
        """Step 3: exchange the authorized request token for an access token."""
        async with self._session(token=request_token) as session:
            return await self._fetch(
                self.access_token_url,
                lambda: session.fetch_access_token(self.access_token_url, verifier=verifier),
            )
