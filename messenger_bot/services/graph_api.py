"""Messenger Platform (Graph API) client."""
import logging
from typing import Dict, Optional, Union

import httpx

from messenger_bot.errors import TransportError
from messenger_bot.messaging.outbound import (
    Directive,
    MessagingType,
    SenderAction,
    render_message,
    render_sender_action,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = "first_name,last_name,gender,locale,id"


class MessengerClient:
    """Client for the Send API and the user profile / account linking lookups."""

    def __init__(self, api_url: str, page_access_token: str, client: Optional[httpx.AsyncClient] = None):
        """Initialize Graph API client."""
        self.api_url = api_url.rstrip("/")
        self.page_access_token = page_access_token
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(30.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )

    async def close(self) -> None:
        """Close underlying HTTP resources."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, params: Optional[Dict] = None, json: Optional[Dict] = None) -> Dict:
        url = f"{self.api_url}/{path.lstrip('/')}"
        query = {"access_token": self.page_access_token}
        if params:
            query.update(params)

        try:
            response = await self._client.request(method, url, params=query, json=json)
        except httpx.HTTPError as e:
            raise TransportError(f"Graph API {method} {path} failed: {e}") from e

        if response.status_code // 100 != 2:
            # Graph errors carry {"error": {"message", "code", ...}}
            detail = response.text[:300]
            raise TransportError(
                f"Graph API {method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def send_message(
        self,
        recipient_id: str,
        reply: Union[str, Directive],
        messaging_type: MessagingType = MessagingType.RESPONSE,
    ) -> Optional[str]:
        """
        Send a text or template message.

        Returns:
            The platform message id, or None when the response carries none

        Raises:
            TransportError: network failure or non-2xx response
        """
        body = render_message(recipient_id, reply, messaging_type)
        data = await self._request("POST", "me/messages", json=body)
        message_id = data.get("message_id")
        logger.debug(f"Sent {messaging_type.value} message to {recipient_id}: {message_id}")
        return str(message_id) if message_id else None

    async def sender_action(self, recipient_id: str, action: SenderAction) -> None:
        await self._request("POST", "me/messages", json=render_sender_action(recipient_id, action))

    async def get_user_profile(self, psid: str) -> Dict:
        """
        Fetch the public profile of a user.

        Returns:
            Dict with first_name, last_name, gender, locale, id (fields may be absent)
        """
        return await self._request("GET", str(psid), params={"fields": PROFILE_FIELDS})

    async def get_psid_for_linking_token(self, linking_token: str) -> Optional[str]:
        """Resolve an `account_linking_token` to the page-scoped id of the user who clicked."""
        data = await self._request(
            "GET",
            "me",
            params={"fields": "recipient", "account_linking_token": linking_token},
        )
        recipient = data.get("recipient")
        return str(recipient) if recipient else None
