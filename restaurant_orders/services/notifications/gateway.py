"""
Messaging Gateway Service

Sends customer text messages through a bearer-token HTTP messaging API
(WhatsApp Cloud API message format). Phone numbers are reduced to digits
before sending.
"""

import logging
import re
from typing import Optional

import httpx

from restaurant_orders.core.config import get_settings
from restaurant_orders.core.exceptions import UpstreamNotificationError
from restaurant_orders.services.notifications.base import (
    BaseMessagingService,
    NotificationResult,
)

logger = logging.getLogger(__name__)


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


class GatewayMessagingService(BaseMessagingService):
    """Production messaging over the gateway's ``/{phone_id}/messages`` endpoint."""

    def __init__(
        self,
        phone_id: str,
        access_token: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.phone_id = phone_id
        self.api_url = (api_url or settings.messaging_api_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.messaging_timeout_seconds,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if client is not None:
            self._client.headers["Authorization"] = f"Bearer {access_token}"
        logger.info("GatewayMessagingService initialized")

    @property
    def provider_name(self) -> str:
        return "gateway"

    @property
    def messages_url(self) -> str:
        return f"{self.api_url}/{self.phone_id}/messages"

    async def send_text(self, to_phone: str, body: str) -> NotificationResult:
        """Send one text message to ``to_phone``."""
        recipient = digits_only(to_phone)
        if not recipient:
            raise UpstreamNotificationError(f"Phone number {to_phone!r} has no digits")

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": body},
        }

        try:
            response = await self._client.post(self.messages_url, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamNotificationError(f"Messaging gateway unreachable: {e}") from e

        if response.status_code >= 400:
            raise UpstreamNotificationError(
                f"Messaging gateway rejected message: {response.status_code} {response.text[:200]}",
                gateway_status=response.status_code,
            )

        message_id = None
        try:
            messages = response.json().get("messages") or []
            if messages:
                message_id = messages[0].get("id")
        except ValueError:
            logger.debug("Messaging gateway returned a non-JSON body")

        logger.info(f"Message sent to {recipient}: {message_id}")
        return NotificationResult(success=True, message_id=message_id, provider=self.provider_name)

    async def health_check(self) -> bool:
        """The gateway has no cheap ping; configured credentials count as healthy."""
        return bool(self.phone_id)

    async def aclose(self) -> None:
        await self._client.aclose()
