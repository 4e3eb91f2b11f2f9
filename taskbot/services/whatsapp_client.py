"""
WhatsApp gateway client - outbound text messages over HTTP
"""
import logging
from typing import Any, Dict, Optional

import httpx

from taskbot.config import Settings
from taskbot.errors import UpstreamUnavailable
from taskbot.utils.logger import mask_phone

logger = logging.getLogger(__name__)


def normalize_phone(phone: str) -> str:
    """Convert local 08xxx numbers to the 628xxx international form"""
    phone = (phone or "").strip()
    if phone.startswith("+"):
        phone = phone[1:]
    if phone.startswith("08"):
        return "628" + phone[2:]
    return phone


def to_jid(phone: str) -> str:
    if "@" in phone:
        return phone
    return normalize_phone(phone) + "@s.whatsapp.net"


class WhatsAppClient:
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.WHATSAPP_API_URL.rstrip("/")
        self.path = settings.WHATSAPP_PATH.strip("/")
        self.auth = (settings.WHATSAPP_USERNAME, settings.WHATSAPP_PASSWORD)
        self.timeout = settings.WHATSAPP_TIMEOUT_SECONDS
        self._client = client

    @property
    def send_url(self) -> str:
        if self.path:
            return f"{self.base_url}/{self.path}/send/message"
        return f"{self.base_url}/send/message"

    async def send_message(
        self,
        phone: str,
        message: str,
        is_forwarded: bool = False,
        duration: int = 0,
    ) -> Dict[str, Any]:
        if not phone:
            raise UpstreamUnavailable("No recipient phone number")

        payload = {
            "phone": to_jid(phone),
            "message": message,
            "is_forwarded": is_forwarded,
            "duration": duration,
        }

        try:
            if self._client is not None:
                response = await self._client.post(self.send_url, json=payload, auth=self.auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.send_url, json=payload, auth=self.auth)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                f"whatsapp_http_error: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"whatsapp_timeout: {e}") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"whatsapp_network_error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        logger.debug(f"WhatsApp message sent to {mask_phone(payload['phone'])}: {data}")
        return data

    async def send_text(self, phone: str, message: str) -> None:
        await self.send_message(phone, message)

