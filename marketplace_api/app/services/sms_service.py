"""
Outbound SMS through an HTTP gateway.

The gateway is expected to accept a JSON POST with ``api_key``,
``api_secret``, ``from``, ``to`` and ``text`` (the shape used by
Vonage's SMS API).  Without ``SMS_API_URL`` configured nothing is
sent and ``send`` returns ``False``.
"""

import logging

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


class SmsService:
    """Deliver phone verification codes."""

    timeout_seconds = 30

    @classmethod
    def enabled(cls) -> bool:
        return bool(settings.sms_api_url)

    @classmethod
    async def send(cls, to: str, text: str) -> bool:
        """Send ``text`` to ``to``; raise ``httpx.HTTPError`` on failure."""
        if not cls.enabled():
            logger.info("SMS delivery disabled; not texting %s", to)
            return False
        payload = {
            "api_key": settings.sms_api_key,
            "api_secret": settings.sms_api_secret,
            "from": settings.sms_sender,
            "to": to.lstrip("+"),
            "text": text,
        }
        async with httpx.AsyncClient(timeout=cls.timeout_seconds) as client:
            response = await client.post(settings.sms_api_url, json=payload)
            response.raise_for_status()
        logger.info("Sent SMS to %s", to)
        return True
