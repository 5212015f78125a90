from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import Settings, get_settings
from ..services.phone import digits_only
from .base import SendResult

logger = logging.getLogger(__name__)


class WhatsAppAdapter:
    """WhatsApp Business Cloud API text messages."""

    channel_name = "whatsapp"

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        settings = settings or get_settings()
        self.base_url = settings.WHATSAPP_API_URL.rstrip("/")
        self.access_token = settings.WHATSAPP_ACCESS_TOKEN
        self.phone_number_id = settings.WHATSAPP_PHONE_NUMBER_ID
        self.timeout = settings.TRANSPORT_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def send(self, phone: str, message: str) -> SendResult:
        if not self.configured:
            logger.warning("WhatsApp credentials not configured")
            return SendResult(False, error="not_configured")

        recipient = digits_only(phone)
        if not recipient:
            return SendResult(False, error="invalid_phone")

        try:
            response = self.http.post(
                f"{self.base_url}/{self.phone_number_id}/messages",
                json={
                    "messaging_product": "whatsapp",
                    "to": recipient,
                    "type": "text",
                    "text": {"body": message},
                },
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
            )
        except Exception as exc:
            logger.error("WhatsApp request to %s failed: %s", phone, exc)
            return SendResult(False, error=str(exc))

        if not 200 <= response.status_code < 300:
            logger.error("WhatsApp API error %s: %s", response.status_code, _safe_body(response))
            return SendResult(False, error=f"http_{response.status_code}")

        message_id = _message_id(_safe_json(response))
        if not message_id:
            logger.error("WhatsApp API returned no message id for %s", phone)
            return SendResult(False, error="missing_message_id")

        logger.info("WhatsApp message sent to %s: %s", phone, message_id)
        return SendResult(True, provider_message_id=message_id)


def _message_id(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    messages = payload.get("messages") or []
    if not messages or not isinstance(messages[0], dict):
        return None
    return messages[0].get("id") or None


def _safe_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _safe_body(response: requests.Response) -> str:
    return (response.text or "")[:500]
