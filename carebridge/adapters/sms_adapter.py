from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import Settings, get_settings
from .base import SendResult

logger = logging.getLogger(__name__)


class SMSAdapter:
    """Africa's Talking bulk SMS.

    The HTTP status only says the request was accepted; delivery submission is
    reported per recipient in ``SMSMessageData.Recipients[].statusCode``.
    """

    channel_name = "sms"

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        settings = settings or get_settings()
        self.url = settings.SMS_API_URL
        self.api_key = settings.SMS_API_KEY
        self.username = settings.SMS_USERNAME
        self.sender_id = settings.SMS_SENDER_ID
        self.success_code = settings.SMS_SUCCESS_STATUS_CODE
        self.timeout = settings.TRANSPORT_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.username)

    def send(self, phone: str, message: str) -> SendResult:
        if not self.configured:
            logger.warning("SMS credentials not configured")
            return SendResult(False, error="not_configured")

        phone = (phone or "").strip()
        recipient = phone[1:] if phone.startswith("+") else phone
        if not recipient:
            return SendResult(False, error="invalid_phone")
        form = {"username": self.username, "to": recipient, "message": message}
        if self.sender_id:
            form["from"] = self.sender_id

        try:
            response = self.http.post(
                self.url,
                data=form,
                headers={"ApiKey": self.api_key, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except Exception as exc:
            logger.error("SMS request to %s failed: %s", phone, exc)
            return SendResult(False, error=str(exc))

        if not 200 <= response.status_code < 300:
            logger.error("SMS API error %s: %s", response.status_code, (response.text or "")[:500])
            return SendResult(False, error=f"http_{response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            logger.error("SMS API returned a non-JSON body for %s", phone)
            return SendResult(False, error="invalid_response")

        recipient_status = _first_recipient(payload)
        if recipient_status is None:
            return SendResult(False, error="no_recipients")
        if recipient_status.get("statusCode") != self.success_code:
            status = recipient_status.get("status") or recipient_status.get("statusCode")
            logger.error("SMS to %s not submitted: %s", phone, status)
            return SendResult(False, error=f"status_{status}")

        logger.info("SMS submitted to %s", phone)
        return SendResult(True, provider_message_id=recipient_status.get("messageId"))


def _first_recipient(payload: Any) -> dict | None:
    if not isinstance(payload, dict):
        return None
    data = payload.get("SMSMessageData") or {}
    recipients = data.get("Recipients") or []
    if not recipients or not isinstance(recipients[0], dict):
        return None
    return recipients[0]
