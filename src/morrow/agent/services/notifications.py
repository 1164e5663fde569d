"""
Email and SMS notifications.

Email goes through SendGrid's v3 mail API and SMS through Twilio's
Messages API. Missing credentials never fail a send: the result is
marked ``simulated`` and carries the same payload.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.errors import ToolExecutionError
from ..domain.ports import INotificationProvider

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

DEFAULT_EMAIL_SUBJECT = "Your SmartLocal Client Portal"
CHANNELS = ("email", "sms")


class NotificationService(INotificationProvider):
    """SendGrid/Twilio sender with a simulated fallback.

    Usage:
        notifier = NotificationService(sendgrid_api_key=os.getenv("SENDGRID_API_KEY"))
        result = await notifier.send("email", "owner@example.com", "https://portal/...")
        if result.get("simulated"):
            ...
    """

    def __init__(
        self,
        sendgrid_api_key: Optional[str] = None,
        sendgrid_from: str = "no-reply@smartlocal.ai",
        twilio_sid: Optional[str] = None,
        twilio_token: Optional[str] = None,
        twilio_from: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.sendgrid_api_key = sendgrid_api_key
        self.sendgrid_from = sendgrid_from
        self.twilio_sid = twilio_sid
        self.twilio_token = twilio_token
        self.twilio_from = twilio_from
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key)

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_sid and self.twilio_token and self.twilio_from)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(
        self,
        channel: str,
        target: str,
        link: Optional[str],
        message: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> dict[str, Any]:
        """Send a link or message.

        Raises:
            ToolExecutionError: On an unknown channel, a missing target,
                or a non-2xx upstream response
        """
        channel = (channel or "").lower()
        if channel not in CHANNELS:
            raise ToolExecutionError(f"Unsupported notification channel: {channel!r}")
        if not target:
            raise ToolExecutionError(f"No {channel} target provided")

        result: dict[str, Any] = {"ok": True, "channel": channel, "target": target, "link": link}

        if channel == "email":
            body = message or f"Welcome! Access your portal here: {link}"
            if not self.email_configured:
                logger.warning(f"SENDGRID_API_KEY missing; simulated email to {target}")
                return {**result, "simulated": True}
            await self._send_email(target, subject or DEFAULT_EMAIL_SUBJECT, body)
        else:
            body = message or f"Your SmartLocal portal: {link}"
            if not self.sms_configured:
                logger.warning(f"TWILIO_* settings missing; simulated sms to {target}")
                return {**result, "simulated": True}
            await self._send_sms(target, body)

        logger.info(f"Sent {channel} notification to {target}")
        return result

    async def _send_email(self, to: str, subject: str, body: str) -> None:
        response = await self._get_client().post(
            SENDGRID_URL,
            headers={"Authorization": f"Bearer {self.sendgrid_api_key}"},
            json={
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self.sendgrid_from},
                "subject": subject,
                "content": [{"type": "text/plain", "value": body}],
            },
        )
        if not response.is_success:
            raise ToolExecutionError(
                f"SendGrid error: {response.status_code} {response.text}",
                details={"status_code": response.status_code},
            )

    async def _send_sms(self, to: str, body: str) -> None:
        response = await self._get_client().post(
            TWILIO_URL.format(sid=self.twilio_sid),
            auth=(self.twilio_sid, self.twilio_token),
            data={"From": self.twilio_from, "To": to, "Body": body},
        )
        if not response.is_success:
            raise ToolExecutionError(
                f"Twilio error: {response.status_code} {response.text}",
                details={"status_code": response.status_code},
            )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
