"""
Outbound notifications: Telegram chat messages and Resend emails.

These run as background tasks after the response has been sent. Every
failure is logged and dropped; nothing is retried.
"""
from typing import Any, Dict, Optional
import html
import logging

import httpx
from fastapi import Depends

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"
RESEND_API_URL = "https://api.resend.com/emails"


class NotificationService:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.NOTIFY_TIMEOUT_SECONDS,
                transport=self.transport
            ) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
            return True
        except httpx.HTTPStatusError as e:
            logger.error(f"Notification to {e.request.url.host} failed with HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Notification request failed: {e}")
        return False

    async def send_telegram_message(self, text: str) -> bool:
        token = self.settings.TELEGRAM_BOT_TOKEN
        chat_id = self.settings.TELEGRAM_CHAT_ID
        if not token or not chat_id:
            logger.warning("Telegram notification skipped (missing TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID).")
            return False
        return await self._post(
            TELEGRAM_API_URL.format(token=token),
            {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        )

    async def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        api_key = self.settings.RESEND_API_KEY
        sender = self.settings.RESEND_FROM_EMAIL
        if not api_key or not sender:
            logger.warning("Email skipped (missing RESEND_API_KEY/RESEND_FROM_EMAIL).")
            return False
        return await self._post(
            RESEND_API_URL,
            {"from": sender, "to": [to_email], "subject": subject, "html": html_body},
            headers={"Authorization": f"Bearer {api_key}"}
        )

    async def notify_new_lead(self, name: str, email: str, message: str) -> bool:
        text = (
            "<b>New lead</b>\n"
            f"<b>Name:</b> {html.escape(name)}\n"
            f"<b>Email:</b> {html.escape(email)}\n"
            f"<b>Message:</b> {html.escape(message)}"
        )
        return await self.send_telegram_message(text)

    async def send_activation_email(self, to_email: str, name: Optional[str], token: str) -> bool:
        link = f"{self.settings.activation_url}?token={token}"
        minutes = self.settings.RESET_TOKEN_EXPIRE_MINUTES
        body = (
            f"<p>Hello {html.escape(name or '')},</p>"
            f"<p>Use the link below to set your password. It expires in {minutes} minutes.</p>"
            f'<p><a href="{html.escape(link)}">{html.escape(link)}</a></p>'
            "<p>If you did not request this, ignore this email.</p>"
        )
        return await self.send_email(to_email, f"{self.settings.PROJECT_NAME} - Account access", body)


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationService:
    return NotificationService(settings)
