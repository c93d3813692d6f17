"""Transactional email through the Resend HTTP API."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendMailer:
    """Sends email with Resend; without an API key every send is a logged no-op.

    Delivery errors are logged and reported through the return value,
    never raised.
    """

    def __init__(
        self,
        api_key: str | None,
        sender: str,
        client: httpx.Client | None = None,
        timeout: float = 15,
    ):
        self.api_key = api_key
        self.sender = sender
        self._client = client
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, to: str | list[str], subject: str, html: str) -> bool:
        recipients = [to] if isinstance(to, str) else list(to)
        if not self.configured:
            logger.info("Resend API key not set, skipping email to %s", ", ".join(recipients))
            return False

        payload = {"from": self.sender, "to": recipients, "subject": subject, "html": html}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = self._client.post(RESEND_API_URL, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(RESEND_API_URL, headers=headers, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to send email %r: %s", subject, e)
            return False

        try:
            message_id = response.json().get("id", "")
        except ValueError:
            message_id = ""
        logger.info("Email sent to %d recipients, subject=%r, message_id=%s", len(recipients), subject, message_id)
        return True


def get_mailer(config: dict[str, Any]) -> ResendMailer:
    email_cfg = config.get("email", {})
    return ResendMailer(email_cfg.get("resend_api_key"), email_cfg.get("from", "noreply@localhost"))
