"""Fire-and-forget transactional email for admin alerts."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import EmailConfig
from .logging_utils import log_event

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends plain-text notifications through the Brevo SMTP API.

    ``send`` never raises: failures are logged and reported as ``False``.
    """

    def __init__(self, config: EmailConfig, client: Optional[httpx.Client] = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(config.timeout_s))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "EmailNotifier":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def build_payload(self, to: str, subject: str, body: str) -> dict:
        return {
            "sender": {"name": self.config.sender_name, "email": self.config.sender_email},
            "to": [{"email": to, "name": to.split("@")[0]}],
            "subject": subject,
            "textContent": body,
        }

    def send(self, to: str, subject: str, body: str) -> bool:
        if not self.config.api_key:
            logger.info("Email disabled (no API key); dropping %r to %s", subject, to)
            return False
        headers = {"accept": "application/json", "api-key": self.config.api_key}
        try:
            response = self._client.post(self.config.endpoint, json=self.build_payload(to, subject, body), headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log_event("email_failed", level=logging.WARNING, to=to, subject=subject, error=str(exc))
            return False
        log_event("email_sent", to=to, subject=subject)
        return True
