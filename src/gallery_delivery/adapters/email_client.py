"""Transactional email API client."""

from dataclasses import dataclass

import httpx

from gallery_delivery.services.notifications import EmailClient


@dataclass
class HttpxEmailClient(EmailClient):
    """HTTPX-backed client for a JSON email API."""

    api_url: str
    api_key: str
    sender: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_url: str, api_key: str, sender: str) -> "HttpxEmailClient":
        """Create an email client with a managed httpx session."""
        return cls(
            api_url=api_url,
            api_key=api_key,
            sender=sender,
            http_client=httpx.AsyncClient(),
        )

    async def send_email(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> None:
        """Send one email."""
        payload: dict[str, object] = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        if html:
            payload["html"] = html
        response = await self.http_client.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=15,
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
