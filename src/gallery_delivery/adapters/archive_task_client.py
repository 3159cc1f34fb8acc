"""HTTP client for the archive build task."""

from dataclasses import dataclass

import httpx

from gallery_delivery.services.archives import ArchiveTaskClient


@dataclass
class HttpxArchiveTaskClient(ArchiveTaskClient):
    """Invokes the archive build task over HTTP.

    ``X-Invocation-Type`` tells the task runner whether to answer with the
    build result (``RequestResponse``) or to accept the job and return at
    once (``Event``).
    """

    url: str
    http_client: httpx.AsyncClient
    token: str | None = None
    timeout_seconds: float = 60

    @classmethod
    def create(
        cls, url: str, token: str | None = None, timeout_seconds: float = 60
    ) -> "HttpxArchiveTaskClient":
        """Create a task client with a managed httpx session."""
        return cls(
            url=url,
            http_client=httpx.AsyncClient(),
            token=token,
            timeout_seconds=timeout_seconds,
        )

    async def invoke(
        self, payload: dict[str, object], wait: bool
    ) -> dict[str, object] | None:
        """Post a build request; return the parsed response when waiting."""
        headers = {"X-Invocation-Type": "RequestResponse" if wait else "Event"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self.http_client.post(
            self.url,
            json=payload,
            headers=headers,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        if not wait or not response.content:
            return None
        data = response.json()
        return data if isinstance(data, dict) else None

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
