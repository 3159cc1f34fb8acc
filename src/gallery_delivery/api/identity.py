"""Request identity dependencies.

Identity is verified upstream and forwarded as headers. Every request other
than the health check must carry the shared service token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status

from gallery_delivery.errors import UnauthorizedError

if TYPE_CHECKING:
    from gallery_delivery.containers import AppContainer


@dataclass(frozen=True)
class Requester:
    """Forwarded caller identity: a photographer or a gallery client."""

    owner_id: str | None = None
    client_id: str | None = None
    gallery_id: str | None = None

    def require_owner(self) -> str:
        """Return the owner id or fail when the caller is not a photographer."""
        if not self.owner_id:
            raise UnauthorizedError("Owner identity required")
        return self.owner_id

    def require_client(self, gallery_id: str) -> str:
        """Return the client id if the client token is scoped to the gallery."""
        if not self.client_id:
            raise UnauthorizedError("Client identity required")
        if self.gallery_id != gallery_id:
            raise UnauthorizedError("Client token does not match gallery")
        return self.client_id


def _get_service_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.service_token


async def require_service_token(
    x_service_token: str | None = Header(default=None),
    service_token: str = Depends(_get_service_token),
) -> None:
    """Ensure requests come through the trusted auth layer."""
    if not x_service_token or x_service_token != service_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


async def get_requester(
    x_owner_id: str | None = Header(default=None),
    x_client_id: str | None = Header(default=None),
    x_gallery_id: str | None = Header(default=None),
) -> Requester:
    """Read the forwarded identity headers."""
    if not x_owner_id and not x_client_id:
        raise UnauthorizedError("Missing requester identity")
    return Requester(
        owner_id=x_owner_id or None,
        client_id=x_client_id or None,
        gallery_id=x_gallery_id or None,
    )
