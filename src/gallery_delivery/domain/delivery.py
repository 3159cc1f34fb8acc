"""Domain models for archive and delivery status."""

from dataclasses import dataclass

from gallery_delivery.domain.orders import ArchiveKind


@dataclass(frozen=True)
class ArchiveStatus:
    """Status of a single order's archive."""

    gallery_id: str
    order_id: str
    kind: ArchiveKind
    status: str
    generating: bool
    ready: bool


@dataclass(frozen=True)
class OrderStatuses:
    """Dashboard snapshot of orders with archive activity."""

    orders: list[dict[str, object]]
    etag: str
    not_modified: bool = False
