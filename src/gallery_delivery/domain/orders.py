"""Domain models for selection/delivery orders."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from gallery_delivery.domain.galleries import PricingPackage


class DeliveryStatus(str, Enum):
    """Lifecycle states of an order."""

    CLIENT_SELECTING = "CLIENT_SELECTING"
    CLIENT_APPROVED = "CLIENT_APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    PREPARING_DELIVERY = "PREPARING_DELIVERY"
    DELIVERED = "DELIVERED"


ACTIVE_STATUSES = frozenset(
    {
        DeliveryStatus.CLIENT_SELECTING,
        DeliveryStatus.CLIENT_APPROVED,
        DeliveryStatus.CHANGES_REQUESTED,
        DeliveryStatus.PREPARING_DELIVERY,
    }
)

# An approval cannot be layered on top of these.
APPROVED_STATUSES = frozenset(
    {DeliveryStatus.CLIENT_APPROVED, DeliveryStatus.PREPARING_DELIVERY}
)

# Any of these means the next approval is not a purchase-more cycle.
BLOCKING_STATUSES = frozenset(
    {
        DeliveryStatus.CLIENT_APPROVED,
        DeliveryStatus.PREPARING_DELIVERY,
        DeliveryStatus.CHANGES_REQUESTED,
    }
)


class ArchiveKind(str, Enum):
    """Kinds of downloadable archives."""

    ORIGINALS = "originals"
    FINAL = "final"
    UNSELECTED = "unselected"


@dataclass(frozen=True)
class OrderRecord:
    """Represents one selection/delivery cycle of a gallery."""

    gallery_id: str
    order_id: str
    order_number: int
    delivery_status: DeliveryStatus
    payment_status: str = "UNPAID"
    owner_id: str | None = None
    selected_keys: list[str] = field(default_factory=list)
    selected_count: int = 0
    overage_count: int = 0
    overage_cents: int = 0
    total_cents: int = 0
    zip_key: str | None = None
    zip_generating: bool = False
    zip_selected_keys_hash: str | None = None
    final_zip_generating: bool = False
    final_zip_files_hash: str | None = None
    change_requests_blocked: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    delivered_at: datetime | None = None
    canceled_at: datetime | None = None

    @property
    def key_count(self) -> int:
        """Selected count derived from the keys, never from the stored counter."""
        return len(self.selected_keys)

    def archive_generating(self, kind: ArchiveKind) -> bool:
        """Return the generating flag for an archive kind."""
        if kind is ArchiveKind.FINAL:
            return self.final_zip_generating
        return self.zip_generating

    def archive_hash(self, kind: ArchiveKind) -> str | None:
        """Return the recorded key-set fingerprint for an archive kind."""
        if kind is ArchiveKind.FINAL:
            return self.final_zip_files_hash
        return self.zip_selected_keys_hash


@dataclass(frozen=True)
class SelectionUpdate:
    """Selection and pricing fields written when an order is approved."""

    selected_keys: list[str]
    selected_count: int
    overage_count: int
    overage_cents: int
    total_cents: int


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of an approved selection."""

    gallery_id: str
    client_id: str
    order_id: str
    selected_count: int
    overage_count: int
    overage_cents: int
    zip_key: str | None = None
    status: str = "APPROVED"


@dataclass(frozen=True)
class SelectionState:
    """Read-side view of a gallery's current selection."""

    selected_keys: list[str]
    selected_count: int
    overage_count: int
    overage_cents: int
    approved: bool
    can_select: bool
    can_request_changes: bool
    change_request_pending: bool
    change_requests_blocked: bool
    has_delivered_order: bool
    selection_enabled: bool
    active_order_id: str | None
    active_status: DeliveryStatus | None
    pricing_package: PricingPackage = field(default_factory=PricingPackage)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of marking an order delivered."""

    gallery_id: str
    order_id: str
    delivered_at: datetime
    deleted_count: int
    originals_bytes_freed: int
    delivery_status: DeliveryStatus = DeliveryStatus.DELIVERED
