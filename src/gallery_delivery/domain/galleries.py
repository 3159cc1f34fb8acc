"""Gallery domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PricingPackage:
    """Package terms set by the photographer."""

    included_count: int = 0
    extra_price_cents: int = 0
    package_price_cents: int = 0
    package_name: str | None = None


@dataclass(frozen=True)
class SelectionStats:
    """Denormalized selection summary stored on the gallery."""

    selected_count: int
    overage_count: int
    overage_cents: int


@dataclass(frozen=True)
class GalleryRecord:
    """Represents a gallery and its order-related configuration."""

    gallery_id: str
    owner_id: str
    pricing_package: PricingPackage | None = None
    selection_enabled: bool = True
    selection_status: str | None = None
    selection_stats: SelectionStats | None = None
    last_order_number: int = 0
    current_order_id: str | None = None
    originals_bytes_used: int = 0
    name: str | None = None
    owner_email: str | None = None
    client_email: str | None = None
