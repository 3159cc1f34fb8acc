"""Supabase implementation for gallery records."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from gallery_delivery.domain.galleries import (
    GalleryRecord,
    PricingPackage,
    SelectionStats,
)
from gallery_delivery.services.orders import GalleryRepository

_TABLE = "galleries"


@dataclass
class SupabaseGalleryRepository(GalleryRepository):
    """Supabase-backed gallery repository.

    Counters are advanced by Postgres functions so concurrent requests never
    read-modify-write them:

    * ``next_order_number(p_gallery_id)`` increments ``last_order_number``
    * ``add_originals_bytes(p_gallery_id, p_delta)`` adds to
      ``originals_bytes_used``

    Both return the updated value.
    """

    client: Client

    def get_gallery(self, gallery_id: str) -> GalleryRecord | None:
        """Return a gallery by id."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("id", gallery_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_gallery(response.data[0])

    def next_order_number(self, gallery_id: str) -> int:
        """Increment the order counter and return the new value."""
        response = self.client.rpc(
            "next_order_number", {"p_gallery_id": gallery_id}
        ).execute()
        return _scalar(response.data, "next_order_number")

    def update_selection_summary(  # noqa: PLR0913
        self,
        gallery_id: str,
        selection_status: str,
        current_order_id: str,
        updated_at: datetime,
        stats: SelectionStats | None = None,
    ) -> None:
        """Write the selection summary fields."""
        payload: dict[str, object] = {
            "selection_status": selection_status,
            "current_order_id": current_order_id,
            "updated_at": updated_at.isoformat(),
        }
        if stats is not None:
            payload["selection_stats"] = {
                "selectedCount": stats.selected_count,
                "overageCount": stats.overage_count,
                "overageCents": stats.overage_cents,
            }
        self.client.table(_TABLE).update(payload).eq("id", gallery_id).execute()

    def add_originals_bytes(self, gallery_id: str, delta: int) -> int:
        """Atomically add to the originals byte counter."""
        response = self.client.rpc(
            "add_originals_bytes", {"p_gallery_id": gallery_id, "p_delta": delta}
        ).execute()
        return _scalar(response.data, "add_originals_bytes")

    def set_originals_bytes(self, gallery_id: str, value: int) -> None:
        """Overwrite the originals byte counter."""
        (
            self.client.table(_TABLE)
            .update({"originals_bytes_used": value})
            .eq("id", gallery_id)
            .execute()
        )


def _scalar(data: object, name: str) -> int:
    # Scalar functions come back bare or wrapped in a single-row list.
    if isinstance(data, list):
        if not data:
            raise RuntimeError(f"{name} returned no value")
        data = data[0]
    if isinstance(data, dict):
        data = data.get(name)
    if data is None:
        raise RuntimeError(f"{name} returned no value")
    return int(data)


def _parse_gallery(row: dict[str, object]) -> GalleryRecord:
    package = row.get("pricing_package")
    stats = row.get("selection_stats")
    return GalleryRecord(
        gallery_id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        pricing_package=_parse_package(package) if isinstance(package, dict) else None,
        selection_enabled=row.get("selection_enabled") is not False,
        selection_status=row.get("selection_status"),
        selection_stats=_parse_stats(stats) if isinstance(stats, dict) else None,
        last_order_number=int(row.get("last_order_number") or 0),
        current_order_id=row.get("current_order_id"),
        originals_bytes_used=int(row.get("originals_bytes_used") or 0),
        name=row.get("name"),
        owner_email=row.get("owner_email"),
        client_email=row.get("client_email"),
    )


def _parse_package(data: dict[str, object]) -> PricingPackage:
    return PricingPackage(
        included_count=int(data.get("includedCount") or 0),
        extra_price_cents=int(data.get("extraPriceCents") or 0),
        package_price_cents=int(data.get("packagePriceCents") or 0),
        package_name=data.get("packageName"),
    )


def _parse_stats(data: dict[str, object]) -> SelectionStats:
    return SelectionStats(
        selected_count=int(data.get("selectedCount") or 0),
        overage_count=int(data.get("overageCount") or 0),
        overage_cents=int(data.get("overageCents") or 0),
    )
