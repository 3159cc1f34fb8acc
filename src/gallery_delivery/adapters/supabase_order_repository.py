"""Supabase implementation for orders."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from gallery_delivery.domain.orders import (
    ArchiveKind,
    DeliveryStatus,
    OrderRecord,
    SelectionUpdate,
)
from gallery_delivery.services.archives import ArchiveFlagRepository
from gallery_delivery.services.delivery_status import OwnerOrderRepository
from gallery_delivery.services.orders import OrderRepository

_TABLE = "orders"


@dataclass
class SupabaseOrderRepository(
    OrderRepository, ArchiveFlagRepository, OwnerOrderRepository
):
    """Supabase-backed repository for orders keyed by gallery and order id."""

    client: Client

    def list_orders(self, gallery_id: str) -> list[OrderRecord]:
        """Return every order of a gallery, oldest first."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("gallery_id", gallery_id)
            .order("order_number")
            .execute()
        )
        return [_parse_order(row) for row in response.data or []]

    def get_order(self, gallery_id: str, order_id: str) -> OrderRecord | None:
        """Return an order by its composite key."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("gallery_id", gallery_id)
            .eq("order_id", order_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_order(response.data[0])

    def list_orders_by_owner(
        self, owner_id: str, status: DeliveryStatus
    ) -> list[OrderRecord]:
        """Return an owner's orders in one delivery status."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .eq("delivery_status", status.value)
            .order("updated_at", desc=True)
            .execute()
        )
        return [_parse_order(row) for row in response.data or []]

    def create_order(self, order: OrderRecord) -> OrderRecord:
        """Insert a new order and return the stored row."""
        response = self.client.table(_TABLE).insert(_order_payload(order)).execute()
        if not response.data:
            raise RuntimeError("Failed to create order")
        return _parse_order(response.data[0])

    def update_selection(
        self,
        gallery_id: str,
        order_id: str,
        status: DeliveryStatus,
        selection: SelectionUpdate,
        updated_at: datetime,
    ) -> None:
        """Write selection fields and drop the cancellation mark."""
        self._update(
            gallery_id,
            order_id,
            {
                "delivery_status": status.value,
                "selected_keys": selection.selected_keys,
                "selected_count": selection.selected_count,
                "overage_count": selection.overage_count,
                "overage_cents": selection.overage_cents,
                "total_cents": selection.total_cents,
                "updated_at": updated_at.isoformat(),
                "canceled_at": None,
            },
        )

    def update_status(  # noqa: PLR0913
        self,
        gallery_id: str,
        order_id: str,
        status: DeliveryStatus,
        updated_at: datetime,
        *,
        delivered_at: datetime | None = None,
        change_requests_blocked: bool | None = None,
        clear_canceled: bool = False,
    ) -> None:
        """Move an order to a new delivery status."""
        payload: dict[str, object] = {
            "delivery_status": status.value,
            "updated_at": updated_at.isoformat(),
        }
        if delivered_at is not None:
            payload["delivered_at"] = delivered_at.isoformat()
        if change_requests_blocked is not None:
            payload["change_requests_blocked"] = change_requests_blocked
        if clear_canceled:
            payload["canceled_at"] = None
        self._update(gallery_id, order_id, payload)

    def set_archive_generating(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, fingerprint: str
    ) -> None:
        """Mark an archive as generating for a key-set fingerprint."""
        flag, hash_column = _archive_columns(kind)
        self._update(gallery_id, order_id, {flag: True, hash_column: fingerprint})

    def finish_archive(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, zip_key: str | None
    ) -> None:
        """Clear the generating flag and keep the fingerprint."""
        flag, _ = _archive_columns(kind)
        payload: dict[str, object] = {flag: False}
        if kind is ArchiveKind.ORIGINALS and zip_key:
            payload["zip_key"] = zip_key
        self._update(gallery_id, order_id, payload)

    def clear_archive(self, gallery_id: str, order_id: str, kind: ArchiveKind) -> None:
        """Remove the generating flag and the fingerprint."""
        flag, hash_column = _archive_columns(kind)
        self._update(gallery_id, order_id, {flag: False, hash_column: None})

    def _update(
        self, gallery_id: str, order_id: str, payload: dict[str, object]
    ) -> None:
        (
            self.client.table(_TABLE)
            .update(payload)
            .eq("gallery_id", gallery_id)
            .eq("order_id", order_id)
            .execute()
        )


def _archive_columns(kind: ArchiveKind) -> tuple[str, str]:
    if kind is ArchiveKind.FINAL:
        return "final_zip_generating", "final_zip_files_hash"
    return "zip_generating", "zip_selected_keys_hash"


def _order_payload(order: OrderRecord) -> dict[str, object]:
    return {
        "gallery_id": order.gallery_id,
        "order_id": order.order_id,
        "order_number": order.order_number,
        "delivery_status": order.delivery_status.value,
        "payment_status": order.payment_status,
        "owner_id": order.owner_id,
        "selected_keys": order.selected_keys,
        "selected_count": order.selected_count,
        "overage_count": order.overage_count,
        "overage_cents": order.overage_cents,
        "total_cents": order.total_cents,
        "change_requests_blocked": order.change_requests_blocked,
        "created_at": _format_datetime(order.created_at),
        "updated_at": _format_datetime(order.updated_at),
    }


def _parse_order(row: dict[str, object]) -> OrderRecord:
    return OrderRecord(
        gallery_id=str(row["gallery_id"]),
        order_id=str(row["order_id"]),
        order_number=int(row.get("order_number") or 0),
        delivery_status=DeliveryStatus(row["delivery_status"]),
        payment_status=str(row.get("payment_status") or "UNPAID"),
        owner_id=row.get("owner_id"),
        selected_keys=list(row.get("selected_keys") or []),
        selected_count=int(row.get("selected_count") or 0),
        overage_count=int(row.get("overage_count") or 0),
        overage_cents=int(row.get("overage_cents") or 0),
        total_cents=int(row.get("total_cents") or 0),
        zip_key=row.get("zip_key"),
        zip_generating=bool(row.get("zip_generating")),
        zip_selected_keys_hash=row.get("zip_selected_keys_hash"),
        final_zip_generating=bool(row.get("final_zip_generating")),
        final_zip_files_hash=row.get("final_zip_files_hash"),
        change_requests_blocked=bool(row.get("change_requests_blocked")),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
        delivered_at=_parse_datetime(row.get("delivered_at")),
        canceled_at=_parse_datetime(row.get("canceled_at")),
    )


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
