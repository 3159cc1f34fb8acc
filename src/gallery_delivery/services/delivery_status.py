"""Owner dashboard view of archive activity across orders."""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from gallery_delivery.domain.delivery import OrderStatuses
from gallery_delivery.domain.orders import ArchiveKind, DeliveryStatus, OrderRecord
from gallery_delivery.services.storage import ObjectStorage, archive_key

logger = logging.getLogger(__name__)


class OwnerOrderRepository(Protocol):
    """Read interface for orders across an owner's galleries."""

    def list_orders_by_owner(
        self, owner_id: str, status: DeliveryStatus
    ) -> list[OrderRecord]:
        """Return the owner's orders in one delivery status."""


@dataclass
class DeliveryStatusService:
    """Aggregates in-flight and ready archives for the dashboard."""

    repository: OwnerOrderRepository
    storage: ObjectStorage

    async def get_order_statuses(
        self, owner_id: str, if_none_match: str | None = None
    ) -> OrderStatuses:
        """Return orders with archive activity and a fingerprint of the result.

        The ``If-None-Match`` value must equal the fingerprint exactly for the
        snapshot to be reported as not modified.
        """
        started = time.monotonic()
        changes_requested, approved, preparing, delivered = await asyncio.gather(
            asyncio.to_thread(
                self.repository.list_orders_by_owner,
                owner_id,
                DeliveryStatus.CHANGES_REQUESTED,
            ),
            asyncio.to_thread(
                self.repository.list_orders_by_owner,
                owner_id,
                DeliveryStatus.CLIENT_APPROVED,
            ),
            asyncio.to_thread(
                self.repository.list_orders_by_owner,
                owner_id,
                DeliveryStatus.PREPARING_DELIVERY,
            ),
            asyncio.to_thread(
                self.repository.list_orders_by_owner,
                owner_id,
                DeliveryStatus.DELIVERED,
            ),
        )

        originals_candidates = [
            order
            for order in (*changes_requested, *approved, *preparing)
            if _has_activity(order, ArchiveKind.ORIGINALS)
        ]
        final_candidates = [
            order for order in delivered if _has_activity(order, ArchiveKind.FINAL)
        ]
        originals_ready, final_ready = await asyncio.gather(
            self._check_archives(originals_candidates, ArchiveKind.ORIGINALS),
            self._check_archives(final_candidates, ArchiveKind.FINAL),
        )

        def included(
            order: OrderRecord, kind: ArchiveKind, ready: dict[str, bool]
        ) -> bool:
            return order.archive_generating(kind) or ready[_order_key(order)]

        tracked = [
            order
            for order in originals_candidates
            if included(order, ArchiveKind.ORIGINALS, originals_ready)
        ]
        tracked_ids = {_order_key(order) for order in tracked}
        # Pending change requests are always listed.
        untracked_changes = [
            order
            for order in changes_requested
            if _order_key(order) not in tracked_ids
        ]

        def tracked_in(status: DeliveryStatus) -> list[OrderRecord]:
            return [order for order in tracked if order.delivery_status is status]

        ordered = (
            tracked_in(DeliveryStatus.CHANGES_REQUESTED)
            + untracked_changes
            + tracked_in(DeliveryStatus.CLIENT_APPROVED)
            + tracked_in(DeliveryStatus.PREPARING_DELIVERY)
            + [
                order
                for order in final_candidates
                if included(order, ArchiveKind.FINAL, final_ready)
            ]
        )

        orders = [
            serialize_order_status(order, originals_ready, final_ready)
            for order in ordered
        ]
        etag = orders_etag(orders)
        not_modified = bool(if_none_match) and if_none_match == etag
        logger.info(
            "Order statuses computed",
            extra={
                "owner_id": owner_id,
                "etag": etag,
                "order_count": len(orders),
                "not_modified": not_modified,
                "duration_ms": int((time.monotonic() - started) * 1000),
            },
        )
        if not_modified:
            return OrderStatuses(orders=[], etag=etag, not_modified=True)
        return OrderStatuses(orders=orders, etag=etag)

    async def _check_archives(
        self, orders: list[OrderRecord], kind: ArchiveKind
    ) -> dict[str, bool]:
        results = await asyncio.gather(
            *(self._archive_exists(order, kind) for order in orders)
        )
        return {
            _order_key(order): exists
            for order, exists in zip(orders, results, strict=True)
        }

    async def _archive_exists(self, order: OrderRecord, kind: ArchiveKind) -> bool:
        # A generating archive cannot be in storage yet.
        if order.archive_generating(kind):
            return False
        key = archive_key(order.gallery_id, order.order_id, kind)
        try:
            return await asyncio.to_thread(self.storage.exists, key)
        except Exception:
            logger.warning(
                "Archive existence check failed",
                extra={"order_id": order.order_id, "key": key},
                exc_info=True,
            )
            return False


def serialize_order_status(
    order: OrderRecord,
    originals_ready: dict[str, bool],
    final_ready: dict[str, bool],
) -> dict[str, object]:
    """Render one dashboard entry with a fixed field order."""
    data: dict[str, object] = {
        "orderId": order.order_id,
        "galleryId": order.gallery_id,
        "deliveryStatus": order.delivery_status.value,
        "paymentStatus": order.payment_status,
        "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
    }
    key = _order_key(order)
    if _has_activity(order, ArchiveKind.ORIGINALS):
        generating = order.zip_generating
        data["zipStatusUserSelected"] = {
            "isGenerating": generating,
            "type": "original",
            "ready": not generating and originals_ready.get(key, False),
        }
    if _has_activity(order, ArchiveKind.FINAL):
        generating = order.final_zip_generating
        data["zipStatusFinal"] = {
            "isGenerating": generating,
            "type": "final",
            "ready": not generating and final_ready.get(key, False),
        }
    return data


def orders_etag(orders: list[dict[str, object]]) -> str:
    """MD5 of the compact JSON serialization of the dashboard entries."""
    payload = json.dumps(orders, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()  # noqa: S324


def _has_activity(order: OrderRecord, kind: ArchiveKind) -> bool:
    return order.archive_generating(kind) or bool(order.archive_hash(kind))


def _order_key(order: OrderRecord) -> str:
    return f"{order.gallery_id}:{order.order_id}"
