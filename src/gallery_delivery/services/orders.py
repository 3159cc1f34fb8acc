"""Order lifecycle: selection approval, change requests and delivery."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from gallery_delivery.domain.galleries import (
    GalleryRecord,
    PricingPackage,
    SelectionStats,
)
from gallery_delivery.domain.orders import (
    APPROVED_STATUSES,
    BLOCKING_STATUSES,
    ApprovalResult,
    ArchiveKind,
    DeliveryResult,
    DeliveryStatus,
    OrderRecord,
    SelectionState,
    SelectionUpdate,
)
from gallery_delivery.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from gallery_delivery.services.archives import ArchiveService
from gallery_delivery.services.notifications import NotificationService
from gallery_delivery.services.pricing import quote_for_package
from gallery_delivery.services.storage import (
    ObjectStorage,
    final_prefix,
    original_key,
)

logger = logging.getLogger(__name__)

_DELETE_BATCH_SIZE = 1000

# Read-side priority when more than one order looks active.
_ACTIVE_PRIORITY = (
    DeliveryStatus.CLIENT_SELECTING,
    DeliveryStatus.CLIENT_APPROVED,
    DeliveryStatus.PREPARING_DELIVERY,
    DeliveryStatus.CHANGES_REQUESTED,
)


class OrderRepository(Protocol):
    """Persistence interface for orders."""

    def list_orders(self, gallery_id: str) -> list[OrderRecord]:
        """Return every order of a gallery."""

    def get_order(self, gallery_id: str, order_id: str) -> OrderRecord | None:
        """Return an order by its composite key, if present."""

    def create_order(self, order: OrderRecord) -> OrderRecord:
        """Persist a new order and return it."""

    def update_selection(
        self,
        gallery_id: str,
        order_id: str,
        status: DeliveryStatus,
        selection: SelectionUpdate,
        updated_at: datetime,
    ) -> None:
        """Write selection and pricing fields and drop any cancellation mark."""

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


class GalleryRepository(Protocol):
    """Persistence interface for gallery records."""

    def get_gallery(self, gallery_id: str) -> GalleryRecord | None:
        """Return a gallery by id, if present."""

    def next_order_number(self, gallery_id: str) -> int:
        """Atomically advance the gallery's order counter and return it."""

    def update_selection_summary(  # noqa: PLR0913
        self,
        gallery_id: str,
        selection_status: str,
        current_order_id: str,
        updated_at: datetime,
        stats: SelectionStats | None = None,
    ) -> None:
        """Write the denormalized selection summary."""

    def add_originals_bytes(self, gallery_id: str, delta: int) -> int:
        """Atomically add to the originals byte counter and return the result."""

    def set_originals_bytes(self, gallery_id: str, value: int) -> None:
        """Overwrite the originals byte counter."""


@dataclass
class OrderLifecycleService:
    """State machine for a gallery's selection and delivery orders."""

    order_repository: OrderRepository
    gallery_repository: GalleryRepository
    archive_service: ArchiveService
    notification_service: NotificationService
    storage: ObjectStorage
    allow_empty_restore: bool = False

    async def approve_selection(
        self, gallery_id: str, client_id: str, selected_keys: list[str]
    ) -> ApprovalResult:
        """Approve a client's selection, creating or restoring the order."""
        gallery = self._get_gallery(gallery_id)
        orders = self.order_repository.list_orders(gallery_id)
        changes_requested = _first(orders, DeliveryStatus.CHANGES_REQUESTED)

        keys = list(selected_keys)
        if not keys:
            if not (
                self.allow_empty_restore
                and changes_requested
                and changes_requested.selected_keys
            ):
                raise InvalidInputError("selectedKeys required")
            keys = list(changes_requested.selected_keys)

        if any(order.delivery_status in APPROVED_STATUSES for order in orders):
            raise ConflictError("Selection already approved for this gallery")

        has_delivered = _first(orders, DeliveryStatus.DELIVERED) is not None
        has_blocking = any(
            order.delivery_status in BLOCKING_STATUSES for order in orders
        )
        is_purchase_more = has_delivered and not has_blocking
        quote = quote_for_package(len(keys), gallery.pricing_package, is_purchase_more)
        selection = SelectionUpdate(
            selected_keys=keys,
            selected_count=len(keys),
            overage_count=quote.overage_count,
            overage_cents=quote.overage_cents,
            total_cents=quote.total_cents,
        )

        now = datetime.now(tz=UTC)
        existing = changes_requested or _first(orders, DeliveryStatus.CLIENT_SELECTING)
        if existing:
            order_id = existing.order_id
            self.order_repository.update_selection(
                gallery_id,
                order_id,
                DeliveryStatus.CLIENT_APPROVED,
                selection,
                updated_at=now,
            )
        else:
            order_number = self.gallery_repository.next_order_number(gallery_id)
            order_id = f"{order_number}-{int(now.timestamp() * 1000)}"
            self.order_repository.create_order(
                OrderRecord(
                    gallery_id=gallery_id,
                    order_id=order_id,
                    order_number=order_number,
                    delivery_status=DeliveryStatus.CLIENT_APPROVED,
                    owner_id=gallery.owner_id,
                    selected_keys=keys,
                    selected_count=selection.selected_count,
                    overage_count=selection.overage_count,
                    overage_cents=selection.overage_cents,
                    total_cents=selection.total_cents,
                    created_at=now,
                    updated_at=now,
                )
            )

        self.gallery_repository.update_selection_summary(
            gallery_id,
            selection_status="APPROVED",
            current_order_id=order_id,
            updated_at=now,
            stats=SelectionStats(
                selected_count=selection.selected_count,
                overage_count=selection.overage_count,
                overage_cents=selection.overage_cents,
            ),
        )
        logger.info(
            "Selection approved",
            extra={
                "gallery_id": gallery_id,
                "order_id": order_id,
                "selected_count": selection.selected_count,
                "purchase_more": is_purchase_more,
            },
        )

        zip_key = await self._build_originals_archive(gallery_id, order_id, keys)
        await self.notification_service.selection_approved(
            gallery.owner_email,
            gallery_id=gallery_id,
            client_id=client_id,
            order_id=order_id,
            selected_count=selection.selected_count,
            overage_count=selection.overage_count,
            overage_cents=selection.overage_cents,
        )
        return ApprovalResult(
            gallery_id=gallery_id,
            client_id=client_id,
            order_id=order_id,
            zip_key=zip_key,
            selected_count=selection.selected_count,
            overage_count=selection.overage_count,
            overage_cents=selection.overage_cents,
        )

    def get_selection_state(self, gallery_id: str) -> SelectionState:
        """Return the client-facing selection state of a gallery."""
        gallery = self._get_gallery(gallery_id)
        orders = self.order_repository.list_orders(gallery_id)
        active = next(
            (
                order
                for status in _ACTIVE_PRIORITY
                if (order := _first(orders, status)) is not None
            ),
            None,
        )
        approved_order = _first(orders, DeliveryStatus.CLIENT_APPROVED) or _first(
            orders, DeliveryStatus.PREPARING_DELIVERY
        )
        can_select = active is None or (
            active.delivery_status is DeliveryStatus.CLIENT_SELECTING
        )
        approved = active is not None and active.delivery_status in APPROVED_STATUSES
        return SelectionState(
            selected_keys=list(active.selected_keys) if active else [],
            selected_count=active.key_count if active else 0,
            overage_count=active.overage_count if active else 0,
            overage_cents=active.overage_cents if active else 0,
            approved=approved,
            can_select=can_select,
            can_request_changes=approved_order is not None,
            change_request_pending=(
                _first(orders, DeliveryStatus.CHANGES_REQUESTED) is not None
            ),
            change_requests_blocked=(
                approved_order is not None and approved_order.change_requests_blocked
            ),
            has_delivered_order=_first(orders, DeliveryStatus.DELIVERED) is not None,
            selection_enabled=gallery.selection_enabled,
            active_order_id=active.order_id if active else None,
            active_status=active.delivery_status if active else None,
            pricing_package=gallery.pricing_package or PricingPackage(),
        )

    async def request_changes(self, gallery_id: str, client_id: str) -> OrderRecord:
        """Move the approved order to CHANGES_REQUESTED on the client's behalf."""
        gallery = self._get_gallery(gallery_id)
        orders = self.order_repository.list_orders(gallery_id)
        if _first(orders, DeliveryStatus.CHANGES_REQUESTED):
            raise InvalidInputError("Change request already pending")
        order = _first(orders, DeliveryStatus.CLIENT_APPROVED) or _first(
            orders, DeliveryStatus.PREPARING_DELIVERY
        )
        if order is None:
            raise InvalidInputError("No approved order to request changes for")
        if order.change_requests_blocked:
            raise InvalidInputError("Change requests are not allowed for this order")

        self.order_repository.update_status(
            gallery_id,
            order.order_id,
            DeliveryStatus.CHANGES_REQUESTED,
            updated_at=datetime.now(tz=UTC),
        )
        logger.info(
            "Change requested",
            extra={"gallery_id": gallery_id, "order_id": order.order_id},
        )
        await self.notification_service.change_requested(
            gallery.owner_email, gallery_id, client_id
        )
        return order

    async def approve_change_request(
        self, gallery_id: str, owner_id: str, order_id: str | None = None
    ) -> OrderRecord:
        """Unlock the client's selection by moving the order to CLIENT_SELECTING."""
        gallery = self._get_owned_gallery(gallery_id, owner_id)
        order = self._get_change_requested_order(gallery_id, order_id)
        now = datetime.now(tz=UTC)
        self.order_repository.update_status(
            gallery_id,
            order.order_id,
            DeliveryStatus.CLIENT_SELECTING,
            updated_at=now,
            clear_canceled=True,
        )
        self.gallery_repository.update_selection_summary(
            gallery_id,
            selection_status="IN_PROGRESS",
            current_order_id=order.order_id,
            updated_at=now,
        )
        await self.notification_service.change_request_approved(
            gallery.client_email, gallery.name or gallery_id
        )
        return order

    async def deny_change_request(
        self,
        gallery_id: str,
        owner_id: str,
        order_id: str | None = None,
        reason: str | None = None,
        *,
        prevent_future_change_requests: bool = False,
    ) -> DeliveryStatus:
        """Revert a change request to the status the order had before it."""
        gallery = self._get_owned_gallery(gallery_id, owner_id)
        order = self._get_change_requested_order(gallery_id, order_id)
        previous = self._status_before_change_request(gallery_id, order.order_id)
        self.order_repository.update_status(
            gallery_id,
            order.order_id,
            previous,
            updated_at=datetime.now(tz=UTC),
            change_requests_blocked=True if prevent_future_change_requests else None,
        )
        await self.notification_service.change_request_denied(
            gallery.client_email,
            gallery.name or gallery_id,
            reason.strip() if reason and reason.strip() else None,
        )
        return previous

    def mark_delivered(
        self, gallery_id: str, owner_id: str, order_id: str
    ) -> DeliveryResult:
        """Mark an order delivered and release its original files."""
        self._get_owned_gallery(gallery_id, owner_id)
        order = self.order_repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.delivery_status is DeliveryStatus.DELIVERED:
            raise InvalidInputError("Order already delivered")

        deleted_count, bytes_freed = self._delete_originals(
            gallery_id, order_id, order.selected_keys
        )
        now = datetime.now(tz=UTC)
        self.order_repository.update_status(
            gallery_id,
            order_id,
            DeliveryStatus.DELIVERED,
            updated_at=now,
            delivered_at=now,
        )
        if bytes_freed > 0:
            self._release_originals_bytes(gallery_id, order_id, bytes_freed)
        logger.info(
            "Order delivered",
            extra={
                "gallery_id": gallery_id,
                "order_id": order_id,
                "deleted_count": deleted_count,
            },
        )
        return DeliveryResult(
            gallery_id=gallery_id,
            order_id=order_id,
            delivered_at=now,
            deleted_count=deleted_count,
            originals_bytes_freed=bytes_freed,
        )

    def require_owner(self, gallery_id: str, owner_id: str) -> GalleryRecord:
        """Return the gallery if the requester owns it."""
        return self._get_owned_gallery(gallery_id, owner_id)

    def _get_gallery(self, gallery_id: str) -> GalleryRecord:
        gallery = self.gallery_repository.get_gallery(gallery_id)
        if gallery is None:
            raise NotFoundError("Gallery not found")
        return gallery

    def _get_owned_gallery(self, gallery_id: str, owner_id: str) -> GalleryRecord:
        gallery = self._get_gallery(gallery_id)
        if gallery.owner_id != owner_id:
            raise ForbiddenError("Only the gallery owner can do this")
        return gallery

    def _get_change_requested_order(
        self, gallery_id: str, order_id: str | None
    ) -> OrderRecord:
        if order_id is None:
            orders = self.order_repository.list_orders(gallery_id)
            order = _first(orders, DeliveryStatus.CHANGES_REQUESTED)
            if order is None:
                raise InvalidInputError("No change request found for this gallery")
            return order
        order = self.order_repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.delivery_status is not DeliveryStatus.CHANGES_REQUESTED:
            raise InvalidInputError(
                "Order must have deliveryStatus CHANGES_REQUESTED, "
                f"got {order.delivery_status.value}"
            )
        return order

    def _status_before_change_request(
        self, gallery_id: str, order_id: str
    ) -> DeliveryStatus:
        # Finished files on storage mean the photographer had started delivery.
        try:
            finals = self.storage.list_keys(final_prefix(gallery_id, order_id), limit=1)
        except Exception:
            logger.exception(
                "Failed to check final files, reverting to CLIENT_APPROVED",
                extra={"gallery_id": gallery_id, "order_id": order_id},
            )
            return DeliveryStatus.CLIENT_APPROVED
        if finals:
            return DeliveryStatus.PREPARING_DELIVERY
        return DeliveryStatus.CLIENT_APPROVED

    async def _build_originals_archive(
        self, gallery_id: str, order_id: str, keys: list[str]
    ) -> str | None:
        try:
            request = await self.archive_service.generate(
                gallery_id, order_id, keys, ArchiveKind.ORIGINALS, wait=True
            )
        except Exception:
            logger.exception(
                "Archive generation failed",
                extra={"gallery_id": gallery_id, "order_id": order_id},
            )
            return None
        return request.zip_key

    def _delete_originals(
        self, gallery_id: str, order_id: str, keys: list[str]
    ) -> tuple[int, int]:
        """Delete original files; previews and thumbnails stay for display."""
        if not keys:
            return 0, 0
        paths = [original_key(gallery_id, key) for key in keys]
        sizes: dict[str, int] = {}
        for path in paths:
            try:
                sizes[path] = self.storage.object_size(path) or 0
            except Exception:
                logger.warning(
                    "Failed to read original size",
                    extra={"gallery_id": gallery_id, "path": path},
                    exc_info=True,
                )
        deleted = 0
        freed = 0
        for start in range(0, len(paths), _DELETE_BATCH_SIZE):
            batch = paths[start : start + _DELETE_BATCH_SIZE]
            try:
                deleted += self.storage.delete(batch)
            except Exception:
                logger.exception(
                    "Failed to clean up originals",
                    extra={
                        "gallery_id": gallery_id,
                        "order_id": order_id,
                        "selected_count": len(keys),
                        "deleted_count": deleted,
                    },
                )
                break
            # Only batches the store accepted count towards the freed bytes.
            freed += sum(sizes.get(path, 0) for path in batch)
        return deleted, freed

    def _release_originals_bytes(
        self, gallery_id: str, order_id: str, size: int
    ) -> None:
        try:
            remaining = self.gallery_repository.add_originals_bytes(gallery_id, -size)
            if remaining < 0:
                logger.warning(
                    "originals_bytes_used went negative, correcting to zero",
                    extra={
                        "gallery_id": gallery_id,
                        "order_id": order_id,
                        "remaining": remaining,
                        "size_removed": size,
                    },
                )
                self.gallery_repository.set_originals_bytes(gallery_id, 0)
        except Exception:
            logger.exception(
                "Failed to update originals_bytes_used",
                extra={"gallery_id": gallery_id, "order_id": order_id, "size": size},
            )


def _first(orders: list[OrderRecord], status: DeliveryStatus) -> OrderRecord | None:
    return next((order for order in orders if order.delivery_status is status), None)
