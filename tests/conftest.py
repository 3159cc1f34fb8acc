"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import pytest

from gallery_delivery.config import Settings
from gallery_delivery.containers import AppContainer
from gallery_delivery.domain.galleries import (
    GalleryRecord,
    PricingPackage,
    SelectionStats,
)
from gallery_delivery.domain.orders import (
    ArchiveKind,
    DeliveryStatus,
    OrderRecord,
    SelectionUpdate,
)
from gallery_delivery.services.archives import (
    ArchiveFlagRepository,
    ArchiveService,
    ArchiveTaskClient,
)
from gallery_delivery.services.delivery_status import (
    DeliveryStatusService,
    OwnerOrderRepository,
)
from gallery_delivery.services.notifications import EmailClient, NotificationService
from gallery_delivery.services.orders import (
    GalleryRepository,
    OrderLifecycleService,
    OrderRepository,
)
from gallery_delivery.services.storage import ObjectStorage

OWNER_ID = "owner-1"
CLIENT_ID = "client-1"
GALLERY_ID = "gal-1"


def make_gallery(**overrides: object) -> GalleryRecord:
    values: dict[str, object] = {
        "gallery_id": GALLERY_ID,
        "owner_id": OWNER_ID,
        "pricing_package": PricingPackage(included_count=5, extra_price_cents=200),
        "name": "Smith Wedding",
        "owner_email": "owner@example.com",
        "client_email": "client@example.com",
    }
    values.update(overrides)
    return GalleryRecord(**values)


def make_order(
    order_id: str = "1-1700000000000",
    status: DeliveryStatus = DeliveryStatus.CLIENT_APPROVED,
    **overrides: object,
) -> OrderRecord:
    values: dict[str, object] = {
        "gallery_id": GALLERY_ID,
        "order_id": order_id,
        "order_number": int(order_id.split("-")[0]),
        "delivery_status": status,
        "owner_id": OWNER_ID,
        "selected_keys": ["a.jpg", "b.jpg"],
        "selected_count": 2,
        "updated_at": datetime(2024, 1, 1, tzinfo=UTC),
    }
    values.update(overrides)
    return OrderRecord(**values)


@dataclass
class InMemoryOrderRepository(
    OrderRepository, ArchiveFlagRepository, OwnerOrderRepository
):
    """In-memory order repository for tests."""

    orders: dict[tuple[str, str], OrderRecord] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)

    def add(self, order: OrderRecord) -> OrderRecord:
        self.orders[(order.gallery_id, order.order_id)] = order
        return order

    def list_orders(self, gallery_id: str) -> list[OrderRecord]:
        return [order for key, order in self.orders.items() if key[0] == gallery_id]

    def get_order(self, gallery_id: str, order_id: str) -> OrderRecord | None:
        return self.orders.get((gallery_id, order_id))

    def list_orders_by_owner(
        self, owner_id: str, status: DeliveryStatus
    ) -> list[OrderRecord]:
        return [
            order
            for order in self.orders.values()
            if order.owner_id == owner_id and order.delivery_status is status
        ]

    def create_order(self, order: OrderRecord) -> OrderRecord:
        self.writes.append("order")
        return self.add(order)

    def update_selection(
        self,
        gallery_id: str,
        order_id: str,
        status: DeliveryStatus,
        selection: SelectionUpdate,
        updated_at: datetime,
    ) -> None:
        self.writes.append("order")
        self._replace(
            gallery_id,
            order_id,
            delivery_status=status,
            selected_keys=selection.selected_keys,
            selected_count=selection.selected_count,
            overage_count=selection.overage_count,
            overage_cents=selection.overage_cents,
            total_cents=selection.total_cents,
            updated_at=updated_at,
            canceled_at=None,
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
        changes: dict[str, object] = {
            "delivery_status": status,
            "updated_at": updated_at,
        }
        if delivered_at is not None:
            changes["delivered_at"] = delivered_at
        if change_requests_blocked is not None:
            changes["change_requests_blocked"] = change_requests_blocked
        if clear_canceled:
            changes["canceled_at"] = None
        self._replace(gallery_id, order_id, **changes)

    def set_archive_generating(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, fingerprint: str
    ) -> None:
        if kind is ArchiveKind.FINAL:
            self._replace(
                gallery_id,
                order_id,
                final_zip_generating=True,
                final_zip_files_hash=fingerprint,
            )
        else:
            self._replace(
                gallery_id,
                order_id,
                zip_generating=True,
                zip_selected_keys_hash=fingerprint,
            )

    def finish_archive(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, zip_key: str | None
    ) -> None:
        if kind is ArchiveKind.FINAL:
            self._replace(gallery_id, order_id, final_zip_generating=False)
        elif zip_key:
            self._replace(gallery_id, order_id, zip_generating=False, zip_key=zip_key)
        else:
            self._replace(gallery_id, order_id, zip_generating=False)

    def clear_archive(self, gallery_id: str, order_id: str, kind: ArchiveKind) -> None:
        if kind is ArchiveKind.FINAL:
            self._replace(
                gallery_id,
                order_id,
                final_zip_generating=False,
                final_zip_files_hash=None,
            )
        else:
            self._replace(
                gallery_id,
                order_id,
                zip_generating=False,
                zip_selected_keys_hash=None,
            )

    def _replace(self, gallery_id: str, order_id: str, **changes: object) -> None:
        order = self.orders[(gallery_id, order_id)]
        self.orders[(gallery_id, order_id)] = replace(order, **changes)


@dataclass
class InMemoryGalleryRepository(GalleryRepository):
    """In-memory gallery repository for tests."""

    galleries: dict[str, GalleryRecord] = field(default_factory=dict)
    writes: list[str] | None = None
    fail_counter_update: bool = False

    def add(self, gallery: GalleryRecord) -> GalleryRecord:
        self.galleries[gallery.gallery_id] = gallery
        return gallery

    def get_gallery(self, gallery_id: str) -> GalleryRecord | None:
        return self.galleries.get(gallery_id)

    def next_order_number(self, gallery_id: str) -> int:
        gallery = self.galleries[gallery_id]
        number = gallery.last_order_number + 1
        self.galleries[gallery_id] = replace(gallery, last_order_number=number)
        return number

    def update_selection_summary(  # noqa: PLR0913
        self,
        gallery_id: str,
        selection_status: str,
        current_order_id: str,
        updated_at: datetime,
        stats: SelectionStats | None = None,
    ) -> None:
        if self.writes is not None:
            self.writes.append("gallery")
        gallery = self.galleries[gallery_id]
        changes: dict[str, object] = {
            "selection_status": selection_status,
            "current_order_id": current_order_id,
        }
        if stats is not None:
            changes["selection_stats"] = stats
        self.galleries[gallery_id] = replace(gallery, **changes)

    def add_originals_bytes(self, gallery_id: str, delta: int) -> int:
        if self.fail_counter_update:
            raise RuntimeError("counter update failed")
        gallery = self.galleries[gallery_id]
        value = gallery.originals_bytes_used + delta
        self.galleries[gallery_id] = replace(gallery, originals_bytes_used=value)
        return value

    def set_originals_bytes(self, gallery_id: str, value: int) -> None:
        gallery = self.galleries[gallery_id]
        self.galleries[gallery_id] = replace(gallery, originals_bytes_used=value)


@dataclass
class InMemoryObjectStorage(ObjectStorage):
    """In-memory object store keyed by full object key."""

    objects: dict[str, int] = field(default_factory=dict)
    deleted: list[list[str]] = field(default_factory=list)
    fail_delete: bool = False
    fail_delete_after: int | None = None
    fail_reads: bool = False

    def exists(self, key: str) -> bool:
        if self.fail_reads:
            raise RuntimeError("storage unavailable")
        return key in self.objects

    def object_size(self, key: str) -> int | None:
        if self.fail_reads:
            raise RuntimeError("storage unavailable")
        return self.objects.get(key)

    def list_keys(self, prefix: str, limit: int = 1000) -> list[str]:
        if self.fail_reads:
            raise RuntimeError("storage unavailable")
        return [key for key in self.objects if key.startswith(prefix)][:limit]

    def delete(self, keys: list[str]) -> int:
        if self.fail_delete or (
            self.fail_delete_after is not None
            and len(self.deleted) >= self.fail_delete_after
        ):
            raise RuntimeError("delete failed")
        self.deleted.append(list(keys))
        removed = 0
        for key in keys:
            if self.objects.pop(key, None) is not None:
                removed += 1
        return removed


@dataclass
class FakeArchiveTaskClient(ArchiveTaskClient):
    """Archive task fake recording invocations."""

    response: dict[str, object] | None = None
    error: Exception | None = None
    calls: list[tuple[dict[str, object], bool]] = field(default_factory=list)

    async def invoke(
        self, payload: dict[str, object], wait: bool
    ) -> dict[str, object] | None:
        self.calls.append((payload, wait))
        if self.error is not None:
            raise self.error
        return self.response if wait else None


@dataclass
class FakeEmailClient(EmailClient):
    """Email client fake recording sent messages."""

    sent: list[dict[str, object]] = field(default_factory=list)
    error: Exception | None = None

    async def send_email(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="test.service.key",
        service_token="service-token",
        environment="test",
    )


@pytest.fixture
def order_repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def gallery_repository() -> InMemoryGalleryRepository:
    repository = InMemoryGalleryRepository()
    repository.add(make_gallery())
    return repository


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def archive_client() -> FakeArchiveTaskClient:
    return FakeArchiveTaskClient(response={"zipKey": "galleries/gal-1/zips/o.zip"})


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture
def archive_service(
    order_repository: InMemoryOrderRepository,
    storage: InMemoryObjectStorage,
    archive_client: FakeArchiveTaskClient,
) -> ArchiveService:
    return ArchiveService(
        repository=order_repository, storage=storage, task_client=archive_client
    )


@pytest.fixture
def order_service(
    order_repository: InMemoryOrderRepository,
    gallery_repository: InMemoryGalleryRepository,
    archive_service: ArchiveService,
    email_client: FakeEmailClient,
    storage: InMemoryObjectStorage,
) -> OrderLifecycleService:
    return OrderLifecycleService(
        order_repository=order_repository,
        gallery_repository=gallery_repository,
        archive_service=archive_service,
        notification_service=NotificationService(client=email_client),
        storage=storage,
    )


@pytest.fixture
def delivery_status_service(
    order_repository: InMemoryOrderRepository, storage: InMemoryObjectStorage
) -> DeliveryStatusService:
    return DeliveryStatusService(repository=order_repository, storage=storage)


@pytest.fixture
def container(
    settings: Settings,
    order_service: OrderLifecycleService,
    archive_service: ArchiveService,
    delivery_status_service: DeliveryStatusService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        order_service=order_service,
        archive_service=archive_service,
        delivery_status_service=delivery_status_service,
        close_resources=close_resources,
    )
