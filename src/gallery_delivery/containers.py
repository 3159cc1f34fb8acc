"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from gallery_delivery.adapters.archive_task_client import HttpxArchiveTaskClient
from gallery_delivery.adapters.email_client import HttpxEmailClient
from gallery_delivery.adapters.supabase_gallery_repository import (
    SupabaseGalleryRepository,
)
from gallery_delivery.adapters.supabase_object_storage import SupabaseObjectStorage
from gallery_delivery.adapters.supabase_order_repository import (
    SupabaseOrderRepository,
)
from gallery_delivery.config import Settings
from gallery_delivery.services.archives import ArchiveService
from gallery_delivery.services.delivery_status import DeliveryStatusService
from gallery_delivery.services.notifications import NotificationService
from gallery_delivery.services.orders import OrderLifecycleService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    order_service: OrderLifecycleService
    archive_service: ArchiveService
    delivery_status_service: DeliveryStatusService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    order_repository = SupabaseOrderRepository(supabase_client)
    gallery_repository = SupabaseGalleryRepository(supabase_client)
    storage = SupabaseObjectStorage(supabase_client, resolved_settings.storage_bucket)

    archive_client = (
        HttpxArchiveTaskClient.create(
            url=resolved_settings.archive_task_url,
            token=resolved_settings.archive_task_token,
            timeout_seconds=resolved_settings.archive_task_timeout_seconds,
        )
        if resolved_settings.archive_task_url
        else None
    )
    email_client = (
        HttpxEmailClient.create(
            api_url=resolved_settings.email_api_url,
            api_key=resolved_settings.email_api_key,
            sender=resolved_settings.sender_email,
        )
        if resolved_settings.email_enabled
        else None
    )

    archive_service = ArchiveService(
        repository=order_repository,
        storage=storage,
        task_client=archive_client,
    )
    notification_service = NotificationService(
        client=email_client, currency=resolved_settings.currency
    )
    order_service = OrderLifecycleService(
        order_repository=order_repository,
        gallery_repository=gallery_repository,
        archive_service=archive_service,
        notification_service=notification_service,
        storage=storage,
        allow_empty_restore=resolved_settings.allow_empty_restore,
    )
    delivery_status_service = DeliveryStatusService(
        repository=order_repository, storage=storage
    )

    async def close_resources() -> None:
        if archive_client is not None:
            await archive_client.close()
        if email_client is not None:
            await email_client.close()

    return AppContainer(
        settings=resolved_settings,
        order_service=order_service,
        archive_service=archive_service,
        delivery_status_service=delivery_status_service,
        close_resources=close_resources,
    )
