"""Archive generation orchestration.

Archives are built out of process by a separate build task. This service
records a generating flag and a fingerprint of the requested key set on the
order before invoking the task, and clears the flag once the task reports
back. The flag is advisory: nothing expires it, so a crashed build leaves the
order marked as generating until a completion is recorded or a reader
reconciles against object storage.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from gallery_delivery.domain.delivery import ArchiveStatus
from gallery_delivery.domain.orders import ArchiveKind, OrderRecord
from gallery_delivery.errors import (
    ConflictError,
    DependencyFailureError,
    InvalidInputError,
    NotFoundError,
)
from gallery_delivery.services.storage import (
    ObjectStorage,
    archive_key,
    final_prefix,
    keys_fingerprint,
)

logger = logging.getLogger(__name__)


class ArchiveTaskClient(Protocol):
    """Interface for the out-of-process archive build task."""

    async def invoke(
        self, payload: dict[str, object], wait: bool
    ) -> dict[str, object] | None:
        """Invoke the task; return its response when waiting, else None."""


class ArchiveFlagRepository(Protocol):
    """Persistence interface for archive markers on orders."""

    def get_order(self, gallery_id: str, order_id: str) -> OrderRecord | None:
        """Return an order by its composite key, if present."""

    def set_archive_generating(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, fingerprint: str
    ) -> None:
        """Set the generating flag and key-set fingerprint for an archive."""

    def finish_archive(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, zip_key: str | None
    ) -> None:
        """Clear the generating flag, keeping the fingerprint."""

    def clear_archive(self, gallery_id: str, order_id: str, kind: ArchiveKind) -> None:
        """Remove both the generating flag and the fingerprint."""


@dataclass(frozen=True)
class ArchiveRequest:
    """Outcome of an archive generation request."""

    gallery_id: str
    order_id: str
    kind: ArchiveKind
    fingerprint: str | None
    started: bool
    zip_key: str | None = None


@dataclass
class ArchiveService:
    """Orchestrates archive builds for orders."""

    repository: ArchiveFlagRepository
    storage: ObjectStorage
    task_client: ArchiveTaskClient | None

    async def generate(  # noqa: PLR0913
        self,
        gallery_id: str,
        order_id: str,
        keys: list[str],
        kind: ArchiveKind,
        *,
        wait: bool,
        fingerprint: str | None = None,
    ) -> ArchiveRequest:
        """Request an archive build.

        With ``wait`` the call returns once the task reports back and carries
        the archive key, if any. Without it the build runs in the background and
        completion arrives through ``record_completion``.
        """
        if not keys and fingerprint is None:
            raise InvalidInputError("No keys to archive")
        if self.task_client is None:
            logger.warning(
                "Archive task not configured, skipping generation",
                extra={"gallery_id": gallery_id, "order_id": order_id},
            )
            return ArchiveRequest(gallery_id, order_id, kind, None, started=False)

        resolved_fingerprint = fingerprint or keys_fingerprint(keys)
        tracked = kind is not ArchiveKind.UNSELECTED
        if tracked:
            self._mark_generating(gallery_id, order_id, kind, resolved_fingerprint)

        payload = _task_payload(gallery_id, order_id, keys, kind, resolved_fingerprint)
        try:
            response = await self.task_client.invoke(payload, wait=wait)
        except Exception as exc:
            if tracked:
                self.repository.clear_archive(gallery_id, order_id, kind)
            raise DependencyFailureError("Archive task invocation failed") from exc

        if not wait:
            logger.info(
                "Archive generation started",
                extra={"gallery_id": gallery_id, "order_id": order_id, "kind": kind},
            )
            return ArchiveRequest(
                gallery_id, order_id, kind, resolved_fingerprint, started=True
            )

        zip_key = extract_zip_key(response)
        if zip_key is None:
            logger.warning(
                "Archive task did not return a zip key",
                extra={"gallery_id": gallery_id, "order_id": order_id},
            )
        if tracked:
            self.repository.finish_archive(gallery_id, order_id, kind, zip_key)
        return ArchiveRequest(
            gallery_id,
            order_id,
            kind,
            resolved_fingerprint,
            started=True,
            zip_key=zip_key,
        )

    async def regenerate(
        self,
        gallery_id: str,
        order_id: str,
        kind: ArchiveKind,
        keys: list[str] | None = None,
    ) -> ArchiveRequest:
        """Start a background build for an existing order.

        Originals always use the order's selection. Final archives use the
        given keys or, when none are given, the finished files in storage.
        """
        if kind is ArchiveKind.UNSELECTED:
            if not keys:
                raise InvalidInputError("keys required for an unselected archive")
            return await self.generate_unselected(gallery_id, keys)
        order = self.repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if kind is ArchiveKind.ORIGINALS:
            resolved = list(order.selected_keys)
        else:
            resolved = list(keys) if keys else self._final_files(gallery_id, order_id)
        if not resolved:
            raise InvalidInputError(f"No files to archive for {kind.value}")
        return await self.generate(gallery_id, order_id, resolved, kind, wait=False)

    async def generate_unselected(
        self, gallery_id: str, keys: list[str]
    ) -> ArchiveRequest:
        """Build an on-demand archive of originals the client did not select."""
        order_id = f"unselected-{int(datetime.now(tz=UTC).timestamp() * 1000)}"
        return await self.generate(
            gallery_id, order_id, keys, ArchiveKind.UNSELECTED, wait=False
        )

    def record_completion(
        self,
        gallery_id: str,
        order_id: str,
        kind: ArchiveKind,
        zip_key: str | None,
        fingerprint: str | None = None,
    ) -> bool:
        """Record that the build task finished; return False for stale builds."""
        order = self.repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        current = order.archive_hash(kind)
        if fingerprint and current and fingerprint != current:
            logger.info(
                "Ignoring completion for a stale archive build",
                extra={
                    "gallery_id": gallery_id,
                    "order_id": order_id,
                    "fingerprint": fingerprint,
                    "current": current,
                },
            )
            return False
        self.repository.finish_archive(gallery_id, order_id, kind, zip_key)
        return True

    def get_status(
        self, gallery_id: str, order_id: str, kind: ArchiveKind
    ) -> ArchiveStatus:
        """Return whether an order's archive is ready, generating or absent."""
        order = self.repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        exists = self.storage.exists(archive_key(gallery_id, order_id, kind))
        generating = order.archive_generating(kind)
        if exists:
            status = "ready"
        elif generating:
            status = "generating"
        else:
            status = "not_started"
        return ArchiveStatus(
            gallery_id=gallery_id,
            order_id=order_id,
            kind=kind,
            status=status,
            generating=status == "generating",
            ready=exists,
        )

    def _mark_generating(
        self, gallery_id: str, order_id: str, kind: ArchiveKind, fingerprint: str
    ) -> None:
        order = self.repository.get_order(gallery_id, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.archive_generating(kind) and order.archive_hash(kind) == fingerprint:
            raise ConflictError("Archive generation already in progress")
        self.repository.set_archive_generating(gallery_id, order_id, kind, fingerprint)

    def _final_files(self, gallery_id: str, order_id: str) -> list[str]:
        prefix = final_prefix(gallery_id, order_id)
        return [key.removeprefix(prefix) for key in self.storage.list_keys(prefix)]


def _task_payload(
    gallery_id: str,
    order_id: str,
    keys: list[str],
    kind: ArchiveKind,
    fingerprint: str,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "galleryId": gallery_id,
        "keys": keys,
        "orderId": order_id,
    }
    if kind is ArchiveKind.FINAL:
        payload["type"] = kind.value
        payload["finalFilesHash"] = fingerprint
    else:
        if kind is ArchiveKind.UNSELECTED:
            payload["type"] = kind.value
        payload["selectedKeysHash"] = fingerprint
    return payload


def extract_zip_key(response: dict[str, object] | None) -> str | None:
    """Pull the archive key out of a task response.

    The task may answer with ``{"zipKey": ...}`` directly or wrapped in a
    ``{"statusCode": ..., "body": ...}`` envelope; anything else means no key.
    """
    if not response:
        return None
    if "statusCode" in response and "body" in response:
        if response["statusCode"] != 200:  # noqa: PLR2004
            logger.warning(
                "Archive task returned an error status",
                extra={"status_code": response["statusCode"]},
            )
            return None
        body = response["body"]
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                logger.warning("Archive task returned an unparseable body")
                return None
        if not isinstance(body, dict):
            return None
        response = body
    zip_key = response.get("zipKey")
    return zip_key if isinstance(zip_key, str) and zip_key else None
