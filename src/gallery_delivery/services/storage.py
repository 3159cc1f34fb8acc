"""Object storage interface and key conventions."""

import hashlib
import json
from typing import Protocol

from gallery_delivery.domain.orders import ArchiveKind


class ObjectStorage(Protocol):
    """Interface for the gallery object store."""

    def exists(self, key: str) -> bool:
        """Return True if an object is stored under the key."""

    def object_size(self, key: str) -> int | None:
        """Return the object size in bytes, or None if it does not exist."""

    def list_keys(self, prefix: str, limit: int = 1000) -> list[str]:
        """Return object keys directly under a prefix."""

    def delete(self, keys: list[str]) -> int:
        """Delete objects and return how many were removed."""


def original_key(gallery_id: str, key: str) -> str:
    return f"galleries/{gallery_id}/originals/{key}"


def final_prefix(gallery_id: str, order_id: str) -> str:
    return f"galleries/{gallery_id}/final/{order_id}/"


def archive_key(gallery_id: str, order_id: str, kind: ArchiveKind) -> str:
    """Return the object key the build task writes an archive to."""
    if kind is ArchiveKind.FINAL:
        filename = f"gallery-{gallery_id}-order-{order_id}-final.zip"
        return f"galleries/{gallery_id}/orders/{order_id}/final-zip/{filename}"
    return f"galleries/{gallery_id}/zips/{order_id}.zip"


def keys_fingerprint(keys: list[str]) -> str:
    """Fingerprint a key set independent of its order."""
    payload = json.dumps(sorted(keys), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
