"""Supabase Storage implementation of the gallery object store."""

from dataclasses import dataclass

from supabase import Client

from gallery_delivery.services.storage import ObjectStorage

_SEARCH_PAGE_SIZE = 100


@dataclass
class SupabaseObjectStorage(ObjectStorage):
    """Object store backed by a Supabase Storage bucket."""

    client: Client
    bucket: str

    def exists(self, key: str) -> bool:
        """Return True if the object is present."""
        return self._find(key) is not None

    def object_size(self, key: str) -> int | None:
        """Return the object's size from its metadata."""
        entry = self._find(key)
        if entry is None:
            return None
        metadata = entry.get("metadata") or {}
        return int(metadata.get("size") or 0)

    def list_keys(self, prefix: str, limit: int = 1000) -> list[str]:
        """Return file keys directly under a prefix."""
        folder = prefix.rstrip("/")
        entries = self.client.storage.from_(self.bucket).list(
            folder, {"limit": limit}
        )
        # Folders come back without an id.
        return [
            f"{folder}/{entry['name']}"
            for entry in entries or []
            if entry.get("id") is not None
        ]

    def delete(self, keys: list[str]) -> int:
        """Remove objects and return how many the bucket reported removed."""
        if not keys:
            return 0
        removed = self.client.storage.from_(self.bucket).remove(keys)
        return len(removed or [])

    def _find(self, key: str) -> dict[str, object] | None:
        # The search filter is a substring match, so page until an exact hit.
        folder, _, name = key.rpartition("/")
        bucket = self.client.storage.from_(self.bucket)
        offset = 0
        while True:
            entries = (
                bucket.list(
                    folder,
                    {"search": name, "limit": _SEARCH_PAGE_SIZE, "offset": offset},
                )
                or []
            )
            for entry in entries:
                if entry.get("name") == name and entry.get("id") is not None:
                    return entry
            if len(entries) < _SEARCH_PAGE_SIZE:
                return None
            offset += _SEARCH_PAGE_SIZE
