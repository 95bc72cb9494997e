"""
Local storage implementations for development and tests.

These are in-memory or filesystem-based implementations
that work without any external services.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from puretome.storage.base import (
    ContentStorage,
    DuplicateKeyError,
    MetadataStorage,
    StorageProvider,
    UniqueConstraint,
    register_constraints,
)


# =============================================================================
# Local Filesystem Content Storage
# =============================================================================


class LocalContentStorage(ContentStorage):
    """Store uploads on the local filesystem, served under ``base_url``."""

    def __init__(self, base_path: str = "./data/uploads", base_url: str = "http://localhost:5000/uploads"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def _key_to_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Key escapes upload directory: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._key_to_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"{self.base_url}/{key}"

    async def get(self, key: str) -> bytes:
        path = self._key_to_path(key)
        if not path.exists():
            raise FileNotFoundError(f"Content not found: {key}")
        return path.read_bytes()

    async def delete(self, key: str) -> bool:
        path = self._key_to_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def key_for_url(self, url: str) -> str | None:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):]


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryMetadataStorage(MetadataStorage):
    """
    In-memory document storage.

    Documents are copied on the way in and out so callers never share
    state with the store. No await happens between a uniqueness check and
    the write, so inserts are atomic under asyncio.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._constraints: dict[str, list[UniqueConstraint]] = {}

    def add_unique_constraint(self, collection: str, constraint: UniqueConstraint) -> None:
        self._constraints.setdefault(collection, []).append(constraint)

    def _check_unique(self, collection: str, id: str, data: dict[str, Any]) -> None:
        docs = self._data.get(collection, {})
        if id in docs:
            raise DuplicateKeyError(collection, ("id",))
        for constraint in self._constraints.get(collection, []):
            if not constraint.applies_to(data):
                continue
            key = constraint.key(data)
            for doc in docs.values():
                if constraint.applies_to(doc) and constraint.key(doc) == key:
                    raise DuplicateKeyError(collection, constraint.fields)

    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self._check_unique(collection, id, data)
        self._data.setdefault(collection, {})[id] = copy.deepcopy(data)

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self._data.setdefault(collection, {})[id] = copy.deepcopy(data)

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        results = await self.query(collection, filters, limit=1)
        return results[0] if results else None

    async def delete(self, collection: str, id: str) -> bool:
        if collection in self._data and id in self._data[collection]:
            del self._data[collection][id]
            return True
        return False

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        if collection not in self._data:
            return []

        results = list(self._data[collection].values())

        if filters:
            results = [
                doc for doc in results
                if all(doc.get(key) == value for key, value in filters.items())
            ]

        return [copy.deepcopy(doc) for doc in results[offset:offset + limit]]

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        if collection in self._data and id in self._data[collection]:
            self._data[collection][id].update(copy.deepcopy(updates))
            return True
        return False


# =============================================================================
# Factory
# =============================================================================


def create_local_storage(
    upload_dir: str = "./data/uploads",
    base_url: str = "http://localhost:5000/uploads",
) -> StorageProvider:
    """Create a StorageProvider with local implementations."""
    metadata = InMemoryMetadataStorage()
    register_constraints(metadata)
    return StorageProvider(
        content=LocalContentStorage(upload_dir, base_url),
        metadata=metadata,
    )
