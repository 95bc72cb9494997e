"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (local filesystem -> S3, in-memory -> a document database)
without changing application code.

Integration Points:
- ContentStorage -> local uploads directory or S3 (avatars, cover images)
- MetadataStorage -> document store (users, memoirs, invitations, comments)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel


# =============================================================================
# Constraints
# =============================================================================


class DuplicateKeyError(Exception):
    """An insert would violate a unique constraint."""

    def __init__(self, collection: str, fields: tuple[str, ...]):
        super().__init__(f"Duplicate value in {collection} for {', '.join(fields)}")
        self.collection = collection
        self.fields = fields


@dataclass(frozen=True)
class UniqueConstraint:
    """
    Uniqueness over one or more fields.

    With ``where`` set, only documents matching every ``where`` item take
    part (a partial index), e.g. one *pending* invitation per memoir/email.
    """

    fields: tuple[str, ...]
    where: dict[str, Any] = field(default_factory=dict)

    def applies_to(self, doc: dict[str, Any]) -> bool:
        return all(doc.get(k) == v for k, v in self.where.items())

    def key(self, doc: dict[str, Any]) -> tuple:
        return tuple(doc.get(f) for f in self.fields)


# =============================================================================
# Storage Interfaces
# =============================================================================


class ContentStorage(ABC):
    """
    Storage for binary content (avatars, cover images).

    AWS Implementation: S3
    Local Implementation: Filesystem
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store content, return its public URL."""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Retrieve content by key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete content."""
        pass

    @abstractmethod
    def key_for_url(self, url: str) -> str | None:
        """Map a URL produced by ``put`` back to its key, or None if foreign."""
        pass


class MetadataStorage(ABC):
    """
    Storage for structured documents.

    Single-document operations are atomic. There are no multi-document
    transactions.
    """

    @abstractmethod
    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """
        Insert a new document.

        Raises DuplicateKeyError if the id or any registered unique
        constraint is already taken.
        """
        pass

    @abstractmethod
    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Insert or replace a document."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """First document matching every filter, or None."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query documents with optional equality filters."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        """Partial update of a document."""
        pass

    @abstractmethod
    def add_unique_constraint(self, collection: str, constraint: UniqueConstraint) -> None:
        """Register a uniqueness rule enforced by ``insert``."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    Services receive this and use the interfaces without knowing
    the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    content: ContentStorage
    metadata: MetadataStorage


# =============================================================================
# Collection Names (for MetadataStorage)
# =============================================================================


class Collections:
    """Standard collection names."""

    USERS = "users"
    MEMOIRS = "memoirs"
    INVITATIONS = "invitations"
    COMMENTS = "comments"


def register_constraints(metadata: MetadataStorage) -> None:
    """Install the uniqueness rules the application relies on."""
    metadata.add_unique_constraint(Collections.USERS, UniqueConstraint(("email",)))
    metadata.add_unique_constraint(Collections.INVITATIONS, UniqueConstraint(("token",)))
    metadata.add_unique_constraint(
        Collections.INVITATIONS,
        UniqueConstraint(("memoir", "invitee_email"), where={"status": "pending"}),
    )
