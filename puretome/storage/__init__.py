"""
Storage abstractions.

Integration Points:
- ContentStorage -> local uploads directory or S3 (avatars, cover images)
- MetadataStorage -> document store (users, memoirs, invitations, comments)
"""

from puretome.config import Settings
from puretome.storage.base import (
    Collections,
    ContentStorage,
    DuplicateKeyError,
    MetadataStorage,
    StorageProvider,
    UniqueConstraint,
    register_constraints,
)
from puretome.storage.local import (
    InMemoryMetadataStorage,
    LocalContentStorage,
    create_local_storage,
)
from puretome.storage.s3 import S3ContentStorage


def create_storage(settings: Settings) -> StorageProvider:
    """Build the StorageProvider selected by ``settings.storage_backend``."""
    if settings.storage_backend == "s3":
        metadata = InMemoryMetadataStorage()
        register_constraints(metadata)
        return StorageProvider(content=S3ContentStorage(settings), metadata=metadata)
    if settings.storage_backend != "local":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    return create_local_storage(settings.upload_dir, settings.upload_base_url)


__all__ = [
    "Collections",
    "ContentStorage",
    "DuplicateKeyError",
    "InMemoryMetadataStorage",
    "LocalContentStorage",
    "MetadataStorage",
    "S3ContentStorage",
    "StorageProvider",
    "UniqueConstraint",
    "create_local_storage",
    "create_storage",
    "register_constraints",
]
