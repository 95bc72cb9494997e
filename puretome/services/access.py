"""
Access gate - who may see or change a memoir.

Read: the author, or a collaborator whose entry carries the caller's user
id with invite status "accepted". Write: the author only. A pending or
declined collaborator is treated exactly like a stranger.

Denials are reported as "not found" so the existence of other users'
memoirs is never revealed. The gate has no side effects.
"""

from __future__ import annotations

from puretome.core.errors import NotFoundError
from puretome.core.models import Memoir
from puretome.storage.base import Collections, MetadataStorage

ACCESS_DENIED = "Memoir not found or access denied"


class AccessGate:
    """Resolves a memoir for a caller or raises NotFoundError."""

    def __init__(self, metadata: MetadataStorage):
        self.metadata = metadata

    async def load(self, memoir_id: str) -> Memoir | None:
        """Fetch a memoir without any access check."""
        data = await self.metadata.get(Collections.MEMOIRS, memoir_id)
        return Memoir.model_validate(data) if data else None

    async def can_access_for_read(self, caller_id: str | None, memoir_id: str) -> Memoir:
        memoir = await self.load(memoir_id)
        if memoir is None or not memoir.can_read(caller_id):
            raise NotFoundError(ACCESS_DENIED)
        return memoir

    async def can_access_for_write(self, caller_id: str | None, memoir_id: str) -> Memoir:
        return await self.require_author(caller_id, memoir_id, ACCESS_DENIED)

    async def require_author(
        self,
        caller_id: str | None,
        memoir_id: str,
        message: str = ACCESS_DENIED,
    ) -> Memoir:
        memoir = await self.load(memoir_id)
        if memoir is None or not memoir.is_author(caller_id):
            raise NotFoundError(message)
        return memoir
