"""
Memoir CRUD.

Every read goes through the access gate; every write is author-only. The
author field is bound at creation and can never be changed by an update.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as SchemaError

from puretome.core.errors import ValidationError
from puretome.core.models import Memoir, MemoirCreate, MemoirUpdate
from puretome.services.access import AccessGate
from puretome.services.users import UserService, delete_blob, upload_image
from puretome.storage.base import Collections, ContentStorage, MetadataStorage

logger = logging.getLogger(__name__)

# Upper bound for a single "my memoirs" listing
LIST_LIMIT = 1000


class MemoirService:
    """Create, read, update and delete memoirs on behalf of a caller."""

    def __init__(
        self,
        metadata: MetadataStorage,
        content: ContentStorage,
        gate: AccessGate,
        users: UserService,
    ):
        self.metadata = metadata
        self.content = content
        self.gate = gate
        self.users = users

    async def _save(self, memoir: Memoir) -> None:
        memoir.touch()
        await self.metadata.save(Collections.MEMOIRS, memoir.id, memoir.to_record())

    # =========================================================================
    # Commands
    # =========================================================================

    async def create(self, author_id: str, data: dict[str, Any]) -> Memoir:
        """Create a memoir owned by ``author_id``. Any supplied author is ignored."""
        try:
            payload = MemoirCreate.model_validate(data)
        except SchemaError as e:
            raise ValidationError.from_pydantic(e)

        memoir = Memoir(author=author_id, **payload.model_dump())
        await self.metadata.insert(Collections.MEMOIRS, memoir.id, memoir.to_record())

        logger.info(f"Memoir {memoir.id} created by {author_id}")
        return memoir

    async def update(self, caller_id: str, memoir_id: str, data: dict[str, Any]) -> Memoir:
        """
        Apply a partial update.

        Only fields present in ``data`` change. ``author``, ``id``,
        ``collaborators`` and timestamps are not updatable and are dropped.
        """
        memoir = await self.gate.can_access_for_write(caller_id, memoir_id)

        try:
            changes = MemoirUpdate.model_validate(data).model_dump(mode="json", exclude_unset=True)
            updated = Memoir.model_validate({**memoir.to_record(), **changes})
        except SchemaError as e:
            raise ValidationError.from_pydantic(e)

        await self._save(updated)
        logger.info(f"Memoir {memoir_id} updated ({', '.join(sorted(changes)) or 'no fields'})")
        return updated

    async def delete(self, caller_id: str, memoir_id: str) -> None:
        """
        Hard delete.

        Invitations and comments referencing the memoir are left in place.
        """
        await self.gate.can_access_for_write(caller_id, memoir_id)
        await self.metadata.delete(Collections.MEMOIRS, memoir_id)
        logger.info(f"Memoir {memoir_id} deleted by {caller_id}")

    async def set_cover_image(
        self,
        caller_id: str,
        memoir_id: str,
        filename: str | None,
        data: bytes,
        content_type: str | None,
    ) -> Memoir:
        """Upload a cover image and drop the previous one."""
        memoir = await self.gate.can_access_for_write(caller_id, memoir_id)

        folder = f"covers/{memoir_id}"
        previous = memoir.cover_image
        memoir.cover_image = await upload_image(self.content, folder, filename, data, content_type)
        await self._save(memoir)

        await delete_blob(self.content, previous, folder)
        return memoir

    # =========================================================================
    # Queries
    # =========================================================================

    async def get(self, caller_id: str, memoir_id: str) -> Memoir:
        return await self.gate.can_access_for_read(caller_id, memoir_id)

    async def list_mine(self, caller_id: str) -> list[Memoir]:
        """
        Memoirs the caller authored.

        Memoirs the caller collaborates on are readable through ``get``
        but do not appear here.
        """
        records = await self.metadata.query(
            Collections.MEMOIRS, {"author": caller_id}, limit=LIST_LIMIT
        )
        memoirs = [Memoir.model_validate(r) for r in records]
        return sorted(memoirs, key=lambda m: m.updated_at, reverse=True)

    async def resolve(self, memoir: Memoir) -> dict[str, Any]:
        """API view with author and collaborator users expanded to public profiles."""
        view = memoir.to_api()

        author = await self.users.get_public(memoir.author)
        view["author"] = author.to_api() if author else None

        for entry in view["collaborators"]:
            user = await self.users.get_public(entry.get("user"))
            entry["user"] = user.to_api() if user else None

        return view
