"""
Comments on memoirs, optionally pinned to a chapter or an event.

Anyone who can read the memoir (author or accepted collaborator) can
comment and read comments.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as SchemaError

from puretome.core.errors import ValidationError
from puretome.core.models import Comment
from puretome.services.access import AccessGate
from puretome.services.users import UserService
from puretome.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, metadata: MetadataStorage, gate: AccessGate, users: UserService):
        self.metadata = metadata
        self.gate = gate
        self.users = users

    async def create(
        self,
        caller_id: str,
        memoir_id: str,
        content: str,
        chapter_id: str | None = None,
        event_id: str | None = None,
        parent_comment_id: str | None = None,
    ) -> dict[str, Any]:
        await self.gate.can_access_for_read(caller_id, memoir_id)

        try:
            comment = Comment(
                memoir=memoir_id,
                chapter=chapter_id or None,
                event=event_id or None,
                author=caller_id,
                content=content,
                parent_comment=parent_comment_id or None,
            )
        except SchemaError as e:
            raise ValidationError.from_pydantic(e)

        await self.metadata.insert(Collections.COMMENTS, comment.id, comment.to_record())
        logger.info(f"Comment {comment.id} added to memoir {memoir_id}")

        return await self.resolve(comment)

    async def list(
        self,
        caller_id: str,
        memoir_id: str,
        chapter_id: str | None = None,
        event_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Comments on a memoir, newest first, optionally narrowed."""
        await self.gate.can_access_for_read(caller_id, memoir_id)

        filters: dict[str, Any] = {"memoir": memoir_id}
        if chapter_id:
            filters["chapter"] = chapter_id
        if event_id:
            filters["event"] = event_id

        records = await self.metadata.query(Collections.COMMENTS, filters, limit=1000)
        comments = sorted(
            (Comment.model_validate(r) for r in records),
            key=lambda c: c.created_at,
            reverse=True,
        )
        return [await self.resolve(c) for c in comments]

    async def resolve(self, comment: Comment) -> dict[str, Any]:
        view = comment.to_api()
        author = await self.users.get_public(comment.author)
        view["author"] = author.to_api() if author else None
        return view
