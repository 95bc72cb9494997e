# =============================================================================
# Comment API Routes
# =============================================================================
#
# Endpoints:
#   POST /comments                      - Comment on a memoir I can read
#   GET  /comments/memoir/{memoir_id}   - List, optionally ?chapterId= &eventId=
#
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from puretome.auth import AuthContext, require_auth
from puretome.core.models import CommentCreate
from puretome.api.deps import get_comments
from puretome.services import CommentService

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("", status_code=201)
async def create_comment(
    request: CommentCreate,
    ctx: AuthContext = Depends(require_auth()),
    comments: CommentService = Depends(get_comments),
):
    return await comments.create(
        ctx.user_id,
        request.memoir_id,
        request.content,
        chapter_id=request.chapter_id,
        event_id=request.event_id,
        parent_comment_id=request.parent_comment_id,
    )


@router.get("/memoir/{memoir_id}")
async def list_comments(
    memoir_id: str,
    chapter_id: str | None = Query(None, alias="chapterId"),
    event_id: str | None = Query(None, alias="eventId"),
    ctx: AuthContext = Depends(require_auth()),
    comments: CommentService = Depends(get_comments),
):
    return await comments.list(ctx.user_id, memoir_id, chapter_id=chapter_id, event_id=event_id)
