# =============================================================================
# Memoir API Routes
# =============================================================================
#
# Endpoints:
#   POST   /memoir                                   - Create (author role)
#   GET    /memoir                                   - Memoirs I authored
#   GET    /memoir/{id}                              - Read (author or accepted collaborator)
#   PUT    /memoir/{id}                              - Partial update (author)
#   DELETE /memoir/{id}                              - Delete (author)
#   POST   /memoir/{id}/cover                        - Upload cover image (author)
#
# Collaboration:
#   POST   /memoir/{id}/collaborators                - Invite by email (author)
#   GET    /memoir/{id}/invitations                  - List invitations (author)
#   GET    /memoir/{id}/collaborators/invitation     - Preview by token (public)
#   POST   /memoir/{id}/collaborators/respond        - Accept/decline by token (public)
#
# =============================================================================

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile

from puretome.auth import AuthContext, Capability, require, require_auth
from puretome.core.models import InviteRequest
from puretome.api.deps import get_invitations, get_memoirs
from puretome.services import InvitationManager, MemoirService
from puretome.services.invitations import INVITATION_SENT

router = APIRouter(prefix="/memoir", tags=["memoirs"])


# =============================================================================
# CRUD
# =============================================================================


@router.post("", status_code=201)
async def create_memoir(
    body: dict[str, Any] = Body(...),
    ctx: AuthContext = Depends(require(Capability.MEMOIR_CREATE)),
    memoirs: MemoirService = Depends(get_memoirs),
):
    memoir = await memoirs.create(ctx.user_id, body)
    return {"message": "Memoir created", "memoir": await memoirs.resolve(memoir)}


@router.get("")
async def list_my_memoirs(
    ctx: AuthContext = Depends(require_auth()),
    memoirs: MemoirService = Depends(get_memoirs),
):
    return [await memoirs.resolve(m) for m in await memoirs.list_mine(ctx.user_id)]


@router.get("/{memoir_id}")
async def get_memoir(
    memoir_id: str,
    ctx: AuthContext = Depends(require_auth()),
    memoirs: MemoirService = Depends(get_memoirs),
):
    memoir = await memoirs.get(ctx.user_id, memoir_id)
    return await memoirs.resolve(memoir)


@router.put("/{memoir_id}")
async def update_memoir(
    memoir_id: str,
    body: dict[str, Any] = Body(...),
    ctx: AuthContext = Depends(require_auth()),
    memoirs: MemoirService = Depends(get_memoirs),
):
    memoir = await memoirs.update(ctx.user_id, memoir_id, body)
    return {"message": "Memoir updated", "memoir": await memoirs.resolve(memoir)}


@router.delete("/{memoir_id}")
async def delete_memoir(
    memoir_id: str,
    ctx: AuthContext = Depends(require_auth()),
    memoirs: MemoirService = Depends(get_memoirs),
):
    await memoirs.delete(ctx.user_id, memoir_id)
    return {"message": "Memoir deleted successfully"}


@router.post("/{memoir_id}/cover")
async def upload_cover_image(
    memoir_id: str,
    file: UploadFile = File(...),
    ctx: AuthContext = Depends(require_auth()),
    memoirs: MemoirService = Depends(get_memoirs),
):
    data = await file.read()
    memoir = await memoirs.set_cover_image(
        ctx.user_id, memoir_id, file.filename, data, file.content_type
    )
    return {"message": "Cover image updated", "memoir": await memoirs.resolve(memoir)}


# =============================================================================
# Collaboration
# =============================================================================


@router.post("/{memoir_id}/collaborators")
async def invite_collaborator(
    memoir_id: str,
    request: InviteRequest,
    ctx: AuthContext = Depends(require_auth()),
    invitations: InvitationManager = Depends(get_invitations),
):
    invitation = await invitations.invite_collaborator(
        ctx.user_id, memoir_id, request.email, request.role
    )
    return {"message": INVITATION_SENT, "invitationId": invitation.id}


@router.get("/{memoir_id}/invitations")
async def list_invitations(
    memoir_id: str,
    ctx: AuthContext = Depends(require_auth()),
    invitations: InvitationManager = Depends(get_invitations),
):
    return [i.to_public() for i in await invitations.list_invitations(ctx.user_id, memoir_id)]


@router.get("/{memoir_id}/collaborators/invitation")
async def preview_invitation(
    memoir_id: str,
    token: str | None = Query(None),
    invitations: InvitationManager = Depends(get_invitations),
):
    return await invitations.get_invitation_preview(memoir_id, token)


@router.post("/{memoir_id}/collaborators/respond")
async def respond_to_invitation(
    memoir_id: str,
    body: dict[str, Any] | None = Body(None),
    invitations: InvitationManager = Depends(get_invitations),
):
    # Raw body so "accepted" must be a real JSON boolean
    body = body or {}
    message = await invitations.respond_to_invitation(
        memoir_id, body.get("token"), body.get("accepted")
    )
    return {"message": message}
