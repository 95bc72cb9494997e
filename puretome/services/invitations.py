"""
Invitation lifecycle manager.

An invitation is a tokenized, time-bounded offer of collaborator access to
one memoir. It lives as its own record until accepted, at which point a
collaborator entry is appended to the memoir.

States:
    pending -> accepted   (accept)
    pending -> expired    (responded to on/after expires_at, or its memoir
                           vanished before acceptance)
    pending -> (deleted)  (decline)

Expiry is lazy: nothing sweeps old invitations, they are only marked
expired when someone responds to them. Accepted and expired invitations
are terminal.

Accepting writes the memoir first and the invitation second, with no
transaction. If the second write fails, a retry with the same token finds
the invitee already listed and only marks the invitation accepted.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from puretome.config import Settings
from puretome.core.errors import (
    ConflictError,
    InconsistentStateError,
    InvitationExpiredError,
    InvitationMismatchError,
    InvitationStateError,
    NotFoundError,
    ParameterError,
    ValidationError,
)
from puretome.core.models import (
    Collaborator,
    CollaboratorRole,
    Invitation,
    InvitationStatus,
    InviteStatus,
    Memoir,
)
from puretome.core.utils import generate_token, normalize_email, utc_now
from puretome.integrations.email import EmailService
from puretome.services.access import AccessGate
from puretome.services.users import UserService
from puretome.storage.base import Collections, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)


NOT_AUTHOR = "Memoir not found or you are not the author."
ALREADY_INVITED = "User is already a collaborator or has a pending invitation."
BAD_PARAMETERS = "Missing or invalid parameters (token, accepted)"
UNKNOWN_TOKEN = "Invitation not found or invalid token."
MEMOIR_MISMATCH = "Invalid request: Memoir ID mismatch."

INVITATION_SENT = "Collaborator invitation sent successfully."
DECLINED = "Invitation declined successfully."
ACCEPTED = "Invitation accepted successfully."
ALREADY_COLLABORATOR = "Already a collaborator."


class InvitationManager:
    """
    Issues invitations and applies responses to them.

    Usage:
        manager = InvitationManager(metadata, users, gate, email_service, settings)
        invitation = await manager.invite_collaborator(author_id, memoir_id, "a@b.c", "editor")
        message = await manager.respond_to_invitation(memoir_id, invitation.token, True)
    """

    def __init__(
        self,
        metadata: MetadataStorage,
        users: UserService,
        gate: AccessGate,
        email_service: EmailService,
        settings: Settings,
    ):
        self.metadata = metadata
        self.users = users
        self.gate = gate
        self.email_service = email_service
        self.settings = settings

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    async def _find_by_token(self, token: str) -> Invitation | None:
        data = await self.metadata.find_one(Collections.INVITATIONS, {"token": token})
        return Invitation.model_validate(data) if data else None

    async def _pending_for(self, memoir_id: str, email: str) -> Invitation | None:
        data = await self.metadata.find_one(
            Collections.INVITATIONS,
            {
                "memoir": memoir_id,
                "invitee_email": email,
                "status": InvitationStatus.PENDING.value,
            },
        )
        return Invitation.model_validate(data) if data else None

    async def _save_invitation(self, invitation: Invitation) -> None:
        await self.metadata.save(Collections.INVITATIONS, invitation.id, invitation.to_record())

    async def _mark(self, invitation: Invitation, status: InvitationStatus) -> None:
        invitation.mark(status)
        await self._save_invitation(invitation)
        logger.info(f"Invitation {invitation.id} for memoir {invitation.memoir} -> {status.value}")

    # =========================================================================
    # Issue
    # =========================================================================

    async def invite_collaborator(
        self,
        inviter_id: str,
        memoir_id: str,
        email: str,
        role: CollaboratorRole | str,
    ) -> Invitation:
        """
        Create a pending invitation and email the invitee.

        Raises:
            NotFoundError: memoir missing or caller is not its author
            ConflictError: invitee already listed, is the inviter, or has a
                pending invitation for this memoir
        """
        memoir = await self.gate.require_author(inviter_id, memoir_id, NOT_AUTHOR)

        email = normalize_email(email)
        try:
            role = CollaboratorRole(role)
        except ValueError:
            raise ValidationError("Invalid role.", {"role": "invalid"})

        if memoir.find_collaborator(email=email, user_id=inviter_id):
            raise ConflictError(ALREADY_INVITED)
        if await self._pending_for(memoir_id, email):
            raise ConflictError(ALREADY_INVITED)

        invitation = Invitation(
            memoir=memoir_id,
            invitee_email=email,
            role=role,
            token=generate_token(),
            expires_at=utc_now() + timedelta(days=self.settings.invitation_expire_days),
            invited_by=inviter_id,
        )

        # The store enforces one pending invitation per (memoir, email)
        try:
            await self.metadata.insert(
                Collections.INVITATIONS, invitation.id, invitation.to_record()
            )
        except DuplicateKeyError:
            raise ConflictError(ALREADY_INVITED)

        logger.info(f"Invitation {invitation.id} issued for memoir {memoir_id} ({role.value})")

        await self._send_invitation_email(memoir, invitation, inviter_id)
        return invitation

    async def _send_invitation_email(
        self,
        memoir: Memoir,
        invitation: Invitation,
        inviter_id: str,
    ) -> None:
        """Delivery failures never undo an issued invitation."""
        try:
            inviter = await self.users.get(inviter_id)
            await self.email_service.send_invitation(
                email=invitation.invitee_email,
                memoir_title=memoir.title,
                author_name=(inviter.name or inviter.email) if inviter else "A PureTome author",
                memoir_id=memoir.id,
                token=invitation.token,
                role=invitation.role.value,
            )
        except Exception:
            logger.exception(
                f"Invitation email for {invitation.id} to {invitation.invitee_email} failed"
            )

    # =========================================================================
    # Respond
    # =========================================================================

    async def _resolve_token(self, memoir_id: str, token: str) -> Invitation:
        invitation = await self._find_by_token(token)
        if invitation is None:
            raise NotFoundError(UNKNOWN_TOKEN)
        if invitation.memoir != memoir_id:
            raise InvitationMismatchError(MEMOIR_MISMATCH)
        return invitation

    async def respond_to_invitation(self, memoir_id: str, token: Any, accepted: Any) -> str:
        """
        Accept or decline an invitation by its token.

        Possession of the token is the only credential; the responder need
        not be logged in or registered. Returns the success message.
        """
        if not isinstance(token, str) or not token or not isinstance(accepted, bool):
            raise ParameterError(BAD_PARAMETERS)

        invitation = await self._resolve_token(memoir_id, token)

        if invitation.status != InvitationStatus.PENDING:
            raise InvitationStateError(f"Invitation already {invitation.status.value}.")

        if invitation.is_expired():
            await self._mark(invitation, InvitationStatus.EXPIRED)
            raise InvitationExpiredError("Invitation has expired.")

        if not accepted:
            await self.metadata.delete(Collections.INVITATIONS, invitation.id)
            logger.info(f"Invitation {invitation.id} for memoir {memoir_id} declined")
            return DECLINED

        return await self._accept(invitation)

    async def _accept(self, invitation: Invitation) -> str:
        memoir = await self.gate.load(invitation.memoir)
        if memoir is None:
            await self._mark(invitation, InvitationStatus.EXPIRED)
            logger.error(
                f"Invitation {invitation.id} references missing memoir {invitation.memoir}"
            )
            raise InconsistentStateError("Associated memoir not found.")

        invitee = await self.users.find_by_email(invitation.invitee_email)
        invitee_id = invitee.id if invitee else None

        if memoir.find_collaborator(email=invitation.invitee_email, user_id=invitee_id):
            await self._mark(invitation, InvitationStatus.ACCEPTED)
            return ALREADY_COLLABORATOR

        memoir.collaborators.append(
            Collaborator(
                user=invitee_id,
                role=invitation.role,
                invite_status=InviteStatus.ACCEPTED,
                invite_email=invitation.invitee_email,
            )
        )
        memoir.touch()
        await self.metadata.save(Collections.MEMOIRS, memoir.id, memoir.to_record())

        await self._mark(invitation, InvitationStatus.ACCEPTED)
        return ACCEPTED

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_invitations(self, caller_id: str, memoir_id: str) -> list[Invitation]:
        """All invitations for a memoir, newest first. Author only."""
        await self.gate.require_author(caller_id, memoir_id, NOT_AUTHOR)
        records = await self.metadata.query(
            Collections.INVITATIONS, {"memoir": memoir_id}, limit=1000
        )
        invitations = [Invitation.model_validate(r) for r in records]
        return sorted(invitations, key=lambda i: i.created_at, reverse=True)

    async def get_invitation_preview(self, memoir_id: str, token: Any) -> dict[str, Any]:
        """
        What the invite-response page shows before the invitee decides.

        Read-only: an overdue invitation is reported as expired but is not
        marked so here.
        """
        if not isinstance(token, str) or not token:
            raise ParameterError("Invitation token is required.")

        invitation = await self._resolve_token(memoir_id, token)

        memoir = await self.gate.load(invitation.memoir)
        if memoir is None:
            raise InconsistentStateError("Associated memoir not found.")

        inviter = await self.users.get(invitation.invited_by)

        return {
            "memoirId": memoir.id,
            "memoirTitle": memoir.title,
            "inviteeEmail": invitation.invitee_email,
            "role": invitation.role.value,
            "status": invitation.status.value,
            "expiresAt": invitation.expires_at.isoformat(),
            "expired": invitation.is_expired(),
            "invitedBy": inviter.name if inviter else None,
        }
