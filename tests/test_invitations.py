"""
Tests for the invitation lifecycle.

Core principle: an invitation token is the only credential needed to join a
memoir, so every response path must leave the invitation and the memoir in
a consistent, terminal-where-appropriate state.
"""

from datetime import timedelta

import pytest

from puretome.core.errors import (
    ConflictError,
    InconsistentStateError,
    InvitationExpiredError,
    InvitationMismatchError,
    InvitationStateError,
    NotFoundError,
    ParameterError,
)
from puretome.core.models import (
    Collaborator,
    CollaboratorRole,
    Invitation,
    InvitationStatus,
    InviteStatus,
)
from puretome.core.utils import utc_now
from puretome.integrations.email import EmailService
from puretome.storage import Collections
from tests.conftest import make_memoir, make_user


async def load_invitation(state, invitation_id):
    data = await state.storage.metadata.get(Collections.INVITATIONS, invitation_id)
    return Invitation.model_validate(data) if data else None


async def expire(state, invitation, delta=timedelta(seconds=1)):
    """Move an invitation's expiry into the past."""
    await state.storage.metadata.update(
        Collections.INVITATIONS,
        invitation.id,
        {"expires_at": (utc_now() - delta).isoformat()},
    )


# =============================================================================
# Issue
# =============================================================================


class TestInviteCollaborator:
    @pytest.mark.asyncio
    async def test_creates_pending_invitation(self, state, settings):
        author = await make_user(state, "author@example.com", name="Ada")
        memoir = await make_memoir(state, author)

        before = utc_now()
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "  Friend@Example.COM ", "editor"
        )

        assert invitation.status == InvitationStatus.PENDING
        assert invitation.invitee_email == "friend@example.com"
        assert invitation.role == CollaboratorRole.EDITOR
        assert invitation.invited_by == author.id
        assert len(invitation.token) == 64
        int(invitation.token, 16)

        expected = before + timedelta(days=settings.invitation_expire_days)
        assert abs((invitation.expires_at - expected).total_seconds()) < 5

        stored = await load_invitation(state, invitation.id)
        assert stored.token == invitation.token

    @pytest.mark.asyncio
    async def test_sends_email_with_accept_link(self, state, email_service):
        author = await make_user(state, "author@example.com", name="Ada")
        memoir = await make_memoir(state, author, title="Prairie Years")

        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        mail = email_service.last("collaborator_invitation")
        assert mail["to"] == "friend@example.com"
        assert mail["data"]["memoir_title"] == "Prairie Years"
        assert mail["data"]["author_name"] == "Ada"
        assert mail["data"]["accept_url"] == (
            f"http://app.test/invite/{memoir.id}?token={invitation.token}"
        )

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_invite(self, state, email_service):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        email_service.fail = True

        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        assert await load_invitation(state, invitation.id) is not None
        assert all(m["template"] != "collaborator_invitation" for m in email_service.sent)

    @pytest.mark.asyncio
    async def test_non_author_gets_not_found(self, state):
        author = await make_user(state, "author@example.com")
        other = await make_user(state, "other@example.com")
        memoir = await make_memoir(state, author)

        with pytest.raises(NotFoundError, match="you are not the author"):
            await state.invitations.invite_collaborator(
                other.id, memoir.id, "friend@example.com", "viewer"
            )

    @pytest.mark.asyncio
    async def test_missing_memoir_gets_not_found(self, state):
        author = await make_user(state, "author@example.com")

        with pytest.raises(NotFoundError):
            await state.invitations.invite_collaborator(
                author.id, "memoir_missing", "friend@example.com", "viewer"
            )

    @pytest.mark.asyncio
    async def test_duplicate_pending_invite_is_conflict(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        await state.invitations.invite_collaborator(author.id, memoir.id, "friend@example.com", "viewer")

        with pytest.raises(ConflictError, match="pending invitation"):
            await state.invitations.invite_collaborator(
                author.id, memoir.id, "FRIEND@example.com", "editor"
            )

    @pytest.mark.asyncio
    async def test_same_email_on_another_memoir_is_fine(self, state):
        author = await make_user(state, "author@example.com")
        first = await make_memoir(state, author, title="One")
        second = await make_memoir(state, author, title="Two")

        await state.invitations.invite_collaborator(author.id, first.id, "friend@example.com", "viewer")
        await state.invitations.invite_collaborator(author.id, second.id, "friend@example.com", "viewer")

    @pytest.mark.asyncio
    async def test_existing_collaborator_is_conflict(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        with pytest.raises(ConflictError):
            await state.invitations.invite_collaborator(
                author.id, memoir.id, "friend@example.com", "editor"
            )

    @pytest.mark.asyncio
    async def test_entry_for_inviter_is_conflict_for_any_email(self, state):
        """An entry whose user is the inviter blocks invites regardless of its email."""
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        memoir = await state.gate.load(memoir.id)
        memoir.collaborators.append(Collaborator(
            user=author.id,
            role=CollaboratorRole.EDITOR,
            invite_status=InviteStatus.ACCEPTED,
            invite_email="old-address@example.com",
        ))
        await state.storage.metadata.save(Collections.MEMOIRS, memoir.id, memoir.to_record())

        with pytest.raises(ConflictError, match="already a collaborator"):
            await state.invitations.invite_collaborator(
                author.id, memoir.id, "stranger@example.com", "viewer"
            )

        assert await state.invitations.list_invitations(author.id, memoir.id) == []

    @pytest.mark.asyncio
    async def test_store_constraint_closes_race(self, state, monkeypatch):
        """Two invites racing past the pending check still produce one invitation."""
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        await state.invitations.invite_collaborator(author.id, memoir.id, "friend@example.com", "viewer")

        async def no_pending(memoir_id, email):
            return None

        monkeypatch.setattr(state.invitations, "_pending_for", no_pending)

        with pytest.raises(ConflictError):
            await state.invitations.invite_collaborator(
                author.id, memoir.id, "friend@example.com", "viewer"
            )

        pending = await state.storage.metadata.query(
            Collections.INVITATIONS, {"memoir": memoir.id, "status": "pending"}
        )
        assert len(pending) == 1


# =============================================================================
# Respond
# =============================================================================


class TestRespondToInvitation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token,accepted", [
        (None, True),
        ("", True),
        ("abc", None),
        ("abc", "true"),
        ("abc", 1),
    ])
    async def test_bad_parameters(self, state, token, accepted):
        with pytest.raises(ParameterError, match="Missing or invalid parameters"):
            await state.invitations.respond_to_invitation("memoir_x", token, accepted)

    @pytest.mark.asyncio
    async def test_unknown_token(self, state):
        with pytest.raises(NotFoundError, match="Invitation not found or invalid token."):
            await state.invitations.respond_to_invitation("memoir_x", "f" * 64, True)

    @pytest.mark.asyncio
    async def test_memoir_mismatch_leaves_invitation_pending(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author, title="One")
        other = await make_memoir(state, author, title="Two")
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        with pytest.raises(InvitationMismatchError, match="Memoir ID mismatch"):
            await state.invitations.respond_to_invitation(other.id, invitation.token, True)

        stored = await load_invitation(state, invitation.id)
        assert stored.status == InvitationStatus.PENDING
        assert (await state.gate.load(other.id)).collaborators == []

    @pytest.mark.asyncio
    async def test_accept_registered_invitee(self, state):
        author = await make_user(state, "author@example.com")
        friend = await make_user(state, "friend@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "editor"
        )

        message = await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert message == "Invitation accepted successfully."
        updated = await state.gate.load(memoir.id)
        assert updated.collaborators == [
            Collaborator(
                user=friend.id,
                role=CollaboratorRole.EDITOR,
                invite_status=InviteStatus.ACCEPTED,
                invite_email="friend@example.com",
            )
        ]
        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.ACCEPTED

        # Now a reader
        assert (await state.gate.can_access_for_read(friend.id, memoir.id)).id == memoir.id

    @pytest.mark.asyncio
    async def test_accept_unregistered_invitee(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "newcomer@example.com", "viewer"
        )

        await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        entry = (await state.gate.load(memoir.id)).collaborators[0]
        assert entry.user is None
        assert entry.invite_email == "newcomer@example.com"
        assert entry.invite_status == InviteStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_second_response_is_rejected(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        with pytest.raises(InvitationStateError, match="Invitation already accepted."):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert len((await state.gate.load(memoir.id)).collaborators) == 1

    @pytest.mark.asyncio
    async def test_accept_is_idempotent_after_partial_write(self, state):
        """Memoir already lists the invitee (first write landed, second did not)."""
        author = await make_user(state, "author@example.com")
        friend = await make_user(state, "friend@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        memoir = await state.gate.load(memoir.id)
        memoir.collaborators.append(Collaborator(
            user=friend.id,
            role=CollaboratorRole.VIEWER,
            invite_status=InviteStatus.ACCEPTED,
            invite_email="friend@example.com",
        ))
        await state.storage.metadata.save(Collections.MEMOIRS, memoir.id, memoir.to_record())

        message = await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert message == "Already a collaborator."
        assert len((await state.gate.load(memoir.id)).collaborators) == 1
        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_accept_matches_existing_entry_by_user_id(self, state):
        """The invitee is already listed under an older email address."""
        author = await make_user(state, "author@example.com")
        friend = await make_user(state, "friend@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        memoir = await state.gate.load(memoir.id)
        memoir.collaborators.append(Collaborator(
            user=friend.id,
            role=CollaboratorRole.EDITOR,
            invite_status=InviteStatus.ACCEPTED,
            invite_email="friend-old@example.com",
        ))
        await state.storage.metadata.save(Collections.MEMOIRS, memoir.id, memoir.to_record())

        message = await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert message == "Already a collaborator."
        collaborators = (await state.gate.load(memoir.id)).collaborators
        assert len(collaborators) == 1
        assert collaborators[0].invite_email == "friend-old@example.com"
        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_decline_deletes_invitation(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        message = await state.invitations.respond_to_invitation(memoir.id, invitation.token, False)

        assert message == "Invitation declined successfully."
        assert await load_invitation(state, invitation.id) is None
        assert (await state.gate.load(memoir.id)).collaborators == []

        with pytest.raises(NotFoundError):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        # A declined invitee can be invited again
        again = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        assert again.token != invitation.token

    @pytest.mark.asyncio
    async def test_expired_invitation_is_marked_and_sticks(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        await expire(state, invitation)

        with pytest.raises(InvitationExpiredError, match="Invitation has expired."):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.EXPIRED
        assert (await state.gate.load(memoir.id)).collaborators == []

        with pytest.raises(InvitationStateError, match="Invitation already expired."):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, False)

        # An expired invitation no longer blocks a fresh one
        await state.invitations.invite_collaborator(author.id, memoir.id, "friend@example.com", "viewer")

    @pytest.mark.asyncio
    async def test_expiry_applies_to_decline_too(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        await expire(state, invitation)

        with pytest.raises(InvitationExpiredError):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, False)

        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_deleted_memoir_expires_invitation(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )
        await state.memoirs.delete(author.id, memoir.id)

        with pytest.raises(InconsistentStateError, match="Associated memoir not found."):
            await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_author_is_unchanged_by_acceptance(self, state):
        author = await make_user(state, "author@example.com")
        await make_user(state, "friend@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "editor"
        )

        await state.invitations.respond_to_invitation(memoir.id, invitation.token, True)

        assert (await state.gate.load(memoir.id)).author == author.id


# =============================================================================
# Queries
# =============================================================================


class TestInvitationQueries:
    @pytest.mark.asyncio
    async def test_list_is_author_only(self, state):
        author = await make_user(state, "author@example.com")
        other = await make_user(state, "other@example.com")
        memoir = await make_memoir(state, author)
        await state.invitations.invite_collaborator(author.id, memoir.id, "a@example.com", "viewer")
        await state.invitations.invite_collaborator(author.id, memoir.id, "b@example.com", "editor")

        listed = await state.invitations.list_invitations(author.id, memoir.id)
        assert {i.invitee_email for i in listed} == {"a@example.com", "b@example.com"}
        assert all("token" not in i.to_public() for i in listed)

        with pytest.raises(NotFoundError):
            await state.invitations.list_invitations(other.id, memoir.id)

    @pytest.mark.asyncio
    async def test_preview_does_not_mutate(self, state):
        author = await make_user(state, "author@example.com", name="Ada")
        memoir = await make_memoir(state, author, title="Prairie Years")
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "validator"
        )
        await expire(state, invitation)

        preview = await state.invitations.get_invitation_preview(memoir.id, invitation.token)

        assert preview["memoirTitle"] == "Prairie Years"
        assert preview["role"] == "validator"
        assert preview["invitedBy"] == "Ada"
        assert preview["status"] == "pending"
        assert preview["expired"] is True
        assert (await load_invitation(state, invitation.id)).status == InvitationStatus.PENDING

    @pytest.mark.asyncio
    async def test_preview_checks_memoir(self, state):
        author = await make_user(state, "author@example.com")
        memoir = await make_memoir(state, author)
        invitation = await state.invitations.invite_collaborator(
            author.id, memoir.id, "friend@example.com", "viewer"
        )

        with pytest.raises(InvitationMismatchError):
            await state.invitations.get_invitation_preview("memoir_other", invitation.token)
        with pytest.raises(NotFoundError):
            await state.invitations.get_invitation_preview(memoir.id, "0" * 64)


# =============================================================================
# Invitation Email
# =============================================================================


class FakeSESClient:
    def __init__(self):
        self.calls: list[dict] = []

    def send_email(self, **kwargs):
        self.calls.append(kwargs)
        return {"MessageId": "msg-1"}


class TestInvitationEmail:
    @pytest.mark.asyncio
    async def test_html_body_escapes_title_and_author(self, settings):
        ses = FakeSESClient()
        service = EmailService(settings, client=ses)

        sent = await service.send_invitation(
            "friend@example.com",
            memoir_title='<a href="http://evil.test">Click</a>',
            author_name="Ada <script>alert(1)</script>",
            memoir_id="memoir_1",
            token="abc",
            role="viewer",
        )

        assert sent is True
        body = ses.calls[0]["Message"]["Body"]
        html_body = body["Html"]["Data"]
        assert "<script>" not in html_body
        assert '<a href="http://evil.test">' not in html_body
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html_body
        assert "http://app.test/invite/memoir_1?token=abc" in html_body
        # Plain text part is not HTML and keeps the raw title
        assert '<a href="http://evil.test">Click</a>' in body["Text"]["Data"]
