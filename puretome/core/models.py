"""
Core data models for the PureTome platform.

These models represent the fundamental entities: Users, Memoirs (with their
embedded chapters, events and collaborators), Invitations and Comments.

Field names are snake_case in Python and in storage; JSON sent to and from
the frontend uses camelCase aliases (``inviteStatus``, ``coverImage``...).
Both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from puretome.core.utils import generate_id, normalize_email, utc_now


class DomainModel(BaseModel):
    """Base for all records: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_api(self) -> dict:
        """JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    def to_record(self) -> dict:
        """JSON-safe dict as persisted."""
        return self.model_dump(mode="json")


def _require_text(value: str) -> str:
    if value is None or not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, Enum):
    """Platform-wide account role."""

    AUTHOR = "author"
    AGENT = "agent"
    PUBLISHER = "publisher"
    ADMIN = "admin"


class MemoirStatus(str, Enum):
    """Publishing status of a memoir."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PUBLISHED = "published"


class CollaboratorRole(str, Enum):
    """Permission tier granted to a collaborator."""

    VIEWER = "viewer"
    EDITOR = "editor"
    VALIDATOR = "validator"


class InviteStatus(str, Enum):
    """Status of a collaborator entry embedded in a memoir."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class InvitationStatus(str, Enum):
    """Status of a standalone invitation. Declined invitations are deleted."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


# =============================================================================
# User
# =============================================================================


class User(DomainModel):
    """
    A registered account.

    Never returned to clients directly; use ``PublicUser``.
    """

    id: str = Field(default_factory=lambda: generate_id("user"))
    email: str
    name: str = ""
    password_hash: str
    role: UserRole = UserRole.AUTHOR

    avatar: str | None = None
    bio: str | None = None

    # Password reset
    reset_password_token: str | None = None
    reset_password_expires: datetime | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return normalize_email(value)

    def touch(self) -> None:
        self.updated_at = utc_now()


class PublicUser(DomainModel):
    """User data safe to return to any client."""

    id: str
    email: str
    name: str = ""
    role: UserRole = UserRole.AUTHOR
    avatar: str | None = None
    bio: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> PublicUser:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            avatar=user.avatar,
            bio=user.bio,
            created_at=user.created_at,
        )


# =============================================================================
# Memoir
# =============================================================================


class MemoirEvent(DomainModel):
    """A single event inside a chapter. Content is opaque rich text."""

    id: str = Field(default_factory=lambda: generate_id("evt"))
    title: str = ""
    content: str = ""


class Chapter(DomainModel):
    """An ordered chapter of a memoir."""

    id: str = Field(default_factory=lambda: generate_id("ch"))
    title: str
    description: str = ""
    events: list[MemoirEvent] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return _require_text(value)


class Collaborator(DomainModel):
    """
    Access granted to someone other than the author.

    ``user`` stays None when the invitee had no account at acceptance time.
    """

    user: str | None = None
    role: CollaboratorRole
    invite_status: InviteStatus = InviteStatus.PENDING
    invite_email: str

    @field_validator("invite_email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return normalize_email(value)


class Memoir(DomainModel):
    """
    A memoir - the owned content aggregate.

    Chapters, events and collaborators are embedded and have no lifecycle
    of their own.
    """

    id: str = Field(default_factory=lambda: generate_id("memoir"))

    title: str
    content: str = ""
    cover_image: str | None = None
    status: MemoirStatus = MemoirStatus.DRAFT

    # Owning user id, fixed at creation
    author: str

    collaborators: list[Collaborator] = Field(default_factory=list)
    chapters: list[Chapter] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return _require_text(value)

    def is_author(self, user_id: str | None) -> bool:
        return user_id is not None and self.author == user_id

    def is_accepted_collaborator(self, user_id: str | None) -> bool:
        if user_id is None:
            return False
        return any(
            c.user == user_id and c.invite_status == InviteStatus.ACCEPTED
            for c in self.collaborators
        )

    def can_read(self, user_id: str | None) -> bool:
        """Author or accepted collaborator."""
        return self.is_author(user_id) or self.is_accepted_collaborator(user_id)

    def find_collaborator(
        self,
        email: str | None = None,
        user_id: str | None = None,
    ) -> Collaborator | None:
        """First entry matching the email (case-insensitive) or the user id."""
        wanted = normalize_email(email) if email else None
        for collaborator in self.collaborators:
            if wanted and collaborator.invite_email == wanted:
                return collaborator
            if user_id and collaborator.user == user_id:
                return collaborator
        return None

    def touch(self) -> None:
        self.updated_at = utc_now()


class MemoirCreate(DomainModel):
    """Fields a client may supply when creating a memoir."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    title: str
    content: str = ""
    cover_image: str | None = None
    status: MemoirStatus = MemoirStatus.DRAFT
    chapters: list[Chapter] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return _require_text(value)


class MemoirUpdate(DomainModel):
    """
    Partial update payload.

    Unknown keys (``author``, ``collaborators``, ``id``...) are dropped,
    so the owner and the collaborator list can never change through here.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    title: str | None = None
    content: str | None = None
    cover_image: str | None = None
    status: MemoirStatus | None = None
    chapters: list[Chapter] | None = None


# =============================================================================
# Invitation
# =============================================================================


class Invitation(DomainModel):
    """
    A tokenized, time-bounded offer of collaborator access.

    Lives apart from the memoir until accepted.
    """

    id: str = Field(default_factory=lambda: generate_id("inv"))

    memoir: str
    invitee_email: str
    role: CollaboratorRole
    token: str
    status: InvitationStatus = InvitationStatus.PENDING
    expires_at: datetime
    invited_by: str

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("invitee_email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return normalize_email(value)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def mark(self, status: InvitationStatus) -> None:
        self.status = status
        self.updated_at = utc_now()

    def to_public(self) -> dict:
        """API view without the secret token."""
        data = self.to_api()
        data.pop("token", None)
        return data


# =============================================================================
# Comment
# =============================================================================


class Comment(DomainModel):
    """A comment on a memoir, optionally scoped to a chapter or event."""

    id: str = Field(default_factory=lambda: generate_id("cmt"))

    memoir: str
    chapter: str | None = None
    event: str | None = None
    author: str
    content: str
    resolved: bool = False
    parent_comment: str | None = None

    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("content")
    @classmethod
    def _check_content(cls, value: str) -> str:
        return _require_text(value)


# =============================================================================
# Request bodies
# =============================================================================


class InviteRequest(DomainModel):
    email: EmailStr
    role: CollaboratorRole


class LoginRequest(DomainModel):
    email: str
    password: str


class ProfileUpdate(DomainModel):
    name: str | None = None
    bio: str | None = None


class CommentCreate(DomainModel):
    memoir_id: str
    content: str
    chapter_id: str | None = None
    event_id: str | None = None
    parent_comment_id: str | None = None
