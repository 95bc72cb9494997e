"""
Core module - fundamental data models and shared helpers.

This module contains:
- models: Domain records (User, Memoir, Invitation, Comment)
- errors: Domain error taxonomy
- utils: Ids, tokens, clocks
"""

from puretome.core.models import (
    Chapter,
    Collaborator,
    CollaboratorRole,
    Comment,
    Invitation,
    InvitationStatus,
    InviteStatus,
    Memoir,
    MemoirCreate,
    MemoirEvent,
    MemoirStatus,
    MemoirUpdate,
    PublicUser,
    User,
    UserRole,
)

from puretome.core.errors import (
    ConflictError,
    InconsistentStateError,
    InvitationExpiredError,
    InvitationMismatchError,
    InvitationStateError,
    NotFoundError,
    ParameterError,
    PureTomeError,
    ValidationError,
)

from puretome.core.utils import (
    generate_id,
    generate_token,
    normalize_email,
    utc_now,
)

__all__ = [
    # Models
    "Chapter",
    "Collaborator",
    "CollaboratorRole",
    "Comment",
    "Invitation",
    "InvitationStatus",
    "InviteStatus",
    "Memoir",
    "MemoirCreate",
    "MemoirEvent",
    "MemoirStatus",
    "MemoirUpdate",
    "PublicUser",
    "User",
    "UserRole",
    # Errors
    "ConflictError",
    "InconsistentStateError",
    "InvitationExpiredError",
    "InvitationMismatchError",
    "InvitationStateError",
    "NotFoundError",
    "ParameterError",
    "PureTomeError",
    "ValidationError",
    # Utils
    "generate_id",
    "generate_token",
    "normalize_email",
    "utc_now",
]
