"""
Application services.

Each service receives its collaborators (storage, other services, the
email sender, settings) in its constructor. They are built once at app
startup; see puretome.api.app.
"""

from puretome.services.access import AccessGate
from puretome.services.comments import CommentService
from puretome.services.invitations import InvitationManager
from puretome.services.memoirs import MemoirService
from puretome.services.users import UserService

__all__ = [
    "AccessGate",
    "CommentService",
    "InvitationManager",
    "MemoirService",
    "UserService",
]
