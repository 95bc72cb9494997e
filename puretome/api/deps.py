"""
Route dependencies: hand out the services built at startup.
"""

from __future__ import annotations

from fastapi import Request

from puretome.config import Settings
from puretome.services import (
    CommentService,
    InvitationManager,
    MemoirService,
    UserService,
)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_users(request: Request) -> UserService:
    return request.app.state.services.users


def get_memoirs(request: Request) -> MemoirService:
    return request.app.state.services.memoirs


def get_invitations(request: Request) -> InvitationManager:
    return request.app.state.services.invitations


def get_comments(request: Request) -> CommentService:
    return request.app.state.services.comments
