"""
Policies - the interface for route authorization.

Usage in a route:
    ctx: AuthContext = Depends(require(Capability.MEMOIR_CREATE))
    ctx: AuthContext = Depends(require_auth())

Design:
- `require()` returns a FastAPI dependency that resolves to AuthContext
- No token, or a bad/expired one, is a 401
- An authenticated caller whose role lacks a capability gets a 403
- Per-memoir access is not decided here; see puretome.services.access
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from puretome.auth.capabilities import Capability
from puretome.auth.context import AuthContext
from puretome.auth.jwt import TokenError, TokenPayload, decode_token
from puretome.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# JWT Token Handling
# =============================================================================


# Optional bearer (doesn't fail if no token, the policy decides)
optional_bearer = HTTPBearer(auto_error=False)


def _settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_token_payload(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> TokenPayload | None:
    """
    Decode the bearer token if one was sent.

    Returns None when no Authorization header is present. Raises 401 when
    a token is present but invalid or expired.
    """
    if not credentials:
        return None

    try:
        return decode_token(credentials.credentials, _settings(request))
    except TokenError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")


# =============================================================================
# Policy
# =============================================================================


class Policy:
    """
    A policy that can be checked against an AuthContext.

    Returns (allowed, status_code, error_message) so the dependency can
    tell "who are you" (401) apart from "not allowed" (403).
    """

    def __init__(
        self,
        capabilities: list[Capability | str] | None = None,
        require_auth: bool = True,
    ):
        self.capabilities = capabilities or []
        self.require_auth = require_auth

    def check(self, ctx: AuthContext) -> tuple[bool, int | None, str | None]:
        if self.require_auth and not ctx.is_authenticated:
            return False, 401, "Unauthorized"

        for capability in self.capabilities:
            if not ctx.can(capability):
                return False, 403, "Access denied"

        return True, None, None


# =============================================================================
# Main Interface
# =============================================================================


def require(*capabilities: Capability | str, require_auth: bool = True) -> Callable:
    """
    Require an authenticated caller whose role grants every capability.

    Usage:
        @router.post("")
        async def create_memoir(
            body: dict,
            ctx: AuthContext = Depends(require(Capability.MEMOIR_CREATE)),
        ):
            ...
    """
    policy = Policy(capabilities=list(capabilities), require_auth=require_auth)
    return _create_dependency(policy)


def require_auth() -> Callable:
    """Just require authentication, no specific capability."""
    return require()


# =============================================================================
# Internal: Create the FastAPI Dependency
# =============================================================================


def _create_dependency(policy: Policy) -> Callable:
    """Create a FastAPI dependency from a policy."""

    async def dependency(
        payload: TokenPayload | None = Depends(get_token_payload),
    ) -> AuthContext:
        if payload is None:
            ctx = AuthContext.anonymous()
        else:
            ctx = AuthContext(user_id=payload.sub, email=payload.email, role=payload.role)

        allowed, status_code, error = policy.check(ctx)
        if not allowed:
            raise HTTPException(status_code=status_code, detail=error)

        return ctx

    return dependency
