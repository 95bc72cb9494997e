"""
Authentication and authorization.

Two layers:
1. Platform role -> capabilities (create memoirs, admin endpoints), checked
   by `require()` policies on routes.
2. Per-memoir access (author / accepted collaborator), checked by the
   access gate in the services layer.
"""

from puretome.auth.capabilities import Capability, get_capabilities
from puretome.auth.context import AuthContext
from puretome.auth.jwt import (
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenPayload,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from puretome.auth.policies import Policy, require, require_auth

__all__ = [
    # Main interface
    "require",
    "require_auth",
    "AuthContext",
    "Policy",
    "Capability",
    "get_capabilities",
    # JWT
    "TokenPayload",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "create_access_token",
    "decode_token",
    "hash_password",
    "verify_password",
]
