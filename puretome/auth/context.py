"""
Auth context - who is calling and what their account may do.

This is the lightweight object passed to route handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from puretome.auth.capabilities import Capability, get_capabilities
from puretome.core.models import UserRole


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require_auth())):
            print(f"User {ctx.user_id} is a {ctx.role.value}")
    """

    user_id: str | None = None
    email: str | None = None
    role: UserRole | None = None

    _capabilities: set[Capability] = field(default_factory=set, repr=False)

    def __post_init__(self):
        self._capabilities = get_capabilities(self.role)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def capabilities(self) -> set[Capability]:
        return self._capabilities

    def can(self, capability: Capability | str) -> bool:
        """Check if the caller's role grants a capability."""
        if isinstance(capability, str):
            try:
                capability = Capability(capability)
            except ValueError:
                return False
        return capability in self._capabilities

    @classmethod
    def anonymous(cls) -> AuthContext:
        return cls()
