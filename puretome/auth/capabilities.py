"""
Capabilities granted by platform roles.

This defines WHAT an account may do regardless of any particular memoir.
Access to a specific memoir is decided by the access gate
(puretome.services.access), not here.
"""

from enum import Enum

from puretome.core.models import UserRole


class Capability(str, Enum):
    """Platform-level permissions checked by policies."""

    MEMOIR_CREATE = "memoir.create"
    ADMIN_ACCESS = "admin.access"


ROLE_CAPABILITIES: dict[UserRole, set[Capability]] = {
    UserRole.AUTHOR: {Capability.MEMOIR_CREATE},
    UserRole.AGENT: set(),
    UserRole.PUBLISHER: set(),
    UserRole.ADMIN: {Capability.ADMIN_ACCESS},
}


def get_capabilities(role: UserRole | None) -> set[Capability]:
    """All capabilities for a role."""
    if role is None:
        return set()
    return set(ROLE_CAPABILITIES.get(role, set()))
