"""
Aqua Assist - Caller identity and capabilities
Identity itself is owned by the user/session service; the engine only
receives the caller id and capability set and checks them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable

from aquaassist.core.exceptions import AuthorizationError


class Role(str, Enum):
    """Capabilities supplied by the identity service."""
    CITIZEN = "citizen"
    MUNICIPAL = "municipal"
    ADMIN = "admin"
    MODERATOR = "moderator"


MODERATION_ROLES = frozenset({Role.MODERATOR, Role.ADMIN, Role.MUNICIPAL})
MUNICIPAL_ROLES = frozenset({Role.MUNICIPAL, Role.ADMIN})
OVERRIDE_ROLES = frozenset({Role.MODERATOR, Role.ADMIN})
STATISTICS_ROLES = frozenset({Role.ADMIN, Role.MUNICIPAL, Role.MODERATOR})
ADMIN_ROLES = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""
    user_id: str
    roles: FrozenSet[Role] = field(default_factory=lambda: frozenset({Role.CITIZEN}))

    @classmethod
    def from_header(cls, user_id: str, roles_header: str = "") -> "Actor":
        """Build an actor from a comma separated roles string, ignoring unknown roles."""
        roles = set()
        for raw in (roles_header or "").split(","):
            raw = raw.strip().lower()
            if not raw:
                continue
            try:
                roles.add(Role(raw))
            except ValueError:
                continue
        return cls(user_id=user_id, roles=frozenset(roles or {Role.CITIZEN}))

    def has_any(self, roles: Iterable[Role]) -> bool:
        return bool(self.roles & frozenset(roles))


def require_roles(actor: Actor, allowed: Iterable[Role], operation: str) -> None:
    """Raise AuthorizationError unless the actor holds one of the allowed roles."""
    allowed = frozenset(allowed)
    if not actor.has_any(allowed):
        names = ", ".join(sorted(r.value for r in allowed))
        raise AuthorizationError(f"{operation} requires one of: {names}")
