"""Authenticated actors as handed over by the identity layer.

The core never authenticates anyone. Each command carries ``actor_id`` and
``actor_role``; role and ownership checks happen here and in the aggregates.
"""

from enum import Enum

from marketplace.errors import AuthorizationError


class ActorRole(Enum):
    BUYER = "buyer"
    VENDOR = "vendor"
    ADMIN = "admin"
    SYSTEM = "system"


def is_admin(role: str) -> bool:
    return role == ActorRole.ADMIN.value


def require_role(actor_role: str, *allowed: ActorRole) -> None:
    """Reject the call unless ``actor_role`` is one of ``allowed``."""
    if actor_role not in {r.value for r in allowed}:
        expected = ", ".join(r.value for r in allowed)
        raise AuthorizationError({"actor_role": [f"This action requires one of the roles: {expected}"]})
