"""
Operator identity and role enforcement.

Roles come from the users table: 'admin' may change thresholds, 'ops' and
'admin' may create and route leads, 'viewer' is read-only. Reads still
need a signed-in operator because queue rows carry owner names and phones.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import PermissionDenied

logger = logging.getLogger(__name__)

ROLES = ("admin", "ops", "viewer")


@dataclass(frozen=True)
class Operator:
    """A signed-in console user."""
    id: str
    email: str
    role: str


def require_role(operator: Optional[Operator], allowed: Iterable[str], action: str = "") -> Operator:
    """Raise PermissionDenied unless the operator holds one of the allowed roles."""
    allowed = tuple(allowed)

    if operator is None:
        logger.warning(f"[AUDIT] Unauthenticated attempt to {action or 'perform a protected action'}")
        raise PermissionDenied("Authentication required")

    if operator.role not in allowed:
        logger.warning(f"[AUDIT] {operator.email} ({operator.role}) denied: {action}")
        raise PermissionDenied(
            f"Insufficient permissions. Required: {' or '.join(allowed)}",
            {"role": operator.role, "action": action},
        )

    return operator


def require_read_access(operator: Optional[Operator], action: str = "") -> Operator:
    return require_role(operator, ROLES, action)


def require_write_access(operator: Optional[Operator], action: str = "") -> Operator:
    return require_role(operator, ("admin", "ops"), action)


def require_admin_access(operator: Optional[Operator], action: str = "") -> Operator:
    return require_role(operator, ("admin",), action)


def resolve_operator(client, access_token: Optional[str]) -> Optional[Operator]:
    """Map a Supabase access token to an Operator, or None if unknown."""
    if not access_token:
        return None

    user = client.get_auth_user(access_token)
    if not user or not user.get("id"):
        logger.info("[AUDIT] Auth: no active session for token")
        return None

    profile = client.get_user_profile(user["id"])
    if not profile:
        logger.warning(f"[AUDIT] Auth: no profile row for user {user['id']}")
        return None

    role = profile.get("role")
    if role not in ROLES:
        logger.warning(f"[AUDIT] Auth: unknown role '{role}' for user {user['id']}")
        return None

    return Operator(
        id=str(profile["id"]),
        email=profile.get("email") or user.get("email") or "",
        role=role,
    )
