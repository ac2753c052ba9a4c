"""
Authentication utilities for extracting the acting user from Cognito tokens.

The core never reads identity on its own: handlers resolve an Actor here and
pass it into every command.
"""
from dataclasses import dataclass
from typing import Optional

from .models import Role


@dataclass(frozen=True)
class Actor:
    """Resolved caller identity."""
    actor_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_worker(self) -> bool:
        return self.role == Role.WORKER


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_groups(event: dict) -> list:
    """Extract user groups (admin, worker) from Cognito claims."""
    try:
        groups = event['requestContext']['authorizer']['claims'].get('cognito:groups', '')
        if isinstance(groups, str):
            return [g.strip() for g in groups.split(',') if g.strip()]
        return groups or []
    except (KeyError, TypeError, AttributeError):
        return []


def is_admin(event: dict) -> bool:
    """Check if user belongs to admin group."""
    return Role.ADMIN in get_user_groups(event)


def is_worker(event: dict) -> bool:
    """Check if user belongs to worker group."""
    return Role.WORKER in get_user_groups(event)


def get_actor(event: dict) -> Optional[Actor]:
    """
    Resolve the (actor_id, role) pair for a request.
    Admin membership wins when a user is in both groups.
    Returns None when the caller is unauthenticated or has no known role.
    """
    sub = get_user_sub(event)
    if not sub:
        return None
    if is_admin(event):
        return Actor(sub, Role.ADMIN)
    if is_worker(event):
        return Actor(sub, Role.WORKER)
    return None
