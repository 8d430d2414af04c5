from typing import Callable
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from clinic_lab.features.auth.models import Actor, ActorKind, Role
from clinic_lab.features.auth.service import AuthService
from clinic_lab.core.security import decode_token
from clinic_lab.core.logging import logger
from clinic_lab.shared.exceptions import CredentialsException, ForbiddenException


# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    """
    Dependency to get the authenticated caller.

    The token ``sub`` is the identity id and ``type`` names its collection
    (``user`` when absent).

    Raises:
        CredentialsException: If the token is invalid or the identity is gone
    """
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise CredentialsException("Invalid authentication credentials")

    actor_id = payload.get("sub")
    if actor_id is None:
        raise CredentialsException("Invalid authentication credentials")

    try:
        kind = ActorKind(payload.get("type", ActorKind.USER.value))
    except ValueError:
        raise CredentialsException("Invalid authentication credentials")

    actor = await AuthService.resolve_actor(kind, actor_id)
    if actor is None:
        raise CredentialsException("User not found")

    return actor


def require_roles(*roles: Role) -> Callable:
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        actor: Actor = Depends(require_roles(Role.RECEPTIONIST))
    """
    allowed = set(roles)

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            logger.warning(f"Role {actor.role.value} denied; requires one of {sorted(r.value for r in allowed)}")
            raise ForbiddenException("You do not have permission to perform this action")
        return actor

    return checker
