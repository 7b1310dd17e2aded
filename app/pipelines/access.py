"""
Caller access checks shared by the pipelines.

The acting user comes from the bearer token as ``{"id", "role"}``.
Clients may act on their own data, coaches on their clients' data, and
admins on everything.
"""

from typing import Any, Dict

from common.utils.exceptions import ForbiddenException
from app.services.checkin.client_identity import ClientIdentity, ClientIdentityResolver

CLIENT = "client"
COACH = "coach"
ADMIN = "admin"

ROLES = (CLIENT, COACH, ADMIN)


def is_admin(actor: Dict[str, Any]) -> bool:
    return actor.get("role") == ADMIN


async def ensure_client_access(
    identity_resolver: ClientIdentityResolver,
    actor: Dict[str, Any],
    client_id: str,
) -> ClientIdentity:
    """
    Resolve ``client_id`` and check the actor may see that client's check-ins.

    Raises:
        ForbiddenException: Actor is neither the client, their coach nor an admin
    """
    identity = await identity_resolver.resolve(client_id)
    role = actor.get("role")

    if role == ADMIN:
        return identity
    if role == CLIENT and identity.matches(actor.get("id")):
        return identity
    if role == COACH and identity.coach_id and identity.coach_id == actor.get("id"):
        return identity

    raise ForbiddenException(
        message="You do not have access to this client's check-ins",
        code="PERMISSION_DENIED",
    )
