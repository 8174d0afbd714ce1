# backend/app/core/permissions.py
"""
Capability-based authorization.

Every operation declares the capability it needs and calls ``authorize``
once. Roles are a closed set; ownership-scoped capabilities additionally
require the actor to be one of the resource owners unless the role is
privileged (admin, system).
"""

from dataclasses import dataclass
import logging
from typing import Dict, FrozenSet, Iterable, Optional

from .enums import ActorRole, Capability
from .exceptions import ForbiddenException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller."""

    id: str
    role: ActorRole

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


SYSTEM_ACTOR = Actor(id="system", role=ActorRole.SYSTEM)

PRIVILEGED_ROLES: FrozenSet[ActorRole] = frozenset({ActorRole.ADMIN, ActorRole.SYSTEM})

ROLE_CAPABILITIES: Dict[ActorRole, FrozenSet[Capability]] = {
    ActorRole.CLIENT: frozenset(
        {
            Capability.VIEW_AVAILABILITY,
            Capability.BOOK_SESSION,
            Capability.VIEW_SESSION,
            Capability.LIST_SESSIONS,
            Capability.CANCEL_SESSION,
            Capability.RATE_SESSION,
        }
    ),
    ActorRole.EXPERT: frozenset(
        {
            Capability.VIEW_AVAILABILITY,
            Capability.MANAGE_AVAILABILITY,
            Capability.VIEW_SESSION,
            Capability.LIST_SESSIONS,
            Capability.UPDATE_SESSION,
            Capability.COMPLETE_SESSION,
            Capability.CANCEL_SESSION,
        }
    ),
    ActorRole.ADMIN: frozenset(Capability) - {Capability.RATE_SESSION, Capability.BOOK_SESSION},
    ActorRole.SYSTEM: frozenset(
        {
            Capability.VIEW_AVAILABILITY,
            Capability.VIEW_SESSION,
            Capability.LIST_SESSIONS,
            Capability.COMPLETE_SESSION,
            Capability.REFUND_SESSION,
            Capability.REPORT_PAYMENT,
        }
    ),
}

# Capabilities that additionally require the actor to own the resource.
OWNERSHIP_SCOPED: FrozenSet[Capability] = frozenset(
    {
        Capability.MANAGE_AVAILABILITY,
        Capability.VIEW_SESSION,
        Capability.UPDATE_SESSION,
        Capability.COMPLETE_SESSION,
        Capability.CANCEL_SESSION,
        Capability.RATE_SESSION,
    }
)


def has_capability(role: ActorRole, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def authorize(
    actor: Actor,
    capability: Capability,
    owner_ids: Optional[Iterable[str]] = None,
) -> None:
    """
    Raise ForbiddenException unless ``actor`` may perform ``capability``.

    Args:
        actor: The caller
        capability: Required capability
        owner_ids: Account ids owning the target resource; checked for
            ownership-scoped capabilities held by non-privileged roles
    """
    if not has_capability(actor.role, capability):
        logger.info(
            "Denied %s for role %s",
            capability.value,
            actor.role.value,
            extra={"actor_id": actor.id},
        )
        raise ForbiddenException(
            f"Role '{actor.role.value}' may not {capability.value.replace('_', ' ')}",
            code="FORBIDDEN",
            details={"capability": capability.value},
        )

    if capability not in OWNERSHIP_SCOPED or actor.is_privileged:
        return

    owners = {owner for owner in (owner_ids or ()) if owner}
    if actor.id not in owners:
        logger.info(
            "Denied %s: actor %s does not own the resource",
            capability.value,
            actor.id,
        )
        raise ForbiddenException(
            "You do not have access to this resource",
            code="FORBIDDEN",
            details={"capability": capability.value},
        )
