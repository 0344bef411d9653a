from __future__ import annotations

from dataclasses import dataclass

from purchasing.app.core.errors import PermissionDeniedError
from purchasing.app.db.models.core_types import Role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, as handed over by the identity provider."""

    user_id: int
    role: Role = Role.field

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


def require_admin(actor: Actor | None) -> Actor:
    if actor is None or not actor.is_admin:
        raise PermissionDeniedError("Administrator role required")
    return actor
