"""Explicit caller context handed to every service operation."""

from dataclasses import dataclass
from typing import Iterable, Optional

from .enums import Role


@dataclass(frozen=True)
class RequestContext:
    """Identity supplied by the upstream auth collaborator."""

    user_id: str
    email: str
    role: Role = Role.USER

    @classmethod
    def from_raw(cls, user_id: str, email: str, role: Optional[str]) -> "RequestContext":
        return cls(user_id=user_id, email=email, role=Role.parse(role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return self.role.value in {r.lower() for r in roles}
