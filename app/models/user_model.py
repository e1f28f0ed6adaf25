from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    ADMINISTRATOR = "Administrator"
    MODERATOR = "Moderator"
    USER = "User"


STAFF_ROLES = [Role.ADMINISTRATOR.value, Role.MODERATOR.value]


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as handed over by the HTTP layer."""

    id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return Role.ADMINISTRATOR.value in self.roles

    @property
    def is_moderator(self) -> bool:
        return Role.MODERATOR.value in self.roles
