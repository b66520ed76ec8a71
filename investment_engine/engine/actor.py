"""Who is performing an action."""

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    INVESTOR = "investor"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole = ActorRole.INVESTOR

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}"


SYSTEM_ACTOR = Actor(id="lifecycle-engine", role=ActorRole.SYSTEM)
