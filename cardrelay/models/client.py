"""Client model for participants connected to the relay."""

import time
from dataclasses import dataclass, field
from enum import Enum

from cardrelay.models import events


class Role(Enum):
    """Which side of the relay a participant is on."""
    READER = "reader"
    CLIENT = "client"
    OBSERVER = "observer"
    UNKNOWN = "unknown"


@dataclass
class Client:
    """Represents a connected participant and its declared or inferred role."""

    id: str
    role: Role = Role.UNKNOWN
    connected_at: float = field(default_factory=time.time)

    def infer_role(self, event: str) -> bool:
        """
        Fix the role from the first role-specific event the participant emits.

        Returns True if the role changed. A known role is never overwritten.
        """
        if self.role is not Role.UNKNOWN:
            return False
        if event in events.READER_EVENTS:
            self.role = Role.READER
        elif event in events.CLIENT_EVENTS:
            self.role = Role.CLIENT
        else:
            return False
        return True

    def __repr__(self) -> str:
        return f"Client(id={self.id!r}, role={self.role.value!r})"
