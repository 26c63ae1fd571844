"""Domain models for the smbclient command queue."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CommandState(str, Enum):
    """Lifecycle states of a submitted command."""

    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SessionState(str, Enum):
    """States of one pseudo-terminal smbclient session."""

    STARTING = "starting"
    IDLE = "idle"
    AWAITING = "awaiting"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(slots=True)
class CommandRequest:
    """One command line queued for a session driver."""

    id: int
    payload: str
    state: CommandState = CommandState.WAITING
    interactive: bool = False
    worker: int | None = None


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Classified outcome of one executed command."""

    id: int
    payload: str
    success: bool
    message: str

    def as_pair(self) -> tuple[bool, str]:
        return self.success, self.message
