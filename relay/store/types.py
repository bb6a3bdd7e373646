"""
Relay data model.

FollowUp state machine:

    pending ──▶ resolved   (contact replied, or reminder delivered)
       │
       └─────▶ failed      (retry ceiling reached)

resolved and failed are terminal.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


class FollowUpState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class Resolution(str, Enum):
    REPLIED = "replied"        # Contact wrote back on their own
    NOTIFIED = "notified"      # Reminder delivered by the engine


@dataclass(frozen=True)
class InboundMessage:
    """Message received from a contact. Immutable once stored."""

    id: int
    from_number: str
    body: str
    received_at: datetime


@dataclass(frozen=True)
class FollowUp:
    """One missed-contact event awaiting a notify-or-skip decision."""

    id: int
    from_number: str
    missed_at: datetime
    state: FollowUpState = FollowUpState.PENDING
    attempts: int = 0                       # Failed reminder attempts
    last_error: Optional[str] = None
    resolved_at: Optional[datetime] = None  # Set on resolved or failed
    resolution: Optional[Resolution] = None

    @property
    def is_pending(self) -> bool:
        return self.state is FollowUpState.PENDING
