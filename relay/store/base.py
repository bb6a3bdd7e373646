"""
Abstract store interfaces.

The engine and the ingress handlers depend only on these contracts.
Implementations raise StorageError on any backend fault.

Store methods are blocking; async callers go through run_blocking() so a
slow disk never stalls the event loop.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, Dict, List, Optional, TypeVar

from relay.store.types import FollowUp, InboundMessage, Resolution

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking store call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


class FollowUpStore(ABC):
    """Durable follow-up records. The engine is the sole writer of state."""

    @abstractmethod
    def create(self, from_number: str) -> FollowUp:
        """Open a pending follow-up with missed_at = now."""
        raise NotImplementedError

    @abstractmethod
    def list_pending(self, older_than: timedelta) -> List[FollowUp]:
        """
        Pending follow-ups whose missed_at is at least `older_than` in the past.

        Order is unspecified.
        """
        raise NotImplementedError

    @abstractmethod
    def mark_resolved(self, followup_id: int, resolution: Optional[Resolution] = None) -> bool:
        """
        Transition pending → resolved.

        Idempotent: returns False (no error) if the record is already terminal.
        """
        raise NotImplementedError

    @abstractmethod
    def record_failure(self, followup_id: int, error: str) -> int:
        """Count one failed notification attempt. Returns the new total."""
        raise NotImplementedError

    @abstractmethod
    def mark_failed(self, followup_id: int, error: str) -> bool:
        """Transition pending → failed. Idempotent like mark_resolved."""
        raise NotImplementedError

    @abstractmethod
    def get(self, followup_id: int) -> Optional[FollowUp]:
        raise NotImplementedError

    @abstractmethod
    def count_by_state(self) -> Dict[str, int]:
        raise NotImplementedError


class MessageLog(ABC):
    """Append-only log of inbound messages."""

    @abstractmethod
    def append(self, from_number: str, body: str) -> InboundMessage:
        raise NotImplementedError

    @abstractmethod
    def exists_since(
        self,
        from_number: str,
        since: datetime,
        exclude_body: Optional[str] = None,
    ) -> bool:
        """
        True iff `from_number` sent a message strictly after `since`.

        Messages whose body equals `exclude_body` (the missed-call sentinel)
        never count.
        """
        raise NotImplementedError
