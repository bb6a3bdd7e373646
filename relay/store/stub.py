"""
In-memory relay store for tests and local development.

Deterministic, no external dependencies. Implements both FollowUpStore and
MessageLog so ingress and engine can share one instance.
"""

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from relay.store.base import FollowUpStore, MessageLog
from relay.store.types import (
    Clock,
    FollowUp,
    FollowUpState,
    InboundMessage,
    Resolution,
    utc_now,
)


class InMemoryRelayStore(FollowUpStore, MessageLog):
    """
    Dict-backed store.

    Every operation runs under one lock so a record is never observed
    half-updated by a concurrent ingress request.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self.followups: Dict[int, FollowUp] = {}
        self.messages: List[InboundMessage] = []
        self._next_followup_id = 1
        self._last_received_at: Optional[datetime] = None

    # Follow-ups

    def create(self, from_number: str) -> FollowUp:
        with self._lock:
            followup = FollowUp(
                id=self._next_followup_id,
                from_number=from_number,
                missed_at=self._clock(),
            )
            self.followups[followup.id] = followup
            self._next_followup_id += 1
            return followup

    def list_pending(self, older_than: timedelta) -> List[FollowUp]:
        with self._lock:
            cutoff = self._clock() - older_than
            return [
                f for f in self.followups.values()
                if f.is_pending and f.missed_at <= cutoff
            ]

    def mark_resolved(self, followup_id: int, resolution: Optional[Resolution] = None) -> bool:
        with self._lock:
            followup = self.followups.get(followup_id)
            if followup is None or not followup.is_pending:
                return False
            self.followups[followup_id] = replace(
                followup,
                state=FollowUpState.RESOLVED,
                resolved_at=self._clock(),
                resolution=resolution,
            )
            return True

    def record_failure(self, followup_id: int, error: str) -> int:
        with self._lock:
            followup = self.followups.get(followup_id)
            if followup is None:
                return 0
            updated = replace(followup, attempts=followup.attempts + 1, last_error=error)
            self.followups[followup_id] = updated
            return updated.attempts

    def mark_failed(self, followup_id: int, error: str) -> bool:
        with self._lock:
            followup = self.followups.get(followup_id)
            if followup is None or not followup.is_pending:
                return False
            self.followups[followup_id] = replace(
                followup,
                state=FollowUpState.FAILED,
                last_error=error,
                resolved_at=self._clock(),
            )
            return True

    def get(self, followup_id: int) -> Optional[FollowUp]:
        with self._lock:
            return self.followups.get(followup_id)

    def count_by_state(self) -> Dict[str, int]:
        with self._lock:
            counts = {state.value: 0 for state in FollowUpState}
            for followup in self.followups.values():
                counts[followup.state.value] += 1
            return counts

    # Message log

    def append(self, from_number: str, body: str) -> InboundMessage:
        with self._lock:
            received_at = self._clock()
            if self._last_received_at is not None and received_at < self._last_received_at:
                received_at = self._last_received_at
            self._last_received_at = received_at

            message = InboundMessage(
                id=len(self.messages) + 1,
                from_number=from_number,
                body=body or "",
                received_at=received_at,
            )
            self.messages.append(message)
            return message

    def exists_since(
        self,
        from_number: str,
        since: datetime,
        exclude_body: Optional[str] = None,
    ) -> bool:
        with self._lock:
            return any(
                m.from_number == from_number
                and m.received_at > since
                and (exclude_body is None or m.body != exclude_body)
                for m in self.messages
            )
