"""
Stub notifier for testing and offline development.

Records every send. Failures can be scripted per call.
"""

import logging
from collections import deque
from typing import Deque, List, Optional, Tuple

from .base import NotificationPayload, Notifier, SendReceipt

logger = logging.getLogger(__name__)


class StubNotifier(Notifier):
    """
    Deterministic fake notifier.

    `fail_with` queues exceptions raised by the next sends, in order.
    Once the queue is empty, sends succeed.
    """

    def __init__(self, failures: Optional[List[Exception]] = None):
        self.sent: List[Tuple[str, NotificationPayload]] = []
        self.calls = 0
        self._failures: Deque[Exception] = deque(failures or [])

    def fail_with(self, *errors: Exception) -> None:
        self._failures.extend(errors)

    async def send(self, to: str, payload: NotificationPayload) -> SendReceipt:
        self.calls += 1
        if self._failures:
            raise self._failures.popleft()

        self.sent.append((to, payload))
        logger.info(f"[stub] notification to {to} ({payload.kind})")
        return SendReceipt(to=to, message_id=f"stub-{self.calls}", backend="stub")
