"""
Relay storage exports.

Engine and ingress depend on the abstract contracts only.
"""

from .base import FollowUpStore, MessageLog, run_blocking
from .types import Clock, FollowUp, FollowUpState, InboundMessage, Resolution, utc_now
from .stub import InMemoryRelayStore
from .sqlite import SQLiteRelayStore

__all__ = [
    "FollowUpStore",
    "MessageLog",
    "run_blocking",
    "Clock",
    "FollowUp",
    "FollowUpState",
    "InboundMessage",
    "Resolution",
    "utc_now",
    "InMemoryRelayStore",
    "SQLiteRelayStore",
]
