"""
Notifier exports.
"""

from .base import NotificationPayload, Notifier, PayloadKind, SendReceipt
from .payloads import NotifyMode, PayloadFactory
from .stub import StubNotifier

__all__ = [
    "NotificationPayload",
    "Notifier",
    "PayloadKind",
    "SendReceipt",
    "NotifyMode",
    "PayloadFactory",
    "StubNotifier",
]
