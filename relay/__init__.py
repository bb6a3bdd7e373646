"""
Missed-call relay core.

Follow-up store, message log, reconciliation engine and its scheduler.
Transport layers import from here; nothing here imports a transport.
"""

from .engine import EngineSettings, ReconciliationEngine, TickReport
from .errors import (
    NotifierConfigError,
    NotifierError,
    RelayError,
    StorageError,
    ValidationError,
)
from .ingress import IngressResult, IngressService, IngressSettings
from .phone import CountryRule, normalize_number
from .scheduler import ReconciliationScheduler

__all__ = [
    "EngineSettings",
    "ReconciliationEngine",
    "TickReport",
    "RelayError",
    "StorageError",
    "NotifierError",
    "NotifierConfigError",
    "ValidationError",
    "IngressResult",
    "IngressService",
    "IngressSettings",
    "CountryRule",
    "normalize_number",
    "ReconciliationScheduler",
]
