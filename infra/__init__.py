"""
Infrastructure module exports.

Configuration and bootstrap for the relay components.
"""

from .config import RelayConfig, get_config, StoreBackendType, NotifierBackendType
from .bootstrap import RelayBootstrap, get_relay

__all__ = [
    "RelayConfig",
    "get_config",
    "StoreBackendType",
    "NotifierBackendType",
    "RelayBootstrap",
    "get_relay",
]
