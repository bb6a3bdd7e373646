"""
Relay error taxonomy.

- StorageError: transient fault against the durable store (retry next tick)
- NotifierError: transient delivery failure (retry next tick)
- NotifierConfigError: missing credentials or identifiers (operator must fix)
- ValidationError: malformed inbound payload (drop and acknowledge)
"""


class RelayError(Exception):
    """Base class for relay failures."""
    pass


class StorageError(RelayError):
    """Follow-up store or message log operation failed."""
    pass


class NotifierError(RelayError):
    """Outbound notification could not be delivered."""
    pass


class NotifierConfigError(RelayError):
    """Notifier is missing configuration and cannot send anything."""
    pass


class ValidationError(RelayError):
    """Inbound event payload is malformed."""
    pass
