"""WhatsApp Transport Layer - Module Exports"""

from .normalize import (
    NormalizationError,
    normalize_messages,
)
from .schemas import (
    MessageObject,
    NormalizedMessage,
    WhatsAppMessageResponse,
    WhatsAppWebhookPayload,
)
from .security import (
    compute_signature,
    verify_signature,
    verify_webhook_challenge,
)
from .sender import WhatsAppNotifier, WhatsAppSenderError, build_message_body
from .webhook import router

__all__ = [
    # Schemas
    "NormalizedMessage",
    "WhatsAppWebhookPayload",
    "MessageObject",
    "WhatsAppMessageResponse",
    # Normalization
    "normalize_messages",
    "NormalizationError",
    # Security
    "compute_signature",
    "verify_signature",
    "verify_webhook_challenge",
    # Sender
    "WhatsAppNotifier",
    "WhatsAppSenderError",
    "build_message_body",
    # Router
    "router",
]
