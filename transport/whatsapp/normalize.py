"""
WhatsApp Input Normalization

PURE CONVERSION - NO STORE ACCESS, NO SENDING

Extracts every inbound message from a WhatsApp Cloud webhook payload.
- TEXT: body trimmed
- Any other type (audio, image, button, ...): empty body, still a message
- Status callbacks (sent/delivered/read) carry no messages → empty list
"""

from datetime import datetime, timezone
from typing import List

from relay.errors import ValidationError

from .schemas import MessageObject, NormalizedMessage, WhatsAppWebhookPayload


class NormalizationError(ValidationError):
    """Input normalization failed."""
    pass


def normalize_messages(
    payload: dict | WhatsAppWebhookPayload,
) -> List[NormalizedMessage]:
    """
    Convert a WhatsApp webhook payload into NormalizedMessages.

    Args:
        payload: Raw WhatsApp webhook payload

    Returns:
        Messages in payload order (possibly empty)

    Raises:
        NormalizationError: Payload structure is invalid
    """

    if isinstance(payload, WhatsAppWebhookPayload):
        payload = payload.model_dump()

    if not isinstance(payload, dict):
        raise NormalizationError("Payload is not a JSON object")

    try:
        entries = payload["entry"]
        raw_messages = []
        for entry in entries:
            for change in entry.get("changes", []):
                value = change.get("value") or {}
                if not isinstance(value, dict):
                    raise NormalizationError("Change value is not an object")
                messages = value.get("messages") or []
                if not isinstance(messages, list):
                    raise NormalizationError("'messages' is not a list")
                raw_messages.extend(messages)
    except (KeyError, TypeError, AttributeError) as e:
        raise NormalizationError(f"Invalid payload structure: {e}")

    return [_normalize_one(raw) for raw in raw_messages]


def _normalize_one(raw: dict) -> NormalizedMessage:
    """
    Normalize a single message object.

    Rules:
    - text.body trimmed, nothing else
    - non-text messages keep an empty body
    """
    try:
        message = MessageObject(**raw)
        timestamp = int(message.timestamp)
    except (TypeError, ValueError) as e:
        raise NormalizationError(f"Invalid message object: {e}")

    input_text = ""
    if message.type == "text":
        if not message.text or "body" not in message.text:
            raise NormalizationError("Text message missing 'text.body'")
        input_text = message.text["body"].strip()

    return NormalizedMessage(
        input_text=input_text,
        sender_id=message.from_,
        message_id=message.id,
        timestamp=datetime.fromtimestamp(timestamp, tz=timezone.utc),
        input_type=message.type,
    )
