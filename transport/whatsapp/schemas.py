"""
WhatsApp Transport Layer - Pydantic Schemas

PURE DATA MODELS - NO LOGIC
Only defines the contract between WhatsApp Cloud API and the relay.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# NORMALIZED MESSAGE (THE CONTRACT)
# ============================================================================

class NormalizedMessage(BaseModel):
    """
    One inbound WhatsApp message, reduced to what the relay consumes.

    sender_id is the raw provider number; the relay canonicalizes it.
    """

    input_text: str = Field(
        ...,
        description="Message text. Empty for media and other non-text types."
    )
    sender_id: str = Field(..., description="WhatsApp sender number (wa_id)")
    message_id: str = Field(..., description="Unique WhatsApp message ID")
    timestamp: datetime = Field(..., description="Provider timestamp UTC")
    input_type: str = Field(..., description="WhatsApp message type (text, audio, ...)")

    class Config:
        """Pydantic config."""
        frozen = True


# ============================================================================
# WHATSAPP WEBHOOK PAYLOAD SCHEMAS (INPUT)
# ============================================================================

class MessageObject(BaseModel):
    """A single WhatsApp message."""
    from_: str = Field(..., alias="from")
    id: str
    timestamp: str
    type: str

    text: Optional[dict[str, str]] = None

    class Config:
        populate_by_name = True
        extra = "allow"  # audio, image, interactive, ...


class WhatsAppWebhookPayload(BaseModel):
    """
    Full WhatsApp webhook payload.

    ref: https://developers.facebook.com/docs/whatsapp/cloud-api/webhooks/payload-example
    """

    object: str = Field(..., description="Always 'whatsapp_business_account'")
    entry: list[dict] = Field(..., description="Webhook entries")

    class Config:
        extra = "allow"  # WhatsApp may add fields


# ============================================================================
# WHATSAPP API RESPONSE (OUTPUT)
# ============================================================================

class WhatsAppMessageResponse(BaseModel):
    """Response from WhatsApp Cloud API when sending a message."""

    messaging_product: str = Field(default="whatsapp")
    contacts: list[dict[str, str]] = Field(default_factory=list)  # [{"input": "336...", "wa_id": "336..."}]
    messages: list[dict[str, str]] = Field(default_factory=list)  # [{"id": "wamid.xxx"}]

    class Config:
        extra = "allow"
