"""
Twilio Voice Webhook Handler

Twilio posts a form-encoded request for every call forwarded to the relay
number. Each call is a missed call: open a follow-up, notify the caller on
WhatsApp, hang up.

Update Flow:
  webhook → parse form → ingress.on_missed_call → TwiML <Hangup/>

Twilio always gets TwiML back, whatever happened downstream.
"""

import logging
from typing import Any, Mapping, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from infra.bootstrap import RelayBootstrap, get_relay
from relay.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

voice_router = APIRouter(prefix="/twilio", tags=["Twilio Voice"])

HANGUP_TWIML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<Response><Hangup/></Response>"
)


class VoiceCall(BaseModel):
    """Fields of the Twilio voice webhook the relay uses."""
    from_number: str
    to_number: Optional[str] = None
    call_sid: Optional[str] = None


def parse_voice_form(form: Mapping[str, Any]) -> VoiceCall:
    """
    Build a VoiceCall from the parsed Twilio form.

    Raises:
        ValidationError: `From` missing or blank
    """
    def field(name: str) -> Optional[str]:
        value = form.get(name)
        return str(value) if value else None

    from_number = field("From")
    if not from_number or not from_number.strip():
        raise ValidationError("Voice webhook missing 'From'")

    return VoiceCall(
        from_number=from_number,
        to_number=field("To"),
        call_sid=field("CallSid"),
    )


def _twiml() -> Response:
    return Response(content=HANGUP_TWIML, media_type="text/xml")


@voice_router.post("/voice")
async def twilio_voice_webhook(
    request: Request,
    relay: RelayBootstrap = Depends(get_relay),
) -> Response:
    """
    Receive a forwarded call from Twilio.

    Expected form fields: From, To, CallSid

    Returns:
        TwiML hanging up the call
    """
    try:
        call = parse_voice_form(await request.form())
    except ValidationError as e:
        logger.warning(f"Dropping voice webhook: {e}")
        return _twiml()

    logger.info(
        f"Call received from {call.from_number}",
        extra={"call_sid": call.call_sid, "to": call.to_number}
    )

    try:
        result = await relay.ingress.on_missed_call(call.from_number)
    except ValidationError as e:
        logger.warning(f"Dropping call with unusable number: {e}", extra={"call_sid": call.call_sid})
    except StorageError as e:
        logger.error(f"Could not record missed call: {e}", extra={"call_sid": call.call_sid})
    else:
        if result.notified:
            logger.info(f"WhatsApp sent after call from {result.from_number}")

    return _twiml()
