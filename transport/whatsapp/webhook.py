"""
WhatsApp Webhook Receiver

FastAPI router that receives WhatsApp Cloud messages and hands them to the
relay ingress. WhatsApp expects a fast 200: malformed payloads and
notification failures are logged and acknowledged, never surfaced.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from infra.bootstrap import RelayBootstrap, get_relay
from relay.errors import StorageError, ValidationError

from .normalize import NormalizationError, normalize_messages
from .security import verify_signature, verify_webhook_challenge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["WhatsApp Transport"])


# ============================================================================
# WEBHOOK CHALLENGE (Setup only)
# ============================================================================

@router.get("/whatsapp", response_class=PlainTextResponse)
async def whatsapp_webhook_challenge(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    relay: RelayBootstrap = Depends(get_relay),
) -> str:
    """
    Verify webhook subscription challenge from Meta.

    Returns:
        The challenge string (plain text)

    Raises:
        HTTPException(403): Invalid token
        HTTPException(400): Invalid mode
    """
    challenge = verify_webhook_challenge(
        hub_mode,
        hub_challenge,
        hub_verify_token,
        relay.config.whatsapp_verify_token,
    )
    logger.info("WhatsApp webhook verified")
    return challenge


# ============================================================================
# WEBHOOK RECEIVER (Inbound messages)
# ============================================================================

@router.post("/whatsapp")
async def whatsapp_webhook_receiver(
    request: Request,
    relay: RelayBootstrap = Depends(get_relay),
) -> dict[str, str]:
    """
    Receive WhatsApp messages via webhook.

    Flow:
    1. Get raw payload
    2. Verify signature when an app secret is configured (401/403)
    3. Normalize to NormalizedMessages
    4. Hand each message to the relay ingress

    Returns:
        {"status": "ok"}, or {"status": "ignored"} for unusable payloads
    """

    body = await request.body()

    # Step 1-2: security boundary
    app_secret = relay.config.whatsapp_app_secret
    if app_secret:
        try:
            await verify_signature(request, body, app_secret)
        except HTTPException as e:
            logger.warning(f"Signature verification failed: {e.detail}")
            raise

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Ignoring WhatsApp webhook with invalid JSON")
        return {"status": "ignored"}

    # Step 3: normalize
    try:
        messages = normalize_messages(payload)
    except NormalizationError as e:
        logger.warning(f"Ignoring malformed WhatsApp payload: {e}")
        return {"status": "ignored"}

    if not messages:
        # Status callbacks (sent, delivered, read)
        logger.debug("WhatsApp webhook without messages")
        return {"status": "ok"}

    # Step 4: ingress, one message at a time
    for message in messages:
        try:
            await relay.ingress.on_inbound_message(message.sender_id, message.input_text)
        except ValidationError as e:
            logger.warning(
                f"Dropping WhatsApp message: {e}",
                extra={"message_id": message.message_id}
            )
        except StorageError as e:
            logger.error(
                f"Could not record WhatsApp message: {e}",
                extra={"message_id": message.message_id}
            )

    # Always acknowledge (per WhatsApp requirements)
    return {"status": "ok"}


@router.get("/whatsapp/health")
async def whatsapp_health(relay: RelayBootstrap = Depends(get_relay)) -> dict:
    """WhatsApp transport configuration status."""
    problems = relay.notifier.config_problems()
    return {
        "status": "ok" if not problems else "misconfigured",
        "problems": problems,
        "signature_check": bool(relay.config.whatsapp_app_secret),
    }
