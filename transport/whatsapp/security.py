"""
WhatsApp Signature Verification

SECURITY BOUNDARY - Verify Meta HMAC signature and subscription challenge.
No store access. No retries.
"""

import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request, status


def compute_signature(app_secret: str, body: bytes) -> str:
    """X-Hub-Signature-256 value for `body`."""
    return "sha256=" + hmac.new(
        key=app_secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256
    ).hexdigest()


async def verify_signature(
    request: Request,
    body: bytes,
    app_secret: Optional[str],
) -> None:
    """
    Verify Meta HMAC-SHA256 signature on a WhatsApp webhook.

    WhatsApp sends:
    - X-Hub-Signature-256 header with HMAC
    - Request body

    Raises:
        HTTPException(401): Missing signature
        HTTPException(403): Invalid signature
        HTTPException(500): App secret not configured
    """

    signature = request.headers.get("X-Hub-Signature-256")
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Hub-Signature-256 header"
        )

    if not app_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="WHATSAPP_APP_SECRET not configured"
        )

    # Constant-time comparison
    if not hmac.compare_digest(signature, compute_signature(app_secret, body)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid signature"
        )


def verify_webhook_challenge(
    hub_mode: Optional[str],
    hub_challenge: Optional[str],
    hub_verify_token: Optional[str],
    expected_token: Optional[str],
) -> str:
    """
    Verify webhook subscription challenge from WhatsApp.

    WhatsApp calls GET /webhook/whatsapp with:
    - hub.mode=subscribe
    - hub.challenge=random_string
    - hub.verify_token=configured_token

    Returns:
        The challenge string to echo back

    Raises:
        HTTPException(400): Invalid mode
        HTTPException(403): Invalid or unconfigured token
    """

    if hub_mode != "subscribe":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid hub.mode"
        )

    if not expected_token or not hub_verify_token or not hmac.compare_digest(
        hub_verify_token, expected_token
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid hub.verify_token"
        )

    return hub_challenge or ""
