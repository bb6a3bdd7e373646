"""
WhatsApp Notification Sender

Delivers relay notifications through the WhatsApp Cloud API.
No retries here: the reconciliation engine owns retry policy.
"""

import logging
from typing import List, Optional

import httpx

from relay.errors import NotifierConfigError, NotifierError
from relay.notifier import NotificationPayload, Notifier, SendReceipt

from .schemas import WhatsAppMessageResponse

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"


class WhatsAppSenderError(NotifierError):
    """Failed to deliver a message to WhatsApp."""
    pass


def build_message_body(to: str, payload: NotificationPayload) -> dict:
    """Cloud API request body for a text or template payload."""
    if payload.kind == "template":
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "template",
            "template": {
                "name": payload.template_name,
                "language": {"code": payload.template_language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [
                            {"type": "text", "text": value}
                            for value in payload.parameters
                        ],
                    }
                ],
            },
        }

    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": "text",
        "text": {
            "body": payload.text or ""
        }
    }


class WhatsAppNotifier(Notifier):
    """
    Notifier backed by the WhatsApp Cloud API.

    Raises NotifierConfigError when the token or phone number id is missing,
    or when Meta rejects the token; WhatsAppSenderError for everything else.
    """

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str],
        api_version: str = "v20.0",
        base_url: str = GRAPH_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    def config_problems(self) -> List[str]:
        problems = []
        if not self.access_token:
            problems.append("WHATSAPP_TOKEN not configured")
        if not self.phone_number_id:
            problems.append("WHATSAPP_PHONE_ID not configured")
        return problems

    async def send(self, to: str, payload: NotificationPayload) -> SendReceipt:
        problems = self.config_problems()
        if problems:
            raise NotifierConfigError("; ".join(problems))

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json=build_message_body(to, payload),
                    headers=headers,
                    timeout=self.timeout
                )
        except httpx.HTTPError as e:
            logger.error(
                f"HTTP request to WhatsApp failed: {e}",
                extra={"to": to, "error": str(e)}
            )
            raise WhatsAppSenderError(f"HTTP request failed: {e!r}")

        if response.status_code == 401:
            raise NotifierConfigError("WhatsApp rejected the access token (401)")

        if not response.is_success:
            error_text = response.text
            logger.error(
                f"WhatsApp API error: {response.status_code} - {error_text}",
                extra={
                    "status_code": response.status_code,
                    "error_body": error_text,
                }
            )
            raise WhatsAppSenderError(
                f"WhatsApp API returned {response.status_code}"
            )

        try:
            result = WhatsAppMessageResponse(**response.json())
        except (ValueError, TypeError):
            # Accepted (2xx) but unparseable: the message went out
            result = WhatsAppMessageResponse()

        message_id = result.messages[0].get("id") if result.messages else None
        logger.info(
            f"Message sent to {to}",
            extra={"to": to, "response_id": message_id}
        )
        return SendReceipt(to=to, message_id=message_id, backend="whatsapp")
