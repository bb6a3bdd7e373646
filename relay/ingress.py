"""
Event ingress handlers.

Turn provider events into store writes and immediate notifications.
Called by the HTTP routes; they never fail the webhook acknowledgement
because of a notification outcome.

    on_inbound_message: append to the log, then maybe open a follow-up
    on_missed_call:     open a follow-up, then notify right away
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from relay.errors import NotifierConfigError, NotifierError, StorageError
from relay.notifier import NotificationPayload, Notifier, PayloadFactory
from relay.phone import CountryRule, normalize_number
from relay.store import FollowUp, FollowUpStore, InboundMessage, MessageLog, run_blocking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngressSettings:
    country_rule: CountryRule = CountryRule()
    trigger_keyword: Optional[str] = "simulate_missed_call"
    sentinel_body: Optional[str] = "__missed_call__"
    notify_timeout: float = 15.0


@dataclass
class IngressResult:
    """What an ingress event produced."""

    from_number: str
    message: Optional[InboundMessage] = None
    followup: Optional[FollowUp] = None
    notified: bool = False


class IngressService:
    """Webhook-facing side of the relay."""

    def __init__(
        self,
        store: FollowUpStore,
        message_log: MessageLog,
        notifier: Notifier,
        payloads: PayloadFactory,
        settings: Optional[IngressSettings] = None,
    ):
        self.store = store
        self.message_log = message_log
        self.notifier = notifier
        self.payloads = payloads
        self.settings = settings or IngressSettings()

    def normalize(self, raw_number: str) -> str:
        """Raises ValidationError for unusable numbers."""
        return normalize_number(raw_number, self.settings.country_rule)

    def is_trigger(self, body: str) -> bool:
        keyword = self.settings.trigger_keyword
        return bool(keyword) and (body or "").strip().lower() == keyword.lower()

    async def on_inbound_message(self, raw_from: str, body: str) -> IngressResult:
        """
        Record an inbound message.

        The trigger keyword opens a follow-up (simulated missed call);
        anything else gets the optional auto-reply.

        Raises:
            ValidationError: Unusable sender number
            StorageError: Message could not be recorded
        """
        from_number = self.normalize(raw_from)
        message = await run_blocking(self.message_log.append, from_number, body or "")
        result = IngressResult(from_number=from_number, message=message)

        logger.info(f"Message received from {from_number}", extra={"message_id": message.id})

        if self.is_trigger(body):
            logger.info(f"Simulated missed call for {from_number}")
            result.followup = await run_blocking(self.store.create, from_number)
            result.notified = await self._notify(from_number, self.payloads.simulation())
            return result

        auto_reply = self.payloads.auto_reply()
        if auto_reply is not None:
            result.notified = await self._notify(from_number, auto_reply)
        return result

    async def on_missed_call(self, raw_from: str) -> IngressResult:
        """
        Open a follow-up for a missed call and send the first notification now.

        The follow-up stays pending; the reconciliation tick handles the
        reminder or the confirmation.

        Raises:
            ValidationError: Unusable caller number
            StorageError: Follow-up could not be created
        """
        from_number = self.normalize(raw_from)
        followup = await run_blocking(self.store.create, from_number)
        result = IngressResult(from_number=from_number, followup=followup)

        logger.info(f"Missed call from {from_number}", extra={"followup_id": followup.id})

        if self.settings.sentinel_body:
            try:
                result.message = await run_blocking(
                    self.message_log.append, from_number, self.settings.sentinel_body
                )
            except StorageError as e:
                # Audit entry only; the follow-up exists and still gets notified
                logger.error(
                    f"Could not log missed call from {from_number}: {e}",
                    extra={"followup_id": followup.id},
                )

        result.notified = await self._notify(from_number, self.payloads.missed_call())
        return result

    async def _notify(self, to: str, payload: NotificationPayload) -> bool:
        try:
            await asyncio.wait_for(
                self.notifier.send(to, payload),
                timeout=self.settings.notify_timeout,
            )
        except NotifierConfigError as e:
            logger.critical(f"Notifier misconfigured, cannot notify {to}: {e}")
            return False
        except (NotifierError, asyncio.TimeoutError) as e:
            logger.error(f"Notification to {to} failed: {str(e) or 'timed out'}")
            return False
        logger.info(f"Notification sent to {to}")
        return True
