"""
Notification payload catalogue.

Maps each notification kind to a payload according to deployment settings:

- missed_call: sent at call time by the voice webhook
- reminder: sent by the reconciliation tick
- simulation: sent when an inbound message carries the trigger keyword
- auto_reply: acknowledgement of ordinary inbound messages (optional)

In template mode, missed_call and reminder use the provider template whose
sole parameter is the scheduling link.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from .base import NotificationPayload

NotifyMode = Literal["text", "template"]

DEFAULT_MISSED_CALL_TEXT = (
    "👋 Bonjour ! Vous avez essayé de nous joindre et nous étions indisponibles.\n\n"
    "👉 Réservez un rendez-vous ici : {link}"
)
DEFAULT_REMINDER_TEXT = (
    "👋 Rebonjour ! Je reviens vers vous suite à votre appel manqué.\n\n"
    "👉 Réservez un créneau ici : {link}"
)
DEFAULT_SIMULATION_TEXT = (
    "👋 Bonjour ! (simulation) J'ai vu votre appel manqué.\n"
    "👉 Réservez un rendez-vous ici : {link}"
)
DEFAULT_AUTO_REPLY_TEXT = (
    "👋 Bonjour ! Merci pour votre message, je vous réponds dès que possible 😊"
)


@dataclass(frozen=True)
class PayloadFactory:
    """Builds payloads from configured texts, link and template."""

    scheduling_link: str
    mode: NotifyMode = "text"
    template_name: str = "missed_call_followup"
    template_language: str = "fr"
    missed_call_text: str = DEFAULT_MISSED_CALL_TEXT
    reminder_text: str = DEFAULT_REMINDER_TEXT
    simulation_text: str = DEFAULT_SIMULATION_TEXT
    auto_reply_text: str = DEFAULT_AUTO_REPLY_TEXT

    def _linked(self, text: str) -> NotificationPayload:
        if self.mode == "template":
            return NotificationPayload.from_template(
                self.template_name,
                self.template_language,
                [self.scheduling_link],
            )
        return NotificationPayload.from_text(text.format(link=self.scheduling_link))

    def missed_call(self) -> NotificationPayload:
        return self._linked(self.missed_call_text)

    def reminder(self) -> NotificationPayload:
        return self._linked(self.reminder_text)

    def simulation(self) -> NotificationPayload:
        return NotificationPayload.from_text(
            self.simulation_text.format(link=self.scheduling_link)
        )

    def auto_reply(self) -> Optional[NotificationPayload]:
        """None when auto-replies are disabled."""
        if not self.auto_reply_text:
            return None
        return NotificationPayload.from_text(self.auto_reply_text)
