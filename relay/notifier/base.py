"""
Notifier abstract interface.

Role: deliver one outbound notification to one normalized number.

Rules:
- Success returns a SendReceipt
- Transient failures raise NotifierError (retried next tick)
- Missing credentials raise NotifierConfigError (operator must act)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Literal, Optional

PayloadKind = Literal["text", "template"]


@dataclass(frozen=True)
class NotificationPayload:
    """
    Free text, or a provider-side template with ordered parameters.

    Both variants carry the scheduling link.
    """

    kind: PayloadKind
    text: Optional[str] = None
    template_name: Optional[str] = None
    template_language: Optional[str] = None
    parameters: List[str] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> "NotificationPayload":
        return cls(kind="text", text=text)

    @classmethod
    def from_template(cls, name: str, language: str, parameters: List[str]) -> "NotificationPayload":
        return cls(
            kind="template",
            template_name=name,
            template_language=language,
            parameters=list(parameters),
        )


@dataclass(frozen=True)
class SendReceipt:
    """Provider acknowledgement of an accepted message."""

    to: str
    message_id: Optional[str] = None
    backend: str = "unknown"


class Notifier(ABC):
    """
    Abstract notification boundary.
    Engine and ingress depend ONLY on this interface.
    """

    @abstractmethod
    async def send(self, to: str, payload: NotificationPayload) -> SendReceipt:
        """
        Send one notification.

        Args:
            to: Normalized contact number (digits only)
            payload: Text or template payload

        Returns:
            SendReceipt on success

        Raises:
            NotifierError: Delivery failed, may succeed later
            NotifierConfigError: Notifier cannot send until reconfigured
        """
        raise NotImplementedError

    def config_problems(self) -> List[str]:
        """Missing settings that would make every send fail. Empty when ready."""
        return []
