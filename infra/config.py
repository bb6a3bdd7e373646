"""
Relay configuration.

Environment-based backend selection with sensible defaults:
- store: SQLite file under ./data
- notifier: WhatsApp Cloud API
- 60s grace window and tick interval (test values; production deployments
  should use minutes to hours for the grace window)
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal, Optional

from relay.engine import EngineSettings
from relay.ingress import IngressSettings
from relay.notifier import Notifier, NotifyMode, PayloadFactory, StubNotifier
from relay.notifier.payloads import (
    DEFAULT_AUTO_REPLY_TEXT,
    DEFAULT_MISSED_CALL_TEXT,
    DEFAULT_REMINDER_TEXT,
    DEFAULT_SIMULATION_TEXT,
)
from relay.phone import CountryRule
from relay.store import Clock, InMemoryRelayStore, SQLiteRelayStore

StoreBackendType = Literal["sqlite", "stub"]
NotifierBackendType = Literal["whatsapp", "stub"]


@dataclass
class RelayConfig:
    """Relay configuration from environment."""

    # Store
    store_backend: StoreBackendType
    db_path: str

    # Reconciliation
    grace_window_seconds: float
    tick_interval_seconds: float
    notify_timeout_seconds: float
    max_notify_attempts: int
    reconcile_concurrency: int

    # Notifier
    notifier_backend: NotifierBackendType
    whatsapp_token: Optional[str]
    whatsapp_phone_id: Optional[str]
    whatsapp_api_version: str
    whatsapp_verify_token: Optional[str]
    whatsapp_app_secret: Optional[str]

    # Payloads
    scheduling_link: str
    notify_mode: NotifyMode
    template_name: str
    template_language: str
    auto_reply_text: str

    # Ingress
    country_code: str
    trunk_prefix: str
    trigger_keyword: str
    missed_call_sentinel: str

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Load configuration from environment variables."""
        return cls(
            store_backend=os.getenv("STORE_BACKEND", "sqlite"),  # type: ignore
            db_path=os.getenv("DB_PATH", "./data/relay.db"),

            grace_window_seconds=float(os.getenv("GRACE_WINDOW_SECONDS", "60")),
            tick_interval_seconds=float(os.getenv("TICK_INTERVAL_SECONDS", "60")),
            notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "15")),
            max_notify_attempts=int(os.getenv("MAX_NOTIFY_ATTEMPTS", "10")),
            reconcile_concurrency=int(os.getenv("RECONCILE_CONCURRENCY", "1")),

            notifier_backend=os.getenv("NOTIFIER_BACKEND", "whatsapp"),  # type: ignore
            whatsapp_token=os.getenv("WHATSAPP_TOKEN") or None,
            whatsapp_phone_id=os.getenv("WHATSAPP_PHONE_ID") or None,
            whatsapp_api_version=os.getenv("WHATSAPP_API_VERSION", "v20.0"),
            whatsapp_verify_token=os.getenv("WHATSAPP_VERIFY_TOKEN") or None,
            whatsapp_app_secret=os.getenv("WHATSAPP_APP_SECRET") or None,

            scheduling_link=os.getenv("SCHEDULING_LINK", "https://calendly.com/your-link"),
            notify_mode=os.getenv("NOTIFY_MODE", "text"),  # type: ignore
            template_name=os.getenv("TEMPLATE_NAME", "missed_call_followup"),
            template_language=os.getenv("TEMPLATE_LANGUAGE", "fr"),
            auto_reply_text=os.getenv("AUTO_REPLY_TEXT", DEFAULT_AUTO_REPLY_TEXT),

            country_code=os.getenv("COUNTRY_CODE", "33"),
            trunk_prefix=os.getenv("TRUNK_PREFIX", "0"),
            trigger_keyword=os.getenv("TRIGGER_KEYWORD", "simulate_missed_call"),
            missed_call_sentinel=os.getenv("MISSED_CALL_SENTINEL", "__missed_call__"),
        )

    def create_store(self, clock: Optional[Clock] = None):
        """Store instance implementing both FollowUpStore and MessageLog."""
        if self.store_backend == "stub":
            return InMemoryRelayStore(clock=clock)
        return SQLiteRelayStore(self.db_path, clock=clock)

    def create_notifier(self) -> Notifier:
        """Create notifier instance based on configuration."""
        if self.notifier_backend == "stub":
            return StubNotifier()

        from transport.whatsapp.sender import WhatsAppNotifier

        return WhatsAppNotifier(
            access_token=self.whatsapp_token,
            phone_number_id=self.whatsapp_phone_id,
            api_version=self.whatsapp_api_version,
            timeout=self.notify_timeout_seconds,
        )

    def create_payloads(self) -> PayloadFactory:
        return PayloadFactory(
            scheduling_link=self.scheduling_link,
            mode=self.notify_mode if self.notify_mode == "template" else "text",
            template_name=self.template_name,
            template_language=self.template_language,
            missed_call_text=DEFAULT_MISSED_CALL_TEXT,
            reminder_text=DEFAULT_REMINDER_TEXT,
            simulation_text=DEFAULT_SIMULATION_TEXT,
            auto_reply_text=self.auto_reply_text,
        )

    def engine_settings(self) -> EngineSettings:
        return EngineSettings(
            grace_window=timedelta(seconds=self.grace_window_seconds),
            notify_timeout=self.notify_timeout_seconds,
            max_attempts=self.max_notify_attempts,
            max_concurrency=max(1, self.reconcile_concurrency),
            sentinel_body=self.missed_call_sentinel or None,
        )

    def ingress_settings(self) -> IngressSettings:
        return IngressSettings(
            country_rule=CountryRule(
                country_code=self.country_code,
                trunk_prefix=self.trunk_prefix,
            ),
            trigger_keyword=self.trigger_keyword or None,
            sentinel_body=self.missed_call_sentinel or None,
            notify_timeout=self.notify_timeout_seconds,
        )


def get_config() -> RelayConfig:
    """Read relay configuration from the current environment."""
    return RelayConfig.from_env()
