"""
Reconciliation Engine Tests

Covers the notify-or-skip decision, failure containment, the retry
ceiling and the single-flight guard.
"""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from relay.engine import EngineSettings, ReconciliationEngine, TickReport
from relay.errors import NotifierConfigError, NotifierError, StorageError
from relay.notifier import NotificationPayload, Notifier, SendReceipt, StubNotifier
from relay.store import FollowUpState, InMemoryRelayStore, Resolution

NUMBER = "33612345678"


def make_engine(store, notifier, payloads, **overrides):
    settings = EngineSettings(**{"grace_window": timedelta(seconds=60), **overrides})
    return ReconciliationEngine(store, store, notifier, payloads, settings)


class SlowNotifier(Notifier):
    """Blocks until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def send(self, to: str, payload: NotificationPayload) -> SendReceipt:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return SendReceipt(to=to, backend="slow")


class HangingNotifier(Notifier):
    async def send(self, to: str, payload: NotificationPayload) -> SendReceipt:
        await asyncio.sleep(3600)
        return SendReceipt(to=to)


class TestDecision:
    """Reply → skip; no reply → notify."""

    @pytest.mark.asyncio
    async def test_reply_resolves_without_notifying(self, store, clock, notifier, payloads):
        followup = store.create(NUMBER)
        clock.advance(30)
        store.append(NUMBER, "hello")
        clock.advance(60)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert notifier.calls == 0
        assert report.replied == 1
        resolved = store.get(followup.id)
        assert resolved.state is FollowUpState.RESOLVED
        assert resolved.resolution is Resolution.REPLIED

    @pytest.mark.asyncio
    async def test_no_reply_sends_reminder_then_resolves(self, store, clock, notifier, payloads):
        followup = store.create(NUMBER)
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert notifier.sent == [(NUMBER, payloads.reminder())]
        assert report.notified == 1
        resolved = store.get(followup.id)
        assert resolved.state is FollowUpState.RESOLVED
        assert resolved.resolution is Resolution.NOTIFIED

    @pytest.mark.asyncio
    async def test_sentinel_entry_is_not_a_reply(self, store, clock, notifier, payloads):
        store.create(NUMBER)
        clock.advance(1)
        store.append(NUMBER, "__missed_call__")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert report.notified == 1
        assert notifier.calls == 1

    @pytest.mark.asyncio
    async def test_sentinel_counts_when_exclusion_disabled(self, store, clock, notifier, payloads):
        store.create(NUMBER)
        clock.advance(1)
        store.append(NUMBER, "__missed_call__")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads, sentinel_body=None).run_tick()

        assert report.replied == 1
        assert notifier.calls == 0

    @pytest.mark.asyncio
    async def test_message_before_missed_call_is_not_a_reply(self, store, clock, notifier, payloads):
        store.append(NUMBER, "earlier conversation")
        clock.advance(10)
        store.create(NUMBER)
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert report.notified == 1

    @pytest.mark.asyncio
    async def test_young_followup_untouched(self, store, clock, notifier, payloads):
        followup = store.create(NUMBER)
        clock.advance(30)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert report.selected == 0
        assert notifier.calls == 0
        assert store.get(followup.id).is_pending

    @pytest.mark.asyncio
    async def test_resolved_followup_never_notified_again(self, store, clock, notifier, payloads):
        store.create(NUMBER)
        clock.advance(90)
        engine = make_engine(store, notifier, payloads)

        await engine.run_tick()
        clock.advance(60)
        second = await engine.run_tick()

        assert notifier.calls == 1
        assert second.selected == 0


class TestFailureHandling:
    """One record's failure never aborts the others."""

    @pytest.mark.asyncio
    async def test_notifier_failure_leaves_record_pending(self, store, clock, payloads):
        notifier = StubNotifier(failures=[NotifierError("network down")])
        followup = store.create(NUMBER)
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert report.failed == 1
        pending = store.get(followup.id)
        assert pending.is_pending
        assert pending.attempts == 1
        assert pending.last_error == "network down"

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_remaining_records(self, store, clock, payloads):
        notifier = StubNotifier(failures=[NotifierError("rejected")])
        first = store.create("33600000001")
        second = store.create("33600000002")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert notifier.calls == 2
        assert report.failed == 1
        assert report.notified == 1
        states = {store.get(first.id).state, store.get(second.id).state}
        assert states == {FollowUpState.PENDING, FollowUpState.RESOLVED}

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_abort_remaining_records(self, store, clock, payloads):
        notifier = StubNotifier(failures=[RuntimeError("unexpected provider bug")])
        first = store.create("33600000001")
        second = store.create("33600000002")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert notifier.calls == 2
        assert report.errors == 1
        assert report.notified == 1
        states = {store.get(first.id).state, store.get(second.id).state}
        assert states == {FollowUpState.PENDING, FollowUpState.RESOLVED}

    @pytest.mark.asyncio
    async def test_unexpected_store_error_contained(self, clock, notifier, payloads):
        store = InMemoryRelayStore(clock=clock)
        followup = store.create(NUMBER)
        clock.advance(90)
        log = MagicMock()
        log.exists_since.side_effect = [KeyError("schema drift")]

        report = await ReconciliationEngine(store, log, notifier, payloads).run_tick()

        assert report.errors == 1
        assert notifier.calls == 0
        assert store.get(followup.id).is_pending

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, store, clock, payloads):
        followup = store.create(NUMBER)
        clock.advance(90)
        engine = make_engine(store, HangingNotifier(), payloads, notify_timeout=0.01)

        report = await engine.run_tick()

        assert report.failed == 1
        assert store.get(followup.id).attempts == 1
        assert "timed out" in store.get(followup.id).last_error

    @pytest.mark.asyncio
    async def test_retry_ceiling_moves_record_to_failed(self, store, clock, payloads):
        notifier = StubNotifier(failures=[NotifierError("invalid recipient")] * 3)
        followup = store.create(NUMBER)
        clock.advance(90)
        engine = make_engine(store, notifier, payloads, max_attempts=3)

        reports = [await engine.run_tick() for _ in range(4)]

        assert notifier.calls == 3
        assert reports[2].exhausted == 1
        assert reports[3].selected == 0
        failed = store.get(followup.id)
        assert failed.state is FollowUpState.FAILED
        assert failed.attempts == 3

    @pytest.mark.asyncio
    async def test_zero_ceiling_retries_indefinitely(self, store, clock, payloads):
        notifier = StubNotifier(failures=[NotifierError("flaky")] * 15)
        followup = store.create(NUMBER)
        clock.advance(90)
        engine = make_engine(store, notifier, payloads, max_attempts=0)

        for _ in range(15):
            await engine.run_tick()

        assert store.get(followup.id).is_pending
        assert store.get(followup.id).attempts == 15

    @pytest.mark.asyncio
    async def test_config_error_suspends_tick_without_consuming_attempts(self, store, clock, payloads):
        notifier = StubNotifier(failures=[NotifierConfigError("WHATSAPP_TOKEN not configured")])
        first = store.create("33600000001")
        second = store.create("33600000002")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert notifier.calls == 1
        assert report.failed == 0
        assert store.get(first.id).attempts == 0
        assert store.get(second.id).attempts == 0
        assert store.get(first.id).is_pending and store.get(second.id).is_pending

    @pytest.mark.asyncio
    async def test_config_error_still_resolves_replied_records(self, clock, payloads):
        store = InMemoryRelayStore(clock=clock)
        notifier = StubNotifier(failures=[NotifierConfigError("missing phone id")])
        store.create("33600000001")
        replied = store.create("33600000002")
        clock.advance(5)
        store.append("33600000002", "call me back")
        clock.advance(90)

        report = await make_engine(store, notifier, payloads).run_tick()

        assert report.replied == 1
        assert store.get(replied.id).state is FollowUpState.RESOLVED


class TestStorageFaults:
    """Storage errors are contained per record or skip the tick."""

    @pytest.mark.asyncio
    async def test_pending_query_failure_skips_tick(self, notifier, payloads):
        store = MagicMock()
        store.list_pending.side_effect = StorageError("database is locked")

        report = await ReconciliationEngine(store, store, notifier, payloads).run_tick()

        assert report.aborted is True
        assert notifier.calls == 0

    @pytest.mark.asyncio
    async def test_reply_lookup_failure_keeps_record_pending(self, clock, notifier, payloads):
        store = InMemoryRelayStore(clock=clock)
        followup = store.create(NUMBER)
        clock.advance(90)
        log = MagicMock()
        log.exists_since.side_effect = StorageError("disk I/O error")

        engine = ReconciliationEngine(store, log, notifier, payloads)
        report = await engine.run_tick()

        assert report.errors == 1
        assert notifier.calls == 0
        assert store.get(followup.id).is_pending

    @pytest.mark.asyncio
    async def test_resolve_failure_retried_next_tick(self, clock, notifier, payloads):
        store = InMemoryRelayStore(clock=clock)
        followup = store.create(NUMBER)
        clock.advance(90)
        real_mark_resolved = store.mark_resolved
        store.mark_resolved = MagicMock(side_effect=StorageError("readonly database"))

        engine = make_engine(store, notifier, payloads)
        first = await engine.run_tick()
        assert first.errors == 1
        assert store.get(followup.id).is_pending

        store.mark_resolved = real_mark_resolved
        second = await engine.run_tick()
        assert second.notified == 1
        assert store.get(followup.id).state is FollowUpState.RESOLVED


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, clock, payloads):
        store = InMemoryRelayStore(clock=clock)
        store.create(NUMBER)
        clock.advance(90)
        notifier = SlowNotifier()
        engine = make_engine(store, notifier, payloads)

        running = asyncio.create_task(engine.run_tick())
        await notifier.started.wait()

        overlapping = await engine.run_tick()
        assert overlapping.skipped is True
        assert engine.running is True

        notifier.release.set()
        finished = await running
        assert finished.notified == 1
        assert notifier.calls == 1

    @pytest.mark.asyncio
    async def test_stop_event_finishes_current_record_only(self, clock, payloads):
        store = InMemoryRelayStore(clock=clock)
        first = store.create("33600000001")
        second = store.create("33600000002")
        clock.advance(90)
        notifier = SlowNotifier()
        engine = make_engine(store, notifier, payloads)
        stop = asyncio.Event()

        running = asyncio.create_task(engine.run_tick(stop))
        await notifier.started.wait()
        stop.set()
        notifier.release.set()
        report = await running

        assert notifier.calls == 1
        assert report.notified == 1
        assert store.get(first.id).state is FollowUpState.RESOLVED
        assert store.get(second.id).is_pending

    @pytest.mark.asyncio
    async def test_bounded_fan_out_processes_each_id_once(self, clock, notifier, payloads):
        store = InMemoryRelayStore(clock=clock)
        ids = [store.create(f"3360000000{i}").id for i in range(5)]
        clock.advance(90)
        duplicate = store.get(ids[0])
        store.list_pending = MagicMock(return_value=[store.get(i) for i in ids] + [duplicate])

        engine = make_engine(store, notifier, payloads, max_concurrency=3)
        report = await engine.run_tick()

        assert report.selected == 5
        assert notifier.calls == 5
        assert sorted(to for to, _ in notifier.sent) == sorted(f"3360000000{i}" for i in range(5))


class TestTickReport:

    def test_as_dict_contains_all_counters(self):
        report = TickReport(selected=2, notified=1, replied=1)
        assert report.as_dict() == {
            "selected": 2,
            "replied": 1,
            "notified": 1,
            "failed": 0,
            "exhausted": 0,
            "errors": 0,
            "skipped": False,
            "aborted": False,
        }
