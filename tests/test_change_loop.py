from __future__ import annotations

import asyncio
from typing import Optional

from core.activity import ActivityTracker
from core.change_loop import ChangeLoop, EvictionCycle, LoopState
from core.config import ActivityConfig, LoopConfig
from core.models import ScanResult


class FakeSubscription:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeDocument:
    def __init__(self, root_after: Optional[int] = 0) -> None:
        self.root_after = root_after
        self.locate_calls = 0
        self.callback = None
        self.subscribed_root = None
        self.subscriptions: list[FakeSubscription] = []

    def locate_root(self):
        self.locate_calls += 1
        if self.root_after is None or self.locate_calls <= self.root_after:
            return None
        return "chat-root"

    def fallback_root(self):
        return "body"

    def subscribe(self, root, callback) -> FakeSubscription:
        self.subscribed_root = root
        self.callback = callback
        self.subscriptions.append(FakeSubscription())
        return self.subscriptions[-1]


class FakeReconciler:
    def __init__(self, fail: bool = False) -> None:
        self.roots: list = []
        self.fail = fail

    def reconcile(self, root) -> ScanResult:
        self.roots.append(root)
        if self.fail:
            raise RuntimeError("boom")
        return ScanResult(checked=1, marked=0)


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _ready_after(polls: int):
    state = {"calls": 0}

    def probe() -> bool:
        state["calls"] += 1
        return state["calls"] > polls

    return probe


def test_start_runs_initial_pass_and_observes() -> None:
    document = FakeDocument()
    reconciler = FakeReconciler()
    sleep = FakeSleep()
    loop = ChangeLoop(document, reconciler, sleep=sleep)

    assert loop.state is LoopState.IDLE
    asyncio.run(loop.start())

    assert loop.state is LoopState.OBSERVING
    assert reconciler.roots == ["chat-root"]
    assert document.subscribed_root == "chat-root"
    assert loop.passes == 1
    assert not loop.degraded
    assert sleep.delays == []


def test_waits_for_classifier_then_root() -> None:
    document = FakeDocument(root_after=2)
    reconciler = FakeReconciler()
    sleep = FakeSleep()
    config = LoopConfig(classifier_retry_delay=0.1, root_retry_delay=0.5, max_root_attempts=5)
    loop = ChangeLoop(document, reconciler, config=config, is_classifier_ready=_ready_after(3), sleep=sleep)

    asyncio.run(loop.start())

    assert sleep.delays == [0.1, 0.1, 0.1, 0.5, 0.5]
    assert loop.root == "chat-root"
    assert reconciler.roots == ["chat-root"]


def test_falls_back_to_document_root_when_chat_root_missing() -> None:
    document = FakeDocument(root_after=None)
    reconciler = FakeReconciler()
    sleep = FakeSleep()
    loop = ChangeLoop(document, reconciler, config=LoopConfig(max_root_attempts=3), sleep=sleep)

    asyncio.run(loop.start())

    assert loop.degraded
    assert loop.root == "body"
    assert document.locate_calls == 3
    assert sleep.delays == [0.5, 0.5]
    assert document.subscribed_root == "body"
    assert loop.state is LoopState.OBSERVING


def test_every_mutation_batch_triggers_full_pass() -> None:
    document = FakeDocument()
    reconciler = FakeReconciler()
    loop = ChangeLoop(document, reconciler, sleep=FakeSleep())
    asyncio.run(loop.start())

    document.callback(["node-a"])
    document.callback(["node-b", "node-c"])

    assert loop.passes == 3
    assert reconciler.roots == ["chat-root"] * 3


def test_failing_pass_in_callback_does_not_escape() -> None:
    document = FakeDocument()
    reconciler = FakeReconciler()
    loop = ChangeLoop(document, reconciler, sleep=FakeSleep())
    asyncio.run(loop.start())

    reconciler.fail = True
    document.callback(["node"])

    assert loop.state is LoopState.OBSERVING


def test_stop_cancels_subscription() -> None:
    document = FakeDocument()
    loop = ChangeLoop(document, FakeReconciler(), sleep=FakeSleep())
    asyncio.run(loop.start())

    loop.stop()

    assert document.subscriptions[-1].cancelled
    assert loop.state is LoopState.IDLE


def test_eviction_cycle_runs_on_cleanup_period() -> None:
    tracker = ActivityTracker(ActivityConfig(cleanup_interval_ms=60_000))
    tracker.record_and_check("old", 0)
    tracker.record_and_check("fresh", 100_000)
    sleep = FakeSleep()
    cycle = EvictionCycle(tracker, clock=lambda: 121_000, sleep=sleep)

    asyncio.run(cycle.run(cycles=2))

    assert sleep.delays == [60.0, 60.0]
    assert "old" not in tracker
    assert "fresh" in tracker


def test_degraded_loop_switches_to_chat_root_once_rendered() -> None:
    document = FakeDocument(root_after=None)
    reconciler = FakeReconciler()
    loop = ChangeLoop(document, reconciler, config=LoopConfig(max_root_attempts=1), sleep=FakeSleep())
    asyncio.run(loop.start())
    assert loop.degraded

    document.callback(["body-child"])
    assert loop.degraded
    assert reconciler.roots == ["body", "body"]

    document.root_after = 0
    document.callback(["chat-section"])

    assert not loop.degraded
    assert loop.root == "chat-root"
    assert reconciler.roots[-1] == "chat-root"
    assert document.subscribed_root == "chat-root"
    assert document.subscriptions[0].cancelled
    assert not document.subscriptions[1].cancelled
