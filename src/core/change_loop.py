"""Supervision of repeated reconcile passes.

The loop waits for the classifier and the chat root, runs one pass, then
re-runs a full pass on every mutation batch. Batches are not debounced;
already-marked containers make repeated passes cheap.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from core.activity import ActivityTracker
from core.config import LoopConfig
from core.models import ScanResult
from core.ports import DocumentPort, Subscription
from core.reconciler import Reconciler, monotonic_ms

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class LoopState(Enum):
    IDLE = "idle"
    WAITING_FOR_CLASSIFIER = "waiting_for_classifier"
    WAITING_FOR_ROOT = "waiting_for_root"
    OBSERVING = "observing"


def _always_ready() -> bool:
    return True


class ChangeLoop:
    """Drives the reconciler from readiness polling and mutation notifications."""

    def __init__(
        self,
        document: DocumentPort,
        reconciler: Reconciler,
        config: Optional[LoopConfig] = None,
        is_classifier_ready: Callable[[], bool] = _always_ready,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._document = document
        self._reconciler = reconciler
        self._config = config or LoopConfig()
        self._is_classifier_ready = is_classifier_ready
        self._sleep = sleep
        self._subscription: Optional[Subscription] = None

        self.state = LoopState.IDLE
        self.root: Any = None
        self.degraded = False
        self.passes = 0
        self.last_result = ScanResult()

    async def start(self) -> None:
        """Wait for collaborators, run the first pass, and start observing."""

        self.state = LoopState.WAITING_FOR_CLASSIFIER
        while not self._is_classifier_ready():
            LOGGER.debug("Classifier not ready, retrying...")
            await self._sleep(self._config.classifier_retry_delay)

        self.state = LoopState.WAITING_FOR_ROOT
        self.root = await self._resolve_root()

        self.run_pass()
        self._subscription = self._document.subscribe(self.root, self._on_mutations)
        self.state = LoopState.OBSERVING
        LOGGER.info("Observer started%s", " (degraded: document root)" if self.degraded else "")

    async def _resolve_root(self) -> Any:
        attempts = max(1, self._config.max_root_attempts)
        for attempt in range(1, attempts + 1):
            root = self._document.locate_root()
            if root is not None:
                return root
            if attempt < attempts:
                LOGGER.debug("Chat root not found, retrying (%s/%s)...", attempt, attempts)
                await self._sleep(self._config.root_retry_delay)

        # The broadest root still lets every occurrence be found.
        LOGGER.warning("Chat root not found after %s attempts, using document root", attempts)
        self.degraded = True
        return self._document.fallback_root()

    def run_pass(self) -> ScanResult:
        """Run one full reconcile pass over the current root."""

        result = self._reconciler.reconcile(self.root)
        self.passes += 1
        self.last_result = result
        return result

    def _retry_chat_root(self) -> None:
        # Degraded mode observes the whole document, so the chat root
        # appearing later arrives here as an ordinary mutation batch.
        root = self._document.locate_root()
        if root is None:
            return
        if self._subscription is not None:
            self._subscription.cancel()
        self.root = root
        self.degraded = False
        self._subscription = self._document.subscribe(root, self._on_mutations)
        LOGGER.info("Chat root found, leaving degraded mode")

    def _on_mutations(self, records: Sequence[Any]) -> None:
        try:
            if self.degraded:
                self._retry_chat_root()
            self.run_pass()
        except Exception:
            LOGGER.exception("Error while reconciling %s mutation records", len(records))

    def stop(self) -> None:
        """Cancel the mutation subscription; the loop can be started again."""

        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.state = LoopState.IDLE


class EvictionCycle:
    """Periodic activity eviction, independent of scan passes."""

    def __init__(
        self,
        tracker: ActivityTracker,
        clock: Callable[[], int] = monotonic_ms,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._tracker = tracker
        self._clock = clock
        self._sleep = sleep

    async def run(self, cycles: Optional[int] = None) -> None:
        """Evict every cleanup interval; runs forever unless ``cycles`` is given."""

        period = self._tracker.config.cleanup_interval_ms / 1000
        completed = 0
        while cycles is None or completed < cycles:
            await self._sleep(period)
            self._tracker.evict(self._clock())
            completed += 1
