"""Per-identity message rate tracking (core domain).

The tracker owns an identity -> timestamps map. Timestamps are appended in
arrival order, so every sequence is non-decreasing. Eviction runs on its own
period and drops identities whose history has fully aged out.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from core.config import ActivityConfig

LOGGER = logging.getLogger(__name__)


class ActivityTracker:
    """Sliding-window rate anomaly detector keyed by identity."""

    def __init__(self, config: Optional[ActivityConfig] = None) -> None:
        self._config = config or ActivityConfig()
        self._activity: Dict[str, List[int]] = {}

    @property
    def config(self) -> ActivityConfig:
        return self._config

    def __contains__(self, identity: object) -> bool:
        return identity in self._activity

    def __len__(self) -> int:
        return len(self._activity)

    def history(self, identity: str) -> Tuple[int, ...]:
        """Return a read-only copy of the recorded timestamps for an identity."""

        return tuple(self._activity.get(identity, ()))

    def record_and_check(self, identity: str, now_ms: int) -> bool:
        """Record one event and report whether it pushes the identity over a threshold.

        All three checks use the sequence after the current event is appended:
        - more than N events in the short window;
        - more than M events in the long window;
        - less than the minimum interval between the two latest events.
        """

        timestamps = self._activity.setdefault(identity, [])
        timestamps.append(now_ms)

        reason = self._anomaly_reason(timestamps, now_ms)
        if reason is None:
            return False
        LOGGER.debug("Activity spam detected (%s): %s", reason, identity)
        return True

    def _anomaly_reason(self, timestamps: List[int], now_ms: int) -> Optional[str]:
        cfg = self._config

        short_count = sum(1 for ts in timestamps if now_ms - ts < cfg.short_window_ms)
        if short_count > cfg.max_messages_short_window:
            return f"{short_count} messages in {cfg.short_window_ms}ms"

        long_count = sum(1 for ts in timestamps if now_ms - ts < cfg.long_window_ms)
        if long_count > cfg.max_messages_long_window:
            return f"{long_count} messages in {cfg.long_window_ms}ms"

        if len(timestamps) >= 2:
            interval = timestamps[-1] - timestamps[-2]
            if interval < cfg.min_interval_ms:
                return f"{interval}ms between messages"

        return None

    def evict(self, now_ms: int) -> None:
        """Drop timestamps older than the retention horizon.

        Identities left with no timestamps are removed entirely.
        """

        retention = self._config.retention_ms
        removed = 0
        for identity in list(self._activity):
            kept = [ts for ts in self._activity[identity] if now_ms - ts < retention]
            if kept:
                self._activity[identity] = kept
            else:
                del self._activity[identity]
                removed += 1
        if removed:
            LOGGER.debug("Activity eviction removed %s identities", removed)
