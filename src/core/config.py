"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ActivityConfig:
    """Sliding-window thresholds for the activity tracker (milliseconds)."""

    short_window_ms: int = 30_000
    max_messages_short_window: int = 5
    long_window_ms: int = 60_000
    max_messages_long_window: int = 10
    min_interval_ms: int = 1_000
    retention_ms: int = 120_000
    cleanup_interval_ms: int = 60_000


@dataclass(frozen=True)
class LoopConfig:
    """Retry delays (seconds) used by the change loop while waiting on collaborators."""

    classifier_retry_delay: float = 0.1
    root_retry_delay: float = 0.5
    max_root_attempts: int = 20
