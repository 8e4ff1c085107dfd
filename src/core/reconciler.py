"""Core reconcile pass.

This module is document-agnostic. It only relies on the document port,
enabling other document backends without changes here.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Sequence

from core.activity import ActivityTracker
from core.models import Occurrence, ScanResult
from core.name_rules import DEFAULT_NAME_RULES, MIN_IDENTITY_LENGTH, NameRule, first_name_rule_match
from core.ports import DocumentPort

LOGGER = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Reconciler:
    """Classifies every discovered identity and marks suspicious containers once."""

    def __init__(
        self,
        document: DocumentPort,
        tracker: ActivityTracker,
        clock: Callable[[], int] = monotonic_ms,
        rules: Sequence[NameRule] = DEFAULT_NAME_RULES,
    ) -> None:
        self._document = document
        self._tracker = tracker
        self._clock = clock
        self._rules = rules

    def reconcile(self, root: Any) -> ScanResult:
        """Run one full pass over the occurrences currently under ``root``."""

        checked = 0
        marked = 0
        # (container, identity) pairs whose activity was recorded in this pass.
        tracked: set[tuple[int, str]] = set()
        for occurrence in self._document.discover_occurrences(root):
            # One malformed element must never abort the whole pass.
            try:
                verdict = self._process(occurrence, tracked)
            except Exception:
                LOGGER.debug("Skipping malformed %s occurrence", occurrence.kind, exc_info=True)
                continue
            if verdict is None:
                continue
            checked += 1
            if verdict:
                marked += 1

        if checked or marked:
            LOGGER.debug("Checked %s nicks, marked %s as suspicious", checked, marked)
        return ScanResult(checked=checked, marked=marked)

    def _process(self, occurrence: Occurrence, tracked: set[tuple[int, str]]) -> Optional[bool]:
        """Evaluate one occurrence; None when skipped, else whether it was marked."""

        container = self._document.resolve_container(occurrence)
        if container is None or self._document.is_marked(container):
            return None
        if self._document.is_recorded(occurrence.element):
            return None
        identity = (self._document.extract_identity(occurrence) or "").strip()
        if len(identity) < MIN_IDENTITY_LENGTH:
            return None

        # A message often names its author twice (link and user element);
        # that is still one event for the rate window.
        key = (id(container), identity)
        record = key not in tracked
        tracked.add(key)

        suspicious = self._is_suspicious(identity, occurrence.kind, record)
        if suspicious:
            self._document.mark(container)
            self._document.apply_visual_suspicion(container)
        self._document.mark_recorded(occurrence.element)
        return suspicious

    def _is_suspicious(self, identity: str, kind: str, record: bool) -> bool:
        # Activity is recorded even for benign-looking names so the rate
        # window keeps an accurate history.
        name_match = first_name_rule_match(identity, self._rules)
        activity_spam = record and self._tracker.record_and_check(identity, self._clock())

        if name_match is not None:
            LOGGER.debug("Marked suspicious (nickname:%s, %s): %s", name_match.rule_name, kind, identity)
        if activity_spam:
            LOGGER.debug("Marked suspicious (activity spam, %s): %s", kind, identity)
        return name_match is not None or activity_spam
