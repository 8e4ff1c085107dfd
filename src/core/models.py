"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any document-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PROFILE_LINK = "profile_link"
DATA_USER = "data_user"
OVERLAY_USERNAME = "overlay_username"


@dataclass(frozen=True)
class Occurrence:
    """One discovered reference to a chat identity within a scan pass."""

    kind: str
    element: Any


@dataclass(frozen=True)
class ScanResult:
    """Counters for a single reconcile pass."""

    checked: int = 0
    marked: int = 0
