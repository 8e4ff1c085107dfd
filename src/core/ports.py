"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for document access so that the core can
be reused with different document backends. Nodes are opaque to the core.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence

from core.models import Occurrence

MutationCallback = Callable[[Sequence[Any]], None]


class Subscription(Protocol):
    """Handle returned by a mutation subscription."""

    def cancel(self) -> None:
        ...


class DocumentPort(Protocol):
    """Document operations required by the reconciler and change loop."""

    def locate_root(self) -> Optional[Any]:
        ...

    def fallback_root(self) -> Any:
        ...

    def discover_occurrences(self, root: Any) -> Sequence[Occurrence]:
        ...

    def resolve_container(self, occurrence: Occurrence) -> Optional[Any]:
        ...

    def extract_identity(self, occurrence: Occurrence) -> str:
        ...

    def is_marked(self, node: Any) -> bool:
        ...

    def mark(self, node: Any) -> None:
        ...

    def is_recorded(self, element: Any) -> bool:
        ...

    def mark_recorded(self, element: Any) -> None:
        ...

    def apply_visual_suspicion(self, node: Any) -> None:
        ...

    def subscribe(self, root: Any, callback: MutationCallback) -> Subscription:
        ...
