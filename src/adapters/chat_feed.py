"""Chat feed adapter.

A feed is a text file with one rendered chat line (HTML fragment) per line,
for example a capture of a live chat. Replaying it appends each line to the
document as its own mutation batch.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List

from adapters.html_document import HtmlChatDocument

LOGGER = logging.getLogger(__name__)


def read_feed(path: Path) -> List[str]:
    """Return the non-blank lines of a feed file."""

    with open(path, "r", encoding="utf-8") as handle:
        return [line.rstrip("\n") for line in handle if line.strip()]


async def replay_feed(
    document: HtmlChatDocument,
    lines: Iterable[str],
    interval: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Append feed lines one by one, yielding between lines so observers run."""

    appended = 0
    for line in lines:
        appended += document.append_lines([line])
        await sleep(interval)
    LOGGER.info("Replayed %s chat lines", appended)
    return appended
