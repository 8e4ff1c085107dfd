"""Application entry point for the deadchat bot marker."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from art import tprint
from rich.console import Console
from rich.table import Table

import settings
from adapters.chat_feed import read_feed, replay_feed
from adapters.html_document import MARKED_ATTR, HtmlChatDocument
from core.activity import ActivityTracker
from core.change_loop import ChangeLoop, EvictionCycle
from core.config import ActivityConfig, LoopConfig
from core.name_rules import match_name_rules
from core.reconciler import Reconciler

NAME = "DEADCHAT"
FONT = "tarty-1"

# Used by `replay` when no saved page is given.
EMPTY_CHAT_PAGE = '<html><body><section data-a-target="chat-room"></section></body></html>'

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/deadchat.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _activity_config() -> ActivityConfig:
    return ActivityConfig(
        short_window_ms=settings.SHORT_WINDOW_MS,
        max_messages_short_window=settings.MAX_MESSAGES_SHORT_WINDOW,
        long_window_ms=settings.LONG_WINDOW_MS,
        max_messages_long_window=settings.MAX_MESSAGES_LONG_WINDOW,
        min_interval_ms=settings.MIN_INTERVAL_MS,
        retention_ms=settings.RETENTION_MS,
        cleanup_interval_ms=settings.CLEANUP_INTERVAL_MS,
    )


def _loop_config() -> LoopConfig:
    return LoopConfig(
        classifier_retry_delay=settings.CLASSIFIER_RETRY_DELAY,
        root_retry_delay=settings.ROOT_RETRY_DELAY,
        max_root_attempts=settings.MAX_ROOT_ATTEMPTS,
    )


def _load_document(path: Optional[Path]) -> HtmlChatDocument:
    if path is None:
        return HtmlChatDocument.from_html(EMPTY_CHAT_PAGE, origin=settings.ORIGIN)
    markup = path.read_text(encoding="utf-8")
    return HtmlChatDocument.from_html(markup, origin=settings.ORIGIN)


def _write_document(document: HtmlChatDocument, output: Optional[Path]) -> None:
    if output is None:
        return
    output.write_text(document.render(), encoding="utf-8")
    LOGGER.info("Annotated page written to %s", output)


def _check(names: list[str]) -> None:
    table = Table(title="Nickname check")
    table.add_column("Nickname")
    table.add_column("Verdict")
    table.add_column("Rules")
    for name in names:
        matches = match_name_rules(name)
        verdict = "[yellow]suspicious[/yellow]" if matches else "[green]ok[/green]"
        table.add_row(name, verdict, ", ".join(match.rule_name for match in matches) or "-")
    Console().print(table)


def _scan(page: Path, output: Optional[Path]) -> None:
    document = _load_document(page)
    reconciler = Reconciler(document, ActivityTracker(_activity_config()))

    root = document.locate_root()
    if root is None:
        LOGGER.warning("Chat root not found, scanning the whole page")
        root = document.fallback_root()

    result = reconciler.reconcile(root)
    LOGGER.info("Scan complete: checked=%s, marked=%s", result.checked, result.marked)
    _write_document(document, output)


async def _replay(page: Optional[Path], feed: Path, output: Optional[Path], interval: float) -> None:
    document = _load_document(page)
    tracker = ActivityTracker(_activity_config())
    reconciler = Reconciler(document, tracker)
    change_loop = ChangeLoop(document, reconciler, config=_loop_config())

    await change_loop.start()
    eviction = asyncio.create_task(EvictionCycle(tracker).run())
    try:
        await replay_feed(document, read_feed(feed), interval=interval)
        # Let the last mutation batch reach the observer.
        await asyncio.sleep(0)
    finally:
        eviction.cancel()
        change_loop.stop()

    marked = len(document.soup.select(f"[{MARKED_ATTR}]"))
    LOGGER.info(
        "Replay complete: passes=%s, tracked identities=%s, marked containers=%s",
        change_loop.passes,
        len(tracker),
        marked,
    )
    _write_document(document, output)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="deadchat")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Classify nicknames by shape")
    check_parser.add_argument("names", nargs="+")

    scan_parser = subparsers.add_parser("scan", help="Mark suspicious lines in a saved chat page")
    scan_parser.add_argument("page", type=Path)
    scan_parser.add_argument("-o", "--output", type=Path)

    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay a captured chat feed (one HTML line per row) against a live page",
    )
    replay_parser.add_argument("feed", type=Path)
    replay_parser.add_argument("--page", type=Path, help="Saved page to start from")
    replay_parser.add_argument("-o", "--output", type=Path)
    replay_parser.add_argument("--interval", type=float, default=0.0, help="Seconds between lines")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check(args.names)
        return

    _print_banner()
    _configure_logging()
    if args.command == "scan":
        _scan(args.page, args.output)
        return
    asyncio.run(_replay(args.page, args.feed, args.output, args.interval))


if __name__ == "__main__":
    main()
