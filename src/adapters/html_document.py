"""BeautifulSoup document adapter.

Implements the core DocumentPort over an in-memory HTML chat page. The
selector lists below are ordered by priority; the first match wins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from core.models import DATA_USER, OVERLAY_USERNAME, PROFILE_LINK, Occurrence
from core.ports import MutationCallback

LOGGER = logging.getLogger(__name__)

MARKED_ATTR = "data-bot-detector-marked"
RECORDED_ATTR = "data-bot-detector-seen"
SUSPICIOUS_CLASS = "bot-detector-suspicious"

DEFAULT_ORIGIN = "https://www.twitch.tv"

ROOT_SELECTORS: Sequence[str] = (
    '[data-a-target="chat-room"]',
    'section[aria-label*="Chat"]',
    '[class*="ChatRoom"]',
    '[class*="chat-shell"]',
    '[class*="chat-container"]',
    '[class*="chat-list"]',
    "#chat-root",
    '[data-test-selector="chat-messages"]',
    'div[class*="chat"]',
    'section[class*="chat"]',
)

# Alternate overlay renderer (7TV) wraps each line in its own containers.
OVERLAY_CONTAINER_SELECTOR = (
    ".seventv-message, .seventv-chat-message-container, "
    ".seventv-chat-message-background, .seventv-user-message"
)
OVERLAY_CONTAINER_PRIORITY: Sequence[str] = (
    ".seventv-chat-message-background",
    ".seventv-chat-message-container",
    ".seventv-message",
)
OVERLAY_USER_MESSAGE = ".seventv-user-message"
OVERLAY_USERNAME_SELECTOR = ".seventv-chat-user-username span"
OVERLAY_HIGHLIGHT_CLASSES = ("seventv-chat-message-background", "seventv-user-message")

CONTAINER_SELECTORS: Sequence[str] = (
    '[data-a-target="chat-line-message"]',
    '[class*="chat-line"]',
    '[class*="message"]',
    '[class*="chat-message"]',
    '[class*="message-container"]',
    '[class*="chat-line-message"]',
    'div[class*="Layout-sc"]',
    'div[class*="ScMessageLayout"]',
)
CONTAINER_FALLBACK_SELECTOR = 'div[class*="Layout"], div[class*="message"], div[class*="chat"]'
MAX_CONTAINER_DEPTH = 10

NESTED_PROFILE_LINK = "a[href^='/'], a[href*='twitch.tv/']"
IDENTITY_ATTRIBUTES = ("data-a-user", "data-user-id", "data-user")
RESERVED_PATHS = frozenset({"directory", "settings", "subscriptions", "p"})

HIGHLIGHT_COLOR = "rgba(255, 255, 0, 0.3)"
HIGHLIGHT_BORDER = "3px solid rgba(255, 200, 0, 0.8)"


def _class_text(tag: Tag) -> str:
    value = tag.get("class")
    if not value:
        return ""
    if isinstance(value, str):
        return value
    return " ".join(value)


def _text(tag: Tag) -> str:
    return tag.get_text().strip()


def _parse_style(style: str) -> dict[str, str]:
    declarations: dict[str, str] = {}
    for part in style.split(";"):
        name, sep, value = part.partition(":")
        if sep and name.strip():
            declarations[name.strip()] = value.strip()
    return declarations


class _MutationSubscription:
    def __init__(self, document: "HtmlChatDocument", root: Tag, callback: MutationCallback) -> None:
        self._document = document
        self.root = root
        self.callback = callback

    def covers(self, node: Tag) -> bool:
        return node is self.root or any(parent is self.root for parent in node.parents)

    def cancel(self) -> None:
        self._document._unsubscribe(self)


class HtmlChatDocument:
    """A live chat page held as a BeautifulSoup tree and annotated in place."""

    def __init__(
        self,
        soup: BeautifulSoup,
        origin: str = DEFAULT_ORIGIN,
        root_selectors: Sequence[str] = ROOT_SELECTORS,
    ) -> None:
        self.soup = soup
        self._origin = origin
        self._root_selectors = tuple(root_selectors)
        self._subscriptions: List[_MutationSubscription] = []
        self._pending: List[Tag] = []
        self._flush_scheduled = False

    @classmethod
    def from_html(cls, markup: str, origin: str = DEFAULT_ORIGIN) -> "HtmlChatDocument":
        return cls(BeautifulSoup(markup, "html.parser"), origin=origin)

    def render(self) -> str:
        return str(self.soup)

    # ------------------------------------------------------------------
    # Root and occurrence discovery
    # ------------------------------------------------------------------
    def locate_root(self) -> Optional[Tag]:
        for selector in self._root_selectors:
            element = self.soup.select_one(selector)
            if element is not None:
                LOGGER.debug("Chat root found: %s", selector)
                return element
        return None

    def fallback_root(self) -> Tag:
        return self.soup.body or self.soup

    def is_user_profile_link(self, anchor: Tag) -> bool:
        """True for links to a single-segment user page such as ``/somebody``."""

        href = anchor.get("href")
        if not href:
            return False
        try:
            path = urlparse(urljoin(self._origin, href)).path
        except ValueError:
            return False
        if path.startswith("/"):
            path = path[1:]
        if path.endswith("/"):
            path = path[:-1]
        if not path or "/" in path:
            return False
        return path not in RESERVED_PATHS

    def discover_occurrences(self, root: Tag) -> List[Occurrence]:
        links = [a for a in root.select("a[href]") if self.is_user_profile_link(a)]
        users = root.select("[data-a-user]")
        overlay_names = root.select(OVERLAY_USERNAME_SELECTOR)
        LOGGER.debug(
            "Found %s profile links, %s data-a-user elements, %s overlay usernames",
            len(links),
            len(users),
            len(overlay_names),
        )
        occurrences = [Occurrence(PROFILE_LINK, element) for element in links]
        occurrences.extend(Occurrence(DATA_USER, element) for element in users)
        occurrences.extend(Occurrence(OVERLAY_USERNAME, element) for element in overlay_names)
        return occurrences

    # ------------------------------------------------------------------
    # Container resolution and identity extraction
    # ------------------------------------------------------------------
    def resolve_container(self, occurrence: Occurrence) -> Optional[Tag]:
        return find_message_container(occurrence.element)

    def extract_identity(self, occurrence: Occurrence) -> str:
        element = occurrence.element
        if occurrence.kind == DATA_USER:
            return (element.get("data-a-user") or "").strip()
        if occurrence.kind == OVERLAY_USERNAME:
            return _text(element)
        return extract_nickname(element)

    # ------------------------------------------------------------------
    # Marking
    # ------------------------------------------------------------------
    def is_marked(self, node: Tag) -> bool:
        return node.has_attr(MARKED_ATTR)

    def mark(self, node: Tag) -> None:
        node[MARKED_ATTR] = "1"
        classes = _class_text(node).split()
        if SUSPICIOUS_CLASS not in classes:
            classes.append(SUSPICIOUS_CLASS)
        node["class"] = classes

    def is_recorded(self, element: Tag) -> bool:
        return element.has_attr(RECORDED_ATTR)

    def mark_recorded(self, element: Tag) -> None:
        # Set on the identity element, not the container, so other
        # identities in the same line are still evaluated.
        element[RECORDED_ATTR] = "1"

    def apply_visual_suspicion(self, node: Tag) -> None:
        declarations = _parse_style(node.get("style") or "")
        declarations["background"] = f"{HIGHLIGHT_COLOR} !important"
        declarations["border-left"] = f"{HIGHLIGHT_BORDER} !important"
        classes = _class_text(node).split()
        if any(name in classes for name in OVERLAY_HIGHLIGHT_CLASSES):
            # The overlay paints its own highlight through CSS variables.
            declarations["--seventv-highlight-color"] = f"{HIGHLIGHT_COLOR} !important"
            declarations["--seventv-highlight-dim-color"] = f"{HIGHLIGHT_COLOR} !important"
            declarations["background-color"] = f"{HIGHLIGHT_COLOR} !important"
        node["style"] = "; ".join(f"{name}: {value}" for name, value in declarations.items())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def subscribe(self, root: Tag, callback: MutationCallback) -> _MutationSubscription:
        subscription = _MutationSubscription(self, root, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: _MutationSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def append_lines(self, fragments: Iterable[str], parent: Optional[Tag] = None) -> int:
        """Append rendered chat-line fragments and queue one mutation batch.

        Subscribers are notified on the next loop iteration, so several
        appends made before then are delivered as a single batch. Must be
        called from a running event loop.
        """

        target = parent or self.locate_root() or self.fallback_root()
        added: List[Tag] = []
        for fragment in fragments:
            if not fragment.strip():
                continue
            parsed = BeautifulSoup(fragment, "html.parser")
            for node in list(parsed.contents):
                target.append(node.extract())
                if isinstance(node, Tag):
                    added.append(node)

        if added:
            self._pending.extend(added)
            if not self._flush_scheduled:
                self._flush_scheduled = True
                asyncio.get_running_loop().call_soon(self._flush)
        return len(added)

    def _flush(self) -> None:
        batch, self._pending = self._pending, []
        self._flush_scheduled = False
        for subscription in list(self._subscriptions):
            records = [node for node in batch if subscription.covers(node)]
            if records:
                subscription.callback(records)


def find_message_container(element: Tag) -> Tag:
    """Map an identity element to the chat line container that gets marked."""

    overlay = sv.closest(OVERLAY_CONTAINER_SELECTOR, element)
    if overlay is not None:
        for selector in OVERLAY_CONTAINER_PRIORITY:
            found = sv.closest(selector, overlay)
            if found is not None:
                return found
        return overlay

    current: Optional[Tag] = element
    for _ in range(MAX_CONTAINER_DEPTH):
        if current is None or isinstance(current, BeautifulSoup) or current.name == "body":
            break
        for selector in CONTAINER_SELECTORS:
            if sv.match(selector, current):
                return current
        class_text = _class_text(current)
        if current.has_attr("data-a-target") or "message" in class_text or "chat-line" in class_text:
            return current
        current = current.parent

    fallback = sv.closest(CONTAINER_FALLBACK_SELECTOR, element)
    if fallback is not None:
        return fallback
    parent = element.parent
    if parent is not None and not isinstance(parent, BeautifulSoup):
        return parent
    return element


def extract_nickname(element: Tag) -> str:
    """Derive a display name from a profile link or user element."""

    user_message = sv.closest(OVERLAY_USER_MESSAGE, element)
    if user_message is not None:
        username = user_message.select_one(OVERLAY_USERNAME_SELECTOR)
        if username is not None:
            nick = _text(username)
            if nick:
                return nick

    if element.name == "a":
        nick = _text(element)
    else:
        link = element.select_one(NESTED_PROFILE_LINK)
        nick = _text(link if link is not None else element)

    if not nick:
        for attribute in IDENTITY_ATTRIBUTES:
            value = element.get(attribute)
            if value:
                return value.strip()
    return nick
