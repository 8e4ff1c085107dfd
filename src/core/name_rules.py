"""Nickname shape rules and matching logic (core domain).

Each rule is an independent structural predicate over a trimmed display
name. A name is suspicious when any rule matches; the rule order only
affects which rule gets reported in logs.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, List, Optional, Sequence

MIN_IDENTITY_LENGTH = 2


@dataclass(frozen=True)
class NameRule:
    """A named structural check applied to a trimmed nickname."""

    name: str
    description: str
    check: Callable[[str], bool]


@dataclass(frozen=True)
class NameRuleMatch:
    """A single rule match with a human-readable reason."""

    rule_name: str
    reason: str


def _search(pattern: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(pattern, flags | re.ASCII)
    return lambda name: compiled.search(name) is not None


def _fullmatch(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.ASCII)
    return lambda name: compiled.fullmatch(name) is not None


_LONG_ALNUM = re.compile(r"[A-Za-z0-9_]{10,}", re.ASCII)


def _long_alphanumeric_density(name: str) -> bool:
    # Only long generator-style names qualify; short digit-heavy names don't.
    if not _LONG_ALNUM.fullmatch(name):
        return False
    return sum(ch.isdigit() for ch in name) >= 4


DEFAULT_NAME_RULES: Sequence[NameRule] = (
    NameRule(
        name="digital_tail",
        description="letters, optional _ - . separator, 4+ trailing digits",
        check=_search(r"[a-zA-Z]+[_\-.]?\d{4,}$"),
    ),
    NameRule(
        name="unreadable_consonants",
        description="5+ consecutive consonants",
        check=_search(r"[bcdfghjklmnpqrstvwxz]{5,}", re.IGNORECASE),
    ),
    NameRule(
        name="technical_alternation",
        description="letter+digit pair repeated 3+ times",
        check=_search(r"(?:[a-zA-Z]\d){3,}"),
    ),
    NameRule(
        name="template_agent",
        description="Capitalized_Capitalized_Digits mask",
        check=_fullmatch(r"[A-Z][a-z]+_[A-Z][a-z]+_\d+"),
    ),
    NameRule(
        name="word_number",
        description="word, underscore, 3+ digits",
        check=_fullmatch(r"[a-zA-Z]+_\d{3,}"),
    ),
    NameRule(
        name="long_alphanumeric",
        description="10+ word characters with 4+ digits",
        check=_long_alphanumeric_density,
    ),
)


def _normalize(name: object) -> str:
    if not isinstance(name, str):
        return ""
    trimmed = name.strip()
    if len(trimmed) < MIN_IDENTITY_LENGTH:
        return ""
    return trimmed


def match_name_rules(name: str, rules: Sequence[NameRule] = DEFAULT_NAME_RULES) -> List[NameRuleMatch]:
    """Return all rule matches for the given nickname, in rule order.

    Empty or whitespace-only input never matches.
    """

    trimmed = _normalize(name)
    if not trimmed:
        return []
    return [
        NameRuleMatch(rule_name=rule.name, reason=rule.description)
        for rule in rules
        if rule.check(trimmed)
    ]


def first_name_rule_match(
    name: str, rules: Sequence[NameRule] = DEFAULT_NAME_RULES
) -> Optional[NameRuleMatch]:
    """Return the first matching rule, short-circuiting the rest."""

    trimmed = _normalize(name)
    if not trimmed:
        return None
    for rule in rules:
        if rule.check(trimmed):
            return NameRuleMatch(rule_name=rule.name, reason=rule.description)
    return None


def is_suspicious_name(name: str, rules: Sequence[NameRule] = DEFAULT_NAME_RULES) -> bool:
    """True when the trimmed nickname matches at least one shape rule."""

    return first_name_rule_match(name, rules) is not None
