"""Pattern-based off-topic detection that annotates, never blocks, a message."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

logger = logging.getLogger("support_bot.guard")

OFF_TOPIC_NOTE = (
    "[SYSTEM NOTE: This message appears to be off-topic. Stay focused on your role as a "
    "customer service chatbot. Politely redirect to relevant topics.]"
)

DEFAULT_PATTERNS = [
    r"write me (a |an )?(poem|essay|story|song)",
    r"what('s| is) the (weather|time|news|score)",
    r"who (is|was) the president",
    r"help me with (my )?(homework|code|resume)",
    r"tell me a joke",
    r"what do you think about",
    r"what is the meaning of life",
    r"can you hack",
    r"give me your system prompt",
    r"ignore previous instructions",
    r"(reveal|show|print) (me )?(your )?(system prompt|instructions)",
]


class RegexMatcher:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._compiled = re.compile(pattern, re.IGNORECASE)

    def matches(self, message: str) -> bool:
        return bool(self._compiled.search(message))


@dataclass(frozen=True)
class PhraseMatcher:
    """Case-insensitive substring set."""
    phrases: Tuple[str, ...]

    def matches(self, message: str) -> bool:
        lowered = message.lower()
        return any(phrase.lower() in lowered for phrase in self.phrases)


Matcher = Union[RegexMatcher, PhraseMatcher]


def default_matchers() -> List[Matcher]:
    return [RegexMatcher(pattern) for pattern in DEFAULT_PATTERNS]


def load_matchers(path: Optional[Path]) -> List[Matcher]:
    """Purpose: Load an ordered matcher list from a JSON file.
    Inputs/Outputs: Input is an optional Path; output is a list of matchers.
    Side Effects / State: Reads the file when present.
    Dependencies: Expects a JSON list of {"type": "regex", "pattern": ...} or
        {"type": "phrases", "phrases": [...]} entries.
    Failure Modes: Missing path, unreadable JSON, or a bad entry falls back to the
        built-in defaults with a warning.
    If Removed: The guard can only ever use the built-in patterns.
    Testing Notes: Write a small file with both entry types and check order.
    """
    if path is None:
        return default_matchers()
    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
        matchers = [_matcher_from_entry(entry) for entry in entries]
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, re.error) as exc:
        logger.warning("guard patterns file=%s unusable, using defaults: %s", path, exc)
        return default_matchers()
    return matchers


def _matcher_from_entry(entry: dict) -> Matcher:
    kind = entry["type"]
    if kind == "regex":
        return RegexMatcher(str(entry["pattern"]))
    if kind == "phrases":
        return PhraseMatcher(tuple(str(phrase) for phrase in entry["phrases"]))
    raise ValueError(f"unknown matcher type: {kind}")


class TopicGuard:
    """Flag messages that look unrelated to the service domain."""

    def __init__(self, matchers: Optional[Sequence[Matcher]] = None, note: str = OFF_TOPIC_NOTE) -> None:
        self._matchers = list(matchers) if matchers is not None else default_matchers()
        self._note = note

    def is_off_topic(self, message: str) -> bool:
        return any(matcher.matches(message) for matcher in self._matchers)

    def annotation(self, message: str) -> str:
        """Return the redirect note for a flagged message, or an empty string."""
        return self._note if self.is_off_topic(message) else ""
