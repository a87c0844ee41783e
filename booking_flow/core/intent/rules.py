"""
Message Rules

Ordered, named regular-expression rules used to read user messages
without a language model. Each rule set is evaluated in order and the
first matching rule wins.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence


@dataclass(frozen=True)
class MessageRule:
    """A named case-insensitive pattern."""

    name: str
    pattern: str
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern, re.IGNORECASE))

    def matches(self, text: str) -> bool:
        return self._compiled.search(text) is not None


def first_match(rules: Sequence[MessageRule], text: Optional[str]) -> Optional[MessageRule]:
    """Return the first rule matching `text`, or None."""
    if not text:
        return None
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def any_match(rules: Sequence[MessageRule], text: Optional[str]) -> bool:
    """Check whether any rule matches `text`."""
    return first_match(rules, text) is not None


# ==================================
# Booking intent
# ==================================

BOOKING_INTENT_RULES: tuple[MessageRule, ...] = (
    MessageRule("scheduling_verb", r"\b(book|booking|schedule|appointment)\b"),
    MessageRule("contact_request", r"\b(call me|can we talk|meeting)\b"),
    MessageRule(
        "relative_time",
        r"\b(tomorrow|next week|this week|at \d{1,2}(:\d{2})?\s*(am|pm)?)\b",
    ),
    MessageRule("setup_request", r"\b(can i schedule|set up a (call|meeting|visit))\b"),
    MessageRule("availability_question", r"\b(available\s*(time|slot)s?)\b"),
    MessageRule(
        "clock_time",
        r"\b([01]?\d|2[0-3]):[0-5]\d\b|\b\d{1,2}\s*(o'?clock|am|pm)\b",
    ),
)


# ==================================
# Active flow
# ==================================

DECLINE_RULES: tuple[MessageRule, ...] = (
    MessageRule("not_now", r"\bnot now\b"),
    MessageRule("no_thanks", r"\bno,? thanks?\b"),
    MessageRule("later", r"\b(maybe )?later\b"),
    MessageRule("decline", r"\bdecline\b"),
    MessageRule("skip", r"\bskip\b"),
)

SHOW_SLOTS_RULES: tuple[MessageRule, ...] = (
    MessageRule("show_slots", r"\bshow\b.*\bslots?\b"),
    MessageRule("available_times", r"\bavailable\b.*\btimes?\b"),
    MessageRule("show_available", r"\bshow\b.*\bavailable\b"),
)

CUSTOM_TIME_RULES: tuple[MessageRule, ...] = (
    MessageRule("propose", r"\bpropose\b"),
    MessageRule("custom", r"\bcustom\b"),
    MessageRule("my_own", r"\bmy own\b"),
    MessageRule("prefer", r"\bprefer\b"),
    MessageRule("another_time", r"\banother time\b"),
)

AFFIRMATIVE_RULES: tuple[MessageRule, ...] = (
    MessageRule("yes", r"\byes\b"),
    MessageRule("confirm", r"\bconfirm\b"),
    MessageRule("book", r"\bbook\b"),
    MessageRule("sure", r"\bsure\b"),
    MessageRule("go_ahead", r"\bgo ahead\b"),
    MessageRule("sounds_good", r"\bsounds good\b"),
    MessageRule("lets_do_it", r"\blet'?s do it\b"),
)

PHONE_RULES: tuple[MessageRule, ...] = (
    MessageRule("phone_like", r"[\d+\-()]{6,}"),
)


# ==================================
# Slot choice
# ==================================

ORDINAL_WORDS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
}

_ORDINAL_WORD_RX = re.compile(
    r"^\s*(?:(?:i'?ll\s+take|i'?d\s+like|let'?s\s+(?:do|go\s+with)|go\s+with|give\s+me)\s+)?"
    r"(?:the\s+)?(first|second|third|fourth|fifth)"
    r"(?:\s+(?:one|slot|option|time))?(?:,?\s+please)?\s*[.!]?\s*$",
    re.IGNORECASE,
)
_ORDINAL_NUMBER_RX = re.compile(
    r"^\s*(?:#|no\.?\s*|number\s+|option\s+|slot\s+)?([1-9])\s*[.)]?\s*$"
    r"|\b(?:option|slot|number)\s+([1-9])\b",
    re.IGNORECASE,
)
_CLOCK_RX = re.compile(
    r"\b(\d{1,2})(?::([0-5]\d))?\s*(am|pm)\b|\b([01]?\d|2[0-3]):([0-5]\d)\b",
    re.IGNORECASE,
)


def extract_ordinal(text: str) -> Optional[int]:
    """Extract a 1-based choice ("2", "option 2", "the second one").

    Ordinal words count only when the whole message is a choice, so
    "the second week of February" is not a slot pick.
    """
    match = _ORDINAL_NUMBER_RX.search(text)
    if match:
        return int(match.group(1) or match.group(2))

    match = _ORDINAL_WORD_RX.search(text)
    if match:
        return ORDINAL_WORDS[match.group(1).lower()]

    return None


def extract_clock_time(text: str) -> Optional[tuple[int, int]]:
    """Extract a 24-hour (hour, minute) from "9:30", "2pm" or "2:30 pm"."""
    match = _CLOCK_RX.search(text)
    if not match:
        return None

    if match.group(3):
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12:
            return None
        meridiem = match.group(3).lower()
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
        return hour, minute

    return int(match.group(4)), int(match.group(5))
