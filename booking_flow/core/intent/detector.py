"""
Booking intent detection.

Deterministic keyword matching, no LLM call. False positives are
tolerated: the flow controller re-confirms through explicit prompts
before anything is booked. False negatives simply leave the AI reply as is.
"""

import logging
from typing import Optional, Sequence

from .rules import BOOKING_INTENT_RULES, MessageRule, first_match

logger = logging.getLogger(__name__)


class BookingIntentDetector:
    """Checks user messages against an ordered list of booking rules."""

    def __init__(self, rules: Sequence[MessageRule] = BOOKING_INTENT_RULES):
        """Initialize detector.

        Args:
            rules: Ordered rules; the first match wins
        """
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[MessageRule, ...]:
        return self._rules

    def matched_rule(self, message: Optional[str]) -> Optional[str]:
        """Name of the first rule matching the message, or None."""
        rule = first_match(self._rules, message)
        if rule is None:
            return None
        logger.debug(f"Booking intent rule matched: {rule.name}")
        return rule.name

    def detect(self, message: Optional[str]) -> bool:
        """Check if a message looks like a booking request.

        Args:
            message: Raw user message (may be empty or None)

        Returns:
            True on the first matching rule
        """
        return self.matched_rule(message) is not None


# Singleton
_detector: Optional[BookingIntentDetector] = None


def get_intent_detector() -> BookingIntentDetector:
    """Get singleton BookingIntentDetector."""
    global _detector
    if _detector is None:
        _detector = BookingIntentDetector()
    return _detector


def detect_booking_intent(message: Optional[str]) -> bool:
    """Convenience function to detect booking intent."""
    return get_intent_detector().detect(message)
