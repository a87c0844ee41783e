"""
Intent Module

Rule-based reading of user messages for the booking flow.

Usage:
    from booking_flow.core.intent import detect_booking_intent

    detect_booking_intent("can we schedule a call tomorrow?")  # True
"""

from booking_flow.core.intent.rules import (
    MessageRule,
    BOOKING_INTENT_RULES,
    DECLINE_RULES,
    SHOW_SLOTS_RULES,
    CUSTOM_TIME_RULES,
    AFFIRMATIVE_RULES,
    PHONE_RULES,
    first_match,
    any_match,
    extract_ordinal,
    extract_clock_time,
)
from booking_flow.core.intent.detector import (
    BookingIntentDetector,
    get_intent_detector,
    detect_booking_intent,
)

__all__ = [
    "MessageRule",
    "BOOKING_INTENT_RULES",
    "DECLINE_RULES",
    "SHOW_SLOTS_RULES",
    "CUSTOM_TIME_RULES",
    "AFFIRMATIVE_RULES",
    "PHONE_RULES",
    "first_match",
    "any_match",
    "extract_ordinal",
    "extract_clock_time",
    "BookingIntentDetector",
    "get_intent_detector",
    "detect_booking_intent",
]
