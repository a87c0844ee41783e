"""
Booking responses.

Template texts and BookingPayload builders for each booking turn, and
the merge of an injected turn into the upstream AI reply.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .types import (
    BookingPayload,
    BookingSlot,
    PayloadMode,
    QuickAction,
    SchedulingSettings,
)

logger = logging.getLogger(__name__)

REPLY_TEXT_KEY = "assistant_message"

# Booking metadata locations a backend may already have filled in
BACKEND_BOOKING_PATHS = (
    ("booking",),
    ("meta", "booking"),
    ("ui_action", "booking"),
)

SHOW_SLOTS_ACTION = QuickAction("Show available slots", "Show available slots")
PROPOSE_TIME_ACTION = QuickAction("Propose a time", "I'd like to propose a time")
PROPOSE_OTHER_TIME_ACTION = QuickAction("Propose another time", "I'd like to propose a time")
NOT_NOW_ACTION = QuickAction("Not now", "Not now")


@dataclass
class BookingTurn:
    """Text and payload injected into one reply."""

    text: Optional[str]
    payload: BookingPayload
    replace_text: bool = False


def backend_booking_mode(ai_reply: Any) -> Optional[str]:
    """Booking mode already set by the backend on an AI reply, if any."""
    if not isinstance(ai_reply, dict):
        return None

    for path in BACKEND_BOOKING_PATHS:
        node: Any = ai_reply
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, dict) and node.get("mode"):
            return str(node["mode"])
    return None


def merge_reply(ai_reply: Any, turn: BookingTurn) -> dict:
    """Merge a booking turn into a copy of the AI reply.

    The injected text is appended after the AI's own text unless the
    turn replaces it. The payload is attached under `booking`.
    """
    merged = dict(ai_reply) if isinstance(ai_reply, dict) else {}
    existing = merged.get(REPLY_TEXT_KEY) or ""

    if turn.text:
        if turn.replace_text or not existing:
            merged[REPLY_TEXT_KEY] = turn.text
        else:
            merged[REPLY_TEXT_KEY] = f"{existing}\n\n{turn.text}"

    merged["booking"] = turn.payload.to_dict()
    return merged


class BookingResponder:
    """Builds the text and payload for each booking turn."""

    def ask_name(self, settings: SchedulingSettings) -> BookingTurn:
        """Prompt for the contact's name."""
        return BookingTurn(
            text="Before we schedule, could you share your name?",
            payload=BookingPayload(
                mode=PayloadMode.AWAITING_NAME,
                appointment_type=settings.default_booking_type,
                timezone=settings.timezone,
                required_before_booking=_required_fields(settings),
            ),
        )

    def ask_phone(self, settings: SchedulingSettings, after_name: bool = False) -> BookingTurn:
        """Prompt for the contact's phone number."""
        text = (
            "Thanks! Could you also share your phone number?"
            if after_name
            else "Could you share your phone number so we can reach you?"
        )
        return BookingTurn(
            text=text,
            payload=BookingPayload(
                mode=PayloadMode.AWAITING_PHONE,
                appointment_type=settings.default_booking_type,
                timezone=settings.timezone,
                required_before_booking=_required_fields(settings),
            ),
        )

    def offer(self, settings: SchedulingSettings, slots: list[BookingSlot]) -> BookingTurn:
        """Offer booking: a slot list when available, otherwise action chips."""
        type_label = settings.booking_type_label

        if settings.show_available_slots and slots:
            return BookingTurn(
                text=f"I have some available times for a {type_label}. Would you like to pick a slot?",
                payload=BookingPayload(
                    mode=PayloadMode.SLOTS,
                    slots=list(slots),
                    appointment_type=settings.default_booking_type,
                    timezone=settings.timezone,
                    quick_actions=[PROPOSE_OTHER_TIME_ACTION] if settings.allow_custom_time else [],
                ),
            )

        actions = []
        if settings.show_available_slots:
            actions.append(SHOW_SLOTS_ACTION)
        if settings.allow_custom_time:
            actions.append(PROPOSE_TIME_ACTION)
        actions.append(QuickAction(f"Yes, book a {type_label}", f"Yes, book a {type_label}"))
        actions.append(NOT_NOW_ACTION)

        return BookingTurn(
            text=f"Would you like to schedule a {type_label}?",
            payload=BookingPayload(
                mode=PayloadMode.OFFER,
                appointment_type=settings.default_booking_type,
                timezone=settings.timezone,
                quick_actions=actions,
            ),
        )

    def slots(
        self,
        settings: SchedulingSettings,
        slots: list[BookingSlot],
        appointment_type: str,
    ) -> BookingTurn:
        """List slots in answer to an explicit request."""
        return BookingTurn(
            text=(
                "Here are some available times:"
                if slots
                else "I couldn't find available slots right now."
            ),
            payload=BookingPayload(
                mode=PayloadMode.SLOTS,
                slots=list(slots),
                appointment_type=appointment_type,
                timezone=settings.timezone,
                quick_actions=[PROPOSE_OTHER_TIME_ACTION] if settings.allow_custom_time else [],
            ),
            replace_text=True,
        )

    def ask_time(self, settings: SchedulingSettings, appointment_type: str) -> BookingTurn:
        """Ask for a preferred time in free text."""
        return BookingTurn(
            text="When would work best for you?",
            payload=BookingPayload(
                mode=PayloadMode.COLLECT_TIME,
                appointment_type=appointment_type,
                timezone=settings.timezone,
            ),
        )

    def time_noted(
        self,
        settings: SchedulingSettings,
        appointment_type: str,
        proposed_time: str,
    ) -> BookingTurn:
        """Acknowledge a proposed time; staff finalizes it later."""
        return BookingTurn(
            text=(
                f'Got it, I\'ve noted your preference for "{proposed_time}". '
                "Our team will confirm the exact time shortly."
            ),
            payload=BookingPayload(
                mode=PayloadMode.CONFIRMED,
                appointment_type=appointment_type,
                timezone=settings.timezone,
                appointment={"type": appointment_type, "status": "pending_confirmation"},
                summary={
                    "type": appointment_type,
                    "date": proposed_time,
                    "timezone": settings.timezone,
                },
            ),
        )

    def slot_confirmed(
        self,
        settings: SchedulingSettings,
        slot: BookingSlot,
        appointment_type: str,
        appointment: dict,
    ) -> BookingTurn:
        """Confirm a chosen slot (booked or pending staff confirmation)."""
        label = slot.label or slot.start
        if appointment.get("status") == "pending_confirmation":
            text = f"Great, I've requested {label}. Our team will confirm it shortly."
        else:
            text = f"You're booked for {label}. See you then!"

        return BookingTurn(
            text=text,
            payload=BookingPayload(
                mode=PayloadMode.CONFIRMED,
                appointment_type=appointment_type,
                timezone=slot.timezone or settings.timezone,
                confirmed_slot=slot,
                appointment=appointment,
                summary={
                    "type": appointment_type,
                    "date": label,
                    "timezone": slot.timezone or settings.timezone,
                },
            ),
        )

    def slot_unavailable(
        self,
        settings: SchedulingSettings,
        remaining: list[BookingSlot],
        appointment_type: str,
    ) -> BookingTurn:
        """Report a slot that could not be booked and re-offer the rest."""
        text = "Sorry, that time is no longer available."
        if remaining:
            text += " Here are the other times I have:"
        return BookingTurn(
            text=text,
            payload=BookingPayload(
                mode=PayloadMode.NOT_AVAILABLE,
                slots=list(remaining),
                appointment_type=appointment_type,
                timezone=settings.timezone,
                quick_actions=[PROPOSE_OTHER_TIME_ACTION] if settings.allow_custom_time else [],
                message="slot_unavailable",
            ),
            replace_text=True,
        )

    def declined(self) -> BookingTurn:
        """Leave the AI text untouched; only close the booking UI."""
        return BookingTurn(text=None, payload=BookingPayload(mode=PayloadMode.DECLINED))


def _required_fields(settings: SchedulingSettings) -> list[str]:
    required = []
    if settings.require_name:
        required.append("name")
    if settings.require_phone:
        required.append("phone")
    return required


# Singleton
_responder: Optional[BookingResponder] = None


def get_booking_responder() -> BookingResponder:
    """Get singleton BookingResponder."""
    global _responder
    if _responder is None:
        _responder = BookingResponder()
    return _responder
