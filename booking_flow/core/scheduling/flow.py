"""
Booking Flow Controller.

State machine that decides, per chat turn, whether to leave the AI
reply untouched, start a booking flow, or advance/terminate an active
one. The result is the AI reply augmented with booking text and a
BookingPayload for the chat UI.

Stages:
    idle -> awaiting_name | awaiting_phone | awaiting_booking_confirmation
         | awaiting_slot_choice | awaiting_custom_time -> completed | declined
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_flow.config import settings as app_settings
from booking_flow.core.intent import (
    AFFIRMATIVE_RULES,
    CUSTOM_TIME_RULES,
    DECLINE_RULES,
    PHONE_RULES,
    SHOW_SLOTS_RULES,
    BookingIntentDetector,
    any_match,
    extract_clock_time,
    extract_ordinal,
    get_intent_detector,
)
from booking_flow.infra.backend import BackendClient, BackendClientError, get_backend_client
from .availability import AvailabilityService
from .response import (
    BookingResponder,
    BookingTurn,
    backend_booking_mode,
    get_booking_responder,
    merge_reply,
)
from .settings_provider import SchedulingSettingsProvider, get_settings_provider
from .store import FlowStateStore, get_flow_store
from .types import (
    BookingFlowState,
    BookingMode,
    BookingSlot,
    BookingStage,
    PayloadMode,
    SchedulingSettings,
    utcnow,
)

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MIN_CUSTOM_TIME_LENGTH = 3


def backend_handles_booking(ai_reply: Any) -> bool:
    """Check whether the backend already orchestrates booking for this reply.

    A non-empty `mode` under `booking`, `meta.booking` or
    `ui_action.booking` means server-side orchestration has taken over and
    this controller must stand down.
    """
    return backend_booking_mode(ai_reply) is not None


def quote_fields_complete(ai_reply: Any) -> bool:
    """Check whether the AI reports no outstanding required fields."""
    if not isinstance(ai_reply, dict):
        return False
    required = ai_reply.get("required_infos")
    if required is None:
        required = ai_reply.get("looking_for")
    return isinstance(required, list) and len(required) == 0


class BookingFlowController:
    """
    Booking dialogue state machine.

    Collaborators are injected so each conversation store, settings
    source and slot source can be replaced in tests.
    """

    def __init__(
        self,
        store: FlowStateStore,
        settings_provider: SchedulingSettingsProvider,
        availability: AvailabilityService,
        backend: Optional[BackendClient] = None,
        responder: Optional[BookingResponder] = None,
        detector: Optional[BookingIntentDetector] = None,
        clock: Callable[[], datetime] = utcnow,
        offer_limit: Optional[int] = None,
    ):
        """Initialize controller.

        Args:
            store: Flow state store (the only place flow records live)
            settings_provider: Cached scheduling settings
            availability: Live slots with synthesis fallback
            backend: Book-slot collaborator for direct booking (optional)
            responder: Text and payload builder
            detector: Booking intent detector
            clock: Current time, injectable for deterministic tests
            offer_limit: Max slots offered per turn (defaults to settings)
        """
        self._store = store
        self._settings_provider = settings_provider
        self._availability = availability
        self._backend = backend
        self._responder = responder or get_booking_responder()
        self._detector = detector or get_intent_detector()
        self._clock = clock
        self._offer_limit = (
            offer_limit if offer_limit is not None else app_settings.slot_offer_limit
        )

    @property
    def store(self) -> FlowStateStore:
        return self._store

    async def process(
        self,
        ai_reply: Any,
        conversation_key: str,
        last_user_message: Optional[str] = None,
    ) -> Optional[dict]:
        """Process one chat turn.

        Args:
            ai_reply: Upstream AI reply (opaque dict)
            conversation_key: Conversation identity
            last_user_message: The user's latest message, if any

        Returns:
            Augmented copy of the AI reply, or None to leave it untouched
        """
        if backend_handles_booking(ai_reply):
            logger.debug(f"Backend booking metadata present for {conversation_key}, standing down")
            return None

        settings = await self._settings_provider.get()
        if not settings.enabled or not settings.chatbot_offer_booking:
            return None

        flow = self._store.get(conversation_key)
        message = (last_user_message or "").strip()
        turn: Optional[BookingTurn] = None

        if flow.active and message:
            turn = await self._advance(conversation_key, settings, flow, message)
        elif not flow.active and not flow.is_closed and self._detector.detect(message):
            logger.info(f"Booking intent detected for {conversation_key}")
            turn = await self._start(conversation_key, settings, flow)
        elif (
            not flow.active
            and settings.ask_after_quote
            and not flow.offer_shown
            and not flow.is_closed
            and quote_fields_complete(ai_reply)
        ):
            logger.info(f"Quote complete for {conversation_key}, offering booking")
            turn = await self._start(conversation_key, settings, flow)

        if turn is None:
            return None
        return merge_reply(ai_reply, turn)

    def get_flow(self, conversation_key: str) -> Optional[BookingFlowState]:
        """Current flow for a conversation, without creating one."""
        return self._store.peek(conversation_key)

    def dismiss(self, conversation_key: str) -> BookingFlowState:
        """Dismiss the booking flow (user closed the booking UI)."""
        return self._store.dismiss(conversation_key)

    def reset(self, conversation_key: str) -> bool:
        """Forget a conversation's flow (new session)."""
        return self._store.reset(conversation_key)

    # === Start ===

    async def _start(
        self,
        key: str,
        settings: SchedulingSettings,
        flow: BookingFlowState,
    ) -> BookingTurn:
        """Collect the next prerequisite or make the booking offer."""
        requirements = {
            "required_name": settings.require_name,
            "required_phone": settings.require_phone,
            "requested_type": settings.default_booking_type,
        }

        if settings.require_name and not flow.name_collected:
            self._store.update(
                key,
                active=True,
                stage=BookingStage.AWAITING_NAME,
                offer_shown=True,
                **requirements,
            )
            return self._responder.ask_name(settings)

        if settings.require_phone and not flow.phone_collected:
            self._store.update(
                key,
                active=True,
                stage=BookingStage.AWAITING_PHONE,
                offer_shown=True,
                **requirements,
            )
            return self._responder.ask_phone(settings)

        slots: list[BookingSlot] = []
        if settings.show_available_slots:
            slots = await self._availability.find_slots(
                settings,
                limit=self._offer_limit,
                now=self._clock(),
            )

        turn = self._responder.offer(settings, slots)
        offered = turn.payload.slots
        self._store.update(
            key,
            active=True,
            stage=(
                BookingStage.AWAITING_SLOT_CHOICE
                if turn.payload.mode == PayloadMode.SLOTS
                else BookingStage.AWAITING_BOOKING_CONFIRMATION
            ),
            offer_shown=True,
            last_offered_slots=list(offered),
            **requirements,
        )
        return turn

    # === Advance ===

    async def _advance(
        self,
        key: str,
        settings: SchedulingSettings,
        flow: BookingFlowState,
        message: str,
    ) -> Optional[BookingTurn]:
        """Move an active flow forward based on the user's message."""
        # Decline wins at every stage
        if any_match(DECLINE_RULES, message):
            self._store.update(key, active=False, stage=BookingStage.DECLINED, completed=False)
            return self._responder.declined()

        if flow.stage == BookingStage.AWAITING_NAME:
            if len(message) < MIN_NAME_LENGTH:
                return None
            self._store.update(key, name_collected=True, contact_name=message)
            if settings.require_phone and not flow.phone_collected:
                self._store.update(
                    key,
                    stage=BookingStage.AWAITING_PHONE,
                    required_phone=True,
                )
                return self._responder.ask_phone(settings, after_name=True)
            return await self._start(key, settings, flow)

        if flow.stage == BookingStage.AWAITING_PHONE:
            if not any_match(PHONE_RULES, message):
                return None
            self._store.update(key, phone_collected=True, contact_phone=message)
            return await self._start(key, settings, flow)

        if flow.stage == BookingStage.AWAITING_SLOT_CHOICE:
            slot = match_offered_slot(flow.last_offered_slots, message)
            if slot is not None:
                return await self._select_slot(key, settings, flow, slot)

        if any_match(SHOW_SLOTS_RULES, message):
            return self._show_slots(key, settings, flow)

        if any_match(CUSTOM_TIME_RULES, message):
            return self._ask_time(key, settings, flow)

        if flow.stage == BookingStage.AWAITING_BOOKING_CONFIRMATION and any_match(
            AFFIRMATIVE_RULES, message
        ):
            slots = self._availability.synthesize(
                settings, limit=self._offer_limit, now=self._clock()
            )
            if slots:
                return self._show_slots(key, settings, flow, slots)
            return self._ask_time(key, settings, flow)

        if flow.stage == BookingStage.AWAITING_CUSTOM_TIME and len(message) >= MIN_CUSTOM_TIME_LENGTH:
            self._store.update(
                key,
                proposed_custom_time=message,
                stage=BookingStage.COMPLETED,
                completed=True,
                active=False,
            )
            return self._responder.time_noted(settings, flow.requested_type, message)

        logger.debug(f"No booking transition for {key} at stage {flow.stage.value}")
        return None

    def _show_slots(
        self,
        key: str,
        settings: SchedulingSettings,
        flow: BookingFlowState,
        slots: Optional[list[BookingSlot]] = None,
    ) -> BookingTurn:
        if slots is None:
            slots = self._availability.synthesize(
                settings, limit=self._offer_limit, now=self._clock()
            )
        self._store.update(
            key,
            stage=BookingStage.AWAITING_SLOT_CHOICE,
            last_offered_slots=list(slots),
        )
        return self._responder.slots(settings, slots, flow.requested_type)

    def _ask_time(
        self,
        key: str,
        settings: SchedulingSettings,
        flow: BookingFlowState,
    ) -> BookingTurn:
        self._store.update(key, stage=BookingStage.AWAITING_CUSTOM_TIME)
        return self._responder.ask_time(settings, flow.requested_type)

    async def _select_slot(
        self,
        key: str,
        settings: SchedulingSettings,
        flow: BookingFlowState,
        slot: BookingSlot,
    ) -> BookingTurn:
        """Book (direct mode) or request (manual mode) the chosen slot."""
        appointment_type = flow.requested_type

        if settings.booking_mode == BookingMode.DIRECT_BOOKING and self._backend is not None:
            try:
                data = await self._backend.book_slot(
                    conversation_key=key,
                    slot_id=slot.id,
                    start=slot.start,
                    end=slot.end,
                    appointment_type=appointment_type,
                    timezone=slot.timezone,
                    notes=_contact_notes(flow),
                )
            except BackendClientError as e:
                logger.warning(f"Booking slot {slot.id} for {key} failed: {e}")
                remaining = [s for s in flow.last_offered_slots if s.dedup_key != slot.dedup_key]
                self._store.update(key, last_offered_slots=remaining)
                return self._responder.slot_unavailable(settings, remaining, appointment_type)

            appointment = appointment_from_response(data, slot, appointment_type)
        else:
            appointment = _appointment_summary(slot, appointment_type, "pending_confirmation")

        self._store.update(
            key,
            selected_slot=slot,
            appointment_id=appointment.get("id"),
            stage=BookingStage.COMPLETED,
            completed=True,
            active=False,
        )
        logger.info(f"Slot {slot.id} chosen for {key} ({appointment['status']})")
        return self._responder.slot_confirmed(settings, slot, appointment_type, appointment)


def match_offered_slot(slots: list[BookingSlot], message: str) -> Optional[BookingSlot]:
    """Resolve a message to one of the offered slots.

    Accepts an ordinal ("2", "option 2", "the second one"), a slot id or
    label, or a clock time matching exactly one slot.
    """
    if not slots:
        return None

    text = message.strip()
    lowered = text.lower()
    for slot in slots:
        if text == slot.id or (slot.label and lowered == slot.label.lower()):
            return slot

    ordinal = extract_ordinal(text)
    if ordinal is not None:
        return slots[ordinal - 1] if ordinal <= len(slots) else None

    clock = extract_clock_time(text)
    if clock is not None:
        matches = [s for s in slots if _local_clock(s) == clock]
        if len(matches) == 1:
            return matches[0]

    return None


def appointment_from_response(data: dict, slot: BookingSlot, appointment_type: str) -> dict:
    """Build the appointment summary from a book-slot response."""
    appointment = data.get("appointment")
    if not isinstance(appointment, dict):
        booking = data.get("booking")
        appointment = booking.get("appointment") if isinstance(booking, dict) else None
    if not isinstance(appointment, dict):
        appointment = {}

    summary = _appointment_summary(
        slot,
        appointment.get("type") or appointment.get("appointmentType") or appointment_type,
        appointment.get("status") or "scheduled",
    )
    appointment_id = appointment.get("id") or data.get("appointment_id") or data.get("id")
    if appointment_id:
        summary["id"] = str(appointment_id)
    start_at = appointment.get("start_at") or appointment.get("startAt")
    end_at = appointment.get("end_at") or appointment.get("endAt")
    if start_at:
        summary["start_at"] = start_at
    if end_at:
        summary["end_at"] = end_at
    return summary


def _appointment_summary(slot: BookingSlot, appointment_type: str, status: str) -> dict:
    summary = {
        "type": appointment_type,
        "start_at": slot.start,
        "timezone": slot.timezone,
        "status": status,
    }
    if slot.end:
        summary["end_at"] = slot.end
    return summary


def _contact_notes(flow: BookingFlowState) -> Optional[str]:
    parts = []
    if flow.contact_name:
        parts.append(f"Name: {flow.contact_name}")
    if flow.contact_phone:
        parts.append(f"Phone: {flow.contact_phone}")
    return "; ".join(parts) or None


def _local_clock(slot: BookingSlot) -> Optional[tuple[int, int]]:
    """Wall-clock start of a slot in its own timezone."""
    try:
        start = datetime.fromisoformat(slot.start)
    except ValueError:
        return None
    if start.tzinfo is not None:
        try:
            start = start.astimezone(ZoneInfo(slot.timezone))
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Unknown slot timezone {slot.timezone!r}, using stated offset")
    return start.hour, start.minute


# Singleton
_controller: Optional[BookingFlowController] = None


def get_booking_flow_controller() -> BookingFlowController:
    """Get singleton BookingFlowController wired to the backend client."""
    global _controller
    if _controller is None:
        backend = get_backend_client()
        _controller = BookingFlowController(
            store=get_flow_store(),
            settings_provider=get_settings_provider(),
            availability=AvailabilityService(client=backend),
            backend=backend,
        )
    return _controller


async def process_ai_reply(
    ai_reply: Any,
    conversation_key: str,
    last_user_message: Optional[str] = None,
) -> Optional[dict]:
    """Convenience function to process one chat turn.

    Args:
        ai_reply: Upstream AI reply
        conversation_key: Conversation identity
        last_user_message: The user's latest message

    Returns:
        Augmented reply, or None when the reply should be used unchanged
    """
    controller = get_booking_flow_controller()
    return await controller.process(ai_reply, conversation_key, last_user_message)
