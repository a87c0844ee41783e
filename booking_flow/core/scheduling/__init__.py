"""
Scheduling Module

Provides settings normalization, slot synthesis and lookup, flow state,
and the booking flow controller that augments AI chat replies.

Usage:
    from booking_flow.core.scheduling import process_ai_reply

    # Process a chat turn
    augmented = await process_ai_reply(
        ai_reply={"assistant_message": "Sure, we can help with that."},
        conversation_key="conv-123",
        last_user_message="Can we schedule a call tomorrow?",
    )
    if augmented is not None:
        print(augmented["booking"]["mode"])  # offer, slots, ...
"""

# Types
from booking_flow.core.scheduling.types import (
    BookingMode,
    BookingStage,
    PayloadMode,
    TimeRange,
    WorkingDay,
    SchedulingSettings,
    QuickAction,
    BookingSlot,
    BookingPayload,
    BookingFlowState,
    WEEKDAYS,
    utcnow,
)

# Settings
from booking_flow.core.scheduling.normalizer import (
    normalize_scheduling_settings,
    normalize_working_hours,
)
from booking_flow.core.scheduling.settings_provider import (
    SchedulingSettingsProvider,
    get_settings_provider,
)

# Slots
from booking_flow.core.scheduling.synthesizer import (
    SlotSynthesizer,
    get_slot_synthesizer,
    generate_slots,
    format_slot_label,
)
from booking_flow.core.scheduling.availability import (
    AvailabilityService,
    normalize_slots,
)

# Flow state
from booking_flow.core.scheduling.store import (
    FlowStateStore,
    get_flow_store,
)

# Responses
from booking_flow.core.scheduling.response import (
    BookingResponder,
    BookingTurn,
    get_booking_responder,
    merge_reply,
)

# Flow controller (main orchestrator)
from booking_flow.core.scheduling.flow import (
    BookingFlowController,
    backend_handles_booking,
    get_booking_flow_controller,
    process_ai_reply,
)

__all__ = [
    # Types
    "BookingMode",
    "BookingStage",
    "PayloadMode",
    "TimeRange",
    "WorkingDay",
    "SchedulingSettings",
    "QuickAction",
    "BookingSlot",
    "BookingPayload",
    "BookingFlowState",
    "WEEKDAYS",
    "utcnow",
    # Settings
    "normalize_scheduling_settings",
    "normalize_working_hours",
    "SchedulingSettingsProvider",
    "get_settings_provider",
    # Slots
    "SlotSynthesizer",
    "get_slot_synthesizer",
    "generate_slots",
    "format_slot_label",
    "AvailabilityService",
    "normalize_slots",
    # Flow state
    "FlowStateStore",
    "get_flow_store",
    # Responses
    "BookingResponder",
    "BookingTurn",
    "get_booking_responder",
    "merge_reply",
    # Flow controller
    "BookingFlowController",
    "backend_handles_booking",
    "get_booking_flow_controller",
    "process_ai_reply",
]
