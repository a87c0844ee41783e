"""Booking flow types: settings, slots, payloads and per-conversation state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class BookingMode(str, Enum):
    """How a chosen slot becomes an appointment."""

    MANUAL_REQUEST = "manual_request"  # Staff confirms the request later
    DIRECT_BOOKING = "direct_booking"  # Slot is booked on the backend immediately


class BookingStage(str, Enum):
    """Stages of a conversation's booking flow."""

    IDLE = "idle"

    # Prerequisites
    AWAITING_NAME = "awaiting_name"
    AWAITING_PHONE = "awaiting_phone"

    # Offer
    AWAITING_BOOKING_CONFIRMATION = "awaiting_booking_confirmation"
    AWAITING_SLOT_CHOICE = "awaiting_slot_choice"
    AWAITING_CUSTOM_TIME = "awaiting_custom_time"

    # Terminal
    COMPLETED = "completed"
    DECLINED = "declined"


class PayloadMode(str, Enum):
    """What the chat UI renders for the current turn."""

    OFFER = "offer"
    SLOTS = "slots"
    COLLECT_TIME = "collect_time"
    CONFIRM = "confirm"
    CONFIRMED = "confirmed"
    AWAITING_NAME = "awaiting_name"
    AWAITING_PHONE = "awaiting_phone"
    DECLINED = "declined"
    NOT_AVAILABLE = "not_available"


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class TimeRange:
    """A working window within one day, as HH:MM strings."""

    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return _to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return _to_minutes(self.end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class WorkingDay:
    """Working hours for one weekday."""

    day: str
    enabled: bool = False
    ranges: tuple[TimeRange, ...] = ()

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "enabled": self.enabled,
            "ranges": [r.to_dict() for r in self.ranges],
        }


@dataclass(frozen=True)
class SchedulingSettings:
    """Normalized scheduling settings.

    Only ever built by the settings normalizer; everything downstream
    reads this strict shape instead of the raw backend payload.
    """

    enabled: bool = False
    chatbot_offer_booking: bool = False
    ask_after_quote: bool = False
    require_name: bool = False
    require_phone: bool = False
    booking_mode: BookingMode = BookingMode.MANUAL_REQUEST
    default_booking_type: str = "call"
    show_available_slots: bool = False
    allow_custom_time: bool = False
    timezone: str = "UTC"
    slot_duration_minutes: int = 30
    minimum_notice_hours: int = 1
    max_days_ahead: int = 30
    working_hours: tuple[WorkingDay, ...] = ()

    @property
    def booking_type_label(self) -> str:
        """Human-readable booking type ("site_visit" -> "site visit")."""
        return self.default_booking_type.replace("_", " ")

    def working_day(self, weekday: int) -> Optional[WorkingDay]:
        """Get the working-hours record for a weekday (Monday=0)."""
        name = WEEKDAYS[weekday]
        for day in self.working_hours:
            if day.day == name:
                return day
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "enabled": self.enabled,
            "chatbot_offer_booking": self.chatbot_offer_booking,
            "ask_after_quote": self.ask_after_quote,
            "require_name": self.require_name,
            "require_phone": self.require_phone,
            "booking_mode": self.booking_mode.value,
            "default_booking_type": self.default_booking_type,
            "show_available_slots": self.show_available_slots,
            "allow_custom_time": self.allow_custom_time,
            "timezone": self.timezone,
            "slot_duration_minutes": self.slot_duration_minutes,
            "minimum_notice_hours": self.minimum_notice_hours,
            "max_days_ahead": self.max_days_ahead,
            "working_hours": [d.to_dict() for d in self.working_hours],
        }


@dataclass
class BookingSlot:
    """Candidate appointment window."""

    id: str
    start: str  # ISO-8601
    end: Optional[str] = None
    label: Optional[str] = None
    timezone: str = "UTC"
    appointment_type: Optional[str] = None

    @property
    def dedup_key(self) -> tuple:
        """Identity used to drop repeated slots."""
        return (self.start, self.end, self.appointment_type, self.timezone)

    def to_dict(self) -> dict:
        """Convert to dictionary, excluding unset optional fields."""
        result = {
            "id": self.id,
            "start": self.start,
            "timezone": self.timezone,
        }
        if self.end:
            result["end"] = self.end
        if self.label:
            result["label"] = self.label
        if self.appointment_type:
            result["appointment_type"] = self.appointment_type
        return result


@dataclass(frozen=True)
class QuickAction:
    """Quick-reply chip; clicking it sends `value` as a user message."""

    label: str
    value: str

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value}


@dataclass
class BookingPayload:
    """Booking UI instructions attached to one chat reply."""

    mode: PayloadMode
    appointment_type: Optional[str] = None
    timezone: Optional[str] = None
    slots: list[BookingSlot] = field(default_factory=list)
    quick_actions: list[QuickAction] = field(default_factory=list)
    confirmed_slot: Optional[BookingSlot] = None
    appointment: Optional[dict] = None
    summary: Optional[dict] = None
    required_before_booking: list[str] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to the dictionary shape the chat UI renders."""
        result: dict = {"mode": self.mode.value}

        if self.appointment_type:
            result["appointment_type"] = self.appointment_type
        if self.timezone:
            result["timezone"] = self.timezone
        if self.mode == PayloadMode.SLOTS or self.slots:
            result["slots"] = [s.to_dict() for s in self.slots]
        if self.quick_actions:
            result["quickActions"] = [a.to_dict() for a in self.quick_actions]
        if self.confirmed_slot:
            result["confirmed_slot"] = self.confirmed_slot.to_dict()
        if self.appointment:
            result["appointment"] = dict(self.appointment)
        if self.summary:
            result["summary"] = dict(self.summary)
        if self.required_before_booking:
            result["requiredBeforeBooking"] = list(self.required_before_booking)
        if self.message:
            result["message"] = self.message

        return result


@dataclass
class BookingFlowState:
    """Booking dialogue state for one conversation.

    `completed` implies not `active`. Terminal records are kept so later
    messages do not restart a finished or declined flow.
    """

    active: bool = False
    stage: BookingStage = BookingStage.IDLE
    required_name: bool = False
    required_phone: bool = False
    name_collected: bool = False
    phone_collected: bool = False
    requested_type: str = "call"
    selected_slot: Optional[BookingSlot] = None
    proposed_custom_time: Optional[str] = None
    last_offered_slots: list[BookingSlot] = field(default_factory=list)
    completed: bool = False
    offer_shown: bool = False

    # Raw prerequisite answers, handed to the book-slot collaborator
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    appointment_id: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        """Completed or declined flows never re-trigger."""
        return self.completed or self.stage == BookingStage.DECLINED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "active": self.active,
            "stage": self.stage.value,
            "required_name": self.required_name,
            "required_phone": self.required_phone,
            "name_collected": self.name_collected,
            "phone_collected": self.phone_collected,
            "requested_type": self.requested_type,
            "selected_slot": self.selected_slot.to_dict() if self.selected_slot else None,
            "proposed_custom_time": self.proposed_custom_time,
            "last_offered_slots": [s.to_dict() for s in self.last_offered_slots],
            "completed": self.completed,
            "offer_shown": self.offer_shown,
            "contact_name": self.contact_name,
            "contact_phone": self.contact_phone,
            "appointment_id": self.appointment_id,
        }


def _to_minutes(hhmm: str) -> int:
    """Convert "HH:MM" to minutes since midnight ("24:00" -> 1440)."""
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)
