"""
Scheduling Settings Normalizer.

The single translation boundary between the loosely-shaped settings
payload returned by the backend and the strict SchedulingSettings used
everywhere else.

Tolerates:
- missing fields (documented defaults apply)
- snake_case and camelCase key variants
- chatbot options nested one level under `chatbot_booking`
- working hours as a list of day records or a mapping keyed by day name
"""

import logging
import re
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .types import (
    WEEKDAYS,
    BookingMode,
    SchedulingSettings,
    TimeRange,
    WorkingDay,
)

logger = logging.getLogger(__name__)


DEFAULT_RANGE_START = "09:00"
DEFAULT_RANGE_END = "17:00"

_HHMM_RX = re.compile(r"^\s*([01]?\d|2[0-3]):([0-5]\d)\s*$")
_TRUE_STRINGS = {"true", "yes", "on", "1", "y"}
_FALSE_STRINGS = {"false", "no", "off", "0", "n", ""}
_DAY_ALIASES = {name[:3]: name for name in WEEKDAYS}


def normalize_scheduling_settings(raw: Any) -> SchedulingSettings:
    """Normalize a raw settings payload.

    Never raises; anything that cannot be read yields the defaults.

    Args:
        raw: Settings payload as returned by the backend (any shape)

    Returns:
        Fully populated SchedulingSettings
    """
    if not isinstance(raw, dict) or not raw:
        return SchedulingSettings()

    try:
        return _normalize(raw)
    except Exception as e:
        logger.warning(f"Unreadable scheduling settings, using defaults: {e}")
        return SchedulingSettings()


def _normalize(raw: dict) -> SchedulingSettings:
    cb = raw.get("chatbot_booking")
    if not isinstance(cb, dict):
        cb = {}

    defaults = SchedulingSettings()

    return SchedulingSettings(
        enabled=_to_bool(
            _pick(raw.get("scheduling_enabled"), raw.get("schedulingEnabled"), raw.get("enabled")),
            defaults.enabled,
        ),
        chatbot_offer_booking=_to_bool(
            _pick(
                raw.get("chatbotOfferBooking"),
                raw.get("chatbot_offers_booking"),
                cb.get("chatbot_booking_enabled"),
                cb.get("enabled"),
                raw.get("chatbot_booking_enabled"),
            ),
            defaults.chatbot_offer_booking,
        ),
        ask_after_quote=_to_bool(
            _pick(
                raw.get("chatbotCollectBookingAfterQuote"),
                cb.get("ask_after_quote"),
                raw.get("ask_after_quote"),
                raw.get("askAfterQuote"),
            ),
            defaults.ask_after_quote,
        ),
        require_name=_to_bool(
            _pick(
                raw.get("chatbotBookingRequiresName"),
                cb.get("require_name"),
                raw.get("require_name"),
                raw.get("requireName"),
            ),
            defaults.require_name,
        ),
        require_phone=_to_bool(
            _pick(
                raw.get("chatbotBookingRequiresPhone"),
                cb.get("require_phone"),
                raw.get("require_phone"),
                raw.get("requirePhone"),
            ),
            defaults.require_phone,
        ),
        booking_mode=_to_booking_mode(
            _pick(cb.get("booking_mode"), raw.get("booking_mode"), raw.get("bookingMode"))
        ),
        default_booking_type=_to_tag(
            _pick(
                cb.get("default_booking_type"),
                raw.get("default_booking_type"),
                raw.get("defaultBookingType"),
            ),
            defaults.default_booking_type,
        ),
        show_available_slots=_to_bool(
            _pick(
                raw.get("chatbotShowSlotsWhenAvailable"),
                cb.get("show_available_slots"),
                raw.get("show_available_slots"),
                raw.get("showAvailableSlots"),
            ),
            defaults.show_available_slots,
        ),
        allow_custom_time=_to_bool(
            _pick(
                raw.get("chatbotAllowUserProposedTime"),
                cb.get("allow_custom_time"),
                raw.get("allow_custom_time"),
                raw.get("allowCustomTime"),
            ),
            defaults.allow_custom_time,
        ),
        timezone=_to_timezone(
            _pick(raw.get("timezone"), raw.get("time_zone"), raw.get("timeZone"))
        ),
        slot_duration_minutes=_to_int(
            _pick(raw.get("slot_duration_minutes"), raw.get("slotDurationMinutes")),
            defaults.slot_duration_minutes,
            minimum=1,
        ),
        minimum_notice_hours=_to_int(
            _pick(raw.get("minimum_notice_hours"), raw.get("minimumNoticeHours")),
            defaults.minimum_notice_hours,
            minimum=0,
        ),
        max_days_ahead=_to_int(
            _pick(raw.get("max_days_ahead"), raw.get("maxDaysAhead")),
            defaults.max_days_ahead,
            minimum=1,
        ),
        working_hours=normalize_working_hours(
            _pick(raw.get("working_hours"), raw.get("workingHours"))
        ),
    )


def normalize_working_hours(raw: Any) -> tuple[WorkingDay, ...]:
    """Normalize working hours to seven records ordered Monday to Sunday.

    Accepts a list of `{day, enabled, ranges}` records or a mapping of
    day name to `{enabled, ranges}`. Days missing from the input are
    disabled. Returns an empty tuple when no day can be read.
    """
    if isinstance(raw, dict):
        entries = [(day, value) for day, value in raw.items()]
    elif isinstance(raw, (list, tuple)):
        entries = [
            (item.get("day"), item) for item in raw if isinstance(item, dict)
        ]
    else:
        return ()

    days: dict[str, WorkingDay] = {}
    for day_raw, value in entries:
        name = _to_day_name(day_raw)
        if name is None:
            logger.debug(f"Ignoring working hours for unknown day: {day_raw!r}")
            continue
        if name in days:
            continue
        days[name] = _to_working_day(name, value)

    if not days:
        return ()

    return tuple(days.get(name, WorkingDay(day=name)) for name in WEEKDAYS)


def _to_working_day(name: str, value: Any) -> WorkingDay:
    if not isinstance(value, dict):
        return WorkingDay(day=name)

    ranges_raw = value.get("ranges")
    if ranges_raw is None and ("start" in value or "end" in value):
        ranges_raw = [{"start": value.get("start"), "end": value.get("end")}]

    ranges = []
    if isinstance(ranges_raw, (list, tuple)):
        for item in ranges_raw:
            time_range = _to_time_range(item)
            if time_range is not None:
                ranges.append(time_range)

    return WorkingDay(
        day=name,
        enabled=_to_bool(value.get("enabled"), False),
        ranges=tuple(ranges),
    )


def _to_time_range(item: Any) -> Optional[TimeRange]:
    if not isinstance(item, dict):
        return None

    start = _to_hhmm(item.get("start") or DEFAULT_RANGE_START)
    end = _to_hhmm(item.get("end") or DEFAULT_RANGE_END)
    if start is None or end is None:
        logger.debug(f"Dropping unreadable working-hours range: {item!r}")
        return None

    time_range = TimeRange(start=start, end=end)
    if time_range.end_minutes <= time_range.start_minutes:
        logger.debug(f"Dropping empty working-hours range: {item!r}")
        return None
    return time_range


# ==================================
# Coercion helpers
# ==================================


def _pick(*candidates: Any) -> Any:
    """First candidate that is not None."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _to_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return default


def _to_int(value: Any, default: int, minimum: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number >= minimum else default


def _to_tag(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _to_booking_mode(value: Any) -> BookingMode:
    if isinstance(value, str):
        try:
            return BookingMode(value.strip().lower())
        except ValueError:
            logger.debug(f"Unknown booking mode {value!r}, using manual_request")
    return BookingMode.MANUAL_REQUEST


def _to_timezone(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return "UTC"
    name = value.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return "UTC"
    return name


def _to_day_name(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in WEEKDAYS:
        return lowered
    return _DAY_ALIASES.get(lowered[:3]) if len(lowered) >= 3 else None


def _to_hhmm(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    if value.strip() == "24:00":
        return "24:00"
    match = _HHMM_RX.match(value)
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"
