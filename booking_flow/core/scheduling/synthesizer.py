"""
Slot Synthesizer.

Builds candidate appointment slots from the weekly working-hours
calendar when no live availability is available. Greedy forward scan
in slot-duration steps; results are chronological by construction.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from booking_flow.config import settings as app_settings
from .types import BookingSlot, SchedulingSettings, TimeRange, utcnow

logger = logging.getLogger(__name__)


class SlotSynthesizer:
    """Generates slots from working hours, minimum notice and horizon."""

    def __init__(self, iteration_limit: Optional[int] = None):
        """Initialize synthesizer.

        Args:
            iteration_limit: Max increments walked per call (defaults to settings)
        """
        self.iteration_limit = iteration_limit or app_settings.slot_search_iteration_limit

    def generate(
        self,
        settings: SchedulingSettings,
        count: int = 5,
        now: Optional[datetime] = None,
    ) -> list[BookingSlot]:
        """Generate up to `count` slots.

        Args:
            settings: Normalized scheduling settings
            count: Maximum number of slots
            now: Reference time (defaults to current UTC time)

        Returns:
            Slots ordered by start time, possibly empty
        """
        if count <= 0:
            return []

        tz = ZoneInfo(settings.timezone)
        now_utc = (now or utcnow()).astimezone(timezone.utc)
        step = timedelta(minutes=settings.slot_duration_minutes)

        # Window bounds are instants; the walk itself is in local wall-clock time
        earliest = now_utc + timedelta(hours=settings.minimum_notice_hours)
        horizon = now_utc + timedelta(days=settings.max_days_ahead)
        cursor = _round_up(_to_local(earliest, tz), step)
        last_day = _to_local(horizon, tz).date()

        slots: list[BookingSlot] = []
        iterations = 0

        while len(slots) < count and cursor.date() <= last_day and iterations < self.iteration_limit:
            iterations += 1

            day = settings.working_day(cursor.weekday())
            if day is None or not day.enabled or not day.ranges:
                cursor = _next_midnight(cursor)
                continue

            if _fits(cursor, step, day.ranges):
                start = _resolve(cursor, tz)
                if start is not None:
                    start_utc = start.astimezone(timezone.utc)
                    if start_utc >= horizon:
                        break
                    if start_utc >= earliest:
                        slots.append(self._build_slot(start, step, tz, settings))

            previous = cursor
            cursor = cursor + step

            if cursor.date() != previous.date():
                continue

            minute_of_day = cursor.hour * 60 + cursor.minute
            if not any(minute_of_day < r.end_minutes for r in day.ranges):
                cursor = _next_midnight(cursor)

        if iterations >= self.iteration_limit and len(slots) < count:
            logger.debug(
                f"Slot search stopped after {iterations} increments "
                f"with {len(slots)}/{count} slots"
            )

        return slots

    def _build_slot(
        self,
        start: datetime,
        step: timedelta,
        tz: ZoneInfo,
        settings: SchedulingSettings,
    ) -> BookingSlot:
        start_utc = start.astimezone(timezone.utc)
        end = (start_utc + step).astimezone(tz)

        return BookingSlot(
            id=f"slot_{start_utc:%Y%m%dT%H%M}Z",
            start=start.isoformat(),
            end=end.isoformat(),
            label=format_slot_label(start, end),
            timezone=settings.timezone,
            appointment_type=settings.default_booking_type,
        )


def format_slot_label(start: datetime, end: Optional[datetime] = None) -> str:
    """Format a slot for display, e.g. "Mon, Jan 5 · 9:00 AM – 9:30 AM"."""
    label = f"{start:%a, %b} {start.day} · {_format_clock(start)}"
    if end is not None:
        label += f" – {_format_clock(end)}"
    return label


def _format_clock(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {meridiem}"


def _round_up(moment: datetime, step: timedelta) -> datetime:
    """Round up to the next multiple of `step` counted from midnight."""
    midnight = datetime.combine(moment.date(), time.min)
    remainder = (moment - midnight) % step
    if remainder:
        moment = moment + (step - remainder)
    return moment


def _to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Naive wall-clock time of an instant in `tz`."""
    return moment.astimezone(tz).replace(tzinfo=None)


def _resolve(local: datetime, tz: ZoneInfo) -> Optional[datetime]:
    """Attach `tz` to a wall-clock time, or None when a DST gap skips it."""
    aware = local.replace(tzinfo=tz)
    if _to_local(aware.astimezone(timezone.utc), tz) != local:
        return None
    return aware


def _next_midnight(moment: datetime) -> datetime:
    return datetime.combine(moment.date() + timedelta(days=1), time.min)


def _fits(cursor: datetime, step: timedelta, ranges: tuple[TimeRange, ...]) -> bool:
    """Start inside a range and end not past that range's end."""
    start = cursor.hour * 60 + cursor.minute
    end = start + int(step.total_seconds() // 60)
    return any(r.start_minutes <= start < r.end_minutes and end <= r.end_minutes for r in ranges)


# Singleton
_synthesizer: Optional[SlotSynthesizer] = None


def get_slot_synthesizer() -> SlotSynthesizer:
    """Get singleton SlotSynthesizer."""
    global _synthesizer
    if _synthesizer is None:
        _synthesizer = SlotSynthesizer()
    return _synthesizer


def generate_slots(
    settings: SchedulingSettings,
    count: int = 5,
    now: Optional[datetime] = None,
) -> list[BookingSlot]:
    """Convenience function to synthesize slots."""
    return get_slot_synthesizer().generate(settings, count=count, now=now)
