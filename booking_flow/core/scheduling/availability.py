"""
Slot availability.

Reads live availability from the backend and falls back to locally
synthesized slots when the backend cannot be reached. Raw backend slots
are validated, deduplicated and ordered before anything is displayed.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_flow.infra.backend import BackendClient, BackendClientError
from .synthesizer import SlotSynthesizer, format_slot_label, get_slot_synthesizer
from .types import BookingSlot, SchedulingSettings, utcnow

logger = logging.getLogger(__name__)


def extract_slot_list(data: Any) -> list:
    """Pull the slot list out of a backend response.

    Accepts a bare list or an object with `slots`, `data` or `items`.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("slots", "data", "items"):
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


def parse_slot(
    raw: Any,
    default_timezone: str = "UTC",
    default_type: Optional[str] = None,
    index: int = 0,
) -> Optional[BookingSlot]:
    """Build a BookingSlot from a raw backend record.

    Returns None when no start instant can be resolved.
    """
    if not isinstance(raw, dict):
        return None

    tz_name = _first_str(raw, "timezone", "timeZone") or default_timezone
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        tz_name, tz = default_timezone, ZoneInfo(default_timezone)

    start = _parse_instant(_first_str(raw, "startAt", "start_at", "start", "start_time"), tz)
    if start is None:
        day = _first_str(raw, "date")
        clock = _first_str(raw, "time")
        if day and clock:
            start = _parse_instant(f"{day}T{clock}", tz)
    if start is None:
        logger.debug(f"Dropping slot without a start time: {raw!r}")
        return None

    end = _parse_instant(_first_str(raw, "endAt", "end_at", "end", "end_time"), tz)
    if end is not None and end <= start:
        end = None

    slot_id = _first_str(raw, "id", "slot_id") or f"slot_{index + 1}"
    label = _first_str(raw, "label") or format_slot_label(
        start.astimezone(tz), end.astimezone(tz) if end else None
    )

    return BookingSlot(
        id=slot_id,
        start=start.isoformat(),
        end=end.isoformat() if end else None,
        label=label,
        timezone=tz_name,
        appointment_type=_first_str(raw, "appointment_type", "appointmentType", "type")
        or default_type,
    )


def dedupe_slots(slots: Iterable[BookingSlot]) -> list[BookingSlot]:
    """Drop invalid and repeated slots and order by start time.

    Slots are repeated when they share (start, end, type, timezone).
    """
    seen: set[tuple] = set()
    unique: list[tuple[datetime, BookingSlot]] = []

    for slot in slots:
        start = _parse_instant(slot.start, timezone.utc)
        if start is None:
            logger.debug(f"Dropping slot with unreadable start: {slot.start!r}")
            continue
        if slot.dedup_key in seen:
            continue
        seen.add(slot.dedup_key)
        unique.append((start, slot))

    unique.sort(key=lambda pair: pair[0])
    return [slot for _, slot in unique]


def normalize_slots(
    data: Any,
    settings: SchedulingSettings,
    limit: int = 5,
) -> list[BookingSlot]:
    """Parse, validate, dedupe and cap a raw backend availability response."""
    parsed = [
        parse_slot(
            raw,
            default_timezone=settings.timezone,
            default_type=settings.default_booking_type,
            index=i,
        )
        for i, raw in enumerate(extract_slot_list(data))
    ]
    return dedupe_slots(s for s in parsed if s is not None)[:limit]


class AvailabilityService:
    """Live slot lookup with local synthesis as fallback."""

    def __init__(
        self,
        client: Optional[BackendClient] = None,
        synthesizer: Optional[SlotSynthesizer] = None,
    ):
        """Initialize service.

        Args:
            client: Backend client (no live lookup when None)
            synthesizer: Slot synthesizer used as fallback
        """
        self._client = client
        self._synthesizer = synthesizer or get_slot_synthesizer()

    def synthesize(
        self,
        settings: SchedulingSettings,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> list[BookingSlot]:
        """Generate slots locally from working hours."""
        return self._synthesizer.generate(settings, count=limit, now=now)

    async def find_slots(
        self,
        settings: SchedulingSettings,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> list[BookingSlot]:
        """Fetch live slots, falling back to synthesis on failure.

        No retry: a single failed call goes straight to synthesis.

        Args:
            settings: Normalized scheduling settings
            limit: Maximum slots returned
            now: Reference time (defaults to current UTC time)

        Returns:
            Up to `limit` slots ordered by start time
        """
        if self._client is None:
            return self.synthesize(settings, limit=limit, now=now)

        now = now or utcnow()
        date_from = now.date().isoformat()
        date_to = (now + timedelta(days=settings.max_days_ahead)).date().isoformat()

        try:
            data = await self._client.get_available_slots(
                appointment_type=settings.default_booking_type,
                date_from=date_from,
                date_to=date_to,
            )
        except BackendClientError as e:
            logger.warning(f"Live availability unavailable, synthesizing slots: {e}")
            return self.synthesize(settings, limit=limit, now=now)

        slots = normalize_slots(data, settings, limit=limit)
        logger.debug(f"Live availability returned {len(slots)} slots")
        return slots


def _first_str(raw: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_instant(value: Optional[str], tz: tzinfo) -> Optional[datetime]:
    """Parse an ISO-8601 string; naive values are read in `tz`."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return moment
