"""Tests for slot synthesis from working hours."""

from datetime import datetime, timedelta, timezone

import pytest

from booking_flow.core.scheduling import (
    SchedulingSettings,
    SlotSynthesizer,
    TimeRange,
    WorkingDay,
    format_slot_label,
    normalize_working_hours,
)

# Sunday 2024-01-07 20:00 UTC
SUNDAY_EVENING = datetime(2024, 1, 7, 20, 0, tzinfo=timezone.utc)


def make_settings(working_hours, **overrides) -> SchedulingSettings:
    """Build settings with normalized working hours."""
    values = {
        "enabled": True,
        "chatbot_offer_booking": True,
        "working_hours": normalize_working_hours(working_hours),
    }
    values.update(overrides)
    return SchedulingSettings(**values)


WEEKDAYS_9_TO_5 = {
    day: {"enabled": True, "ranges": [{"start": "09:00", "end": "17:00"}]}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
}


class TestSlotSynthesizer:
    """Test SlotSynthesizer.generate."""

    @pytest.fixture
    def synthesizer(self):
        """Create synthesizer with default iteration limit."""
        return SlotSynthesizer(iteration_limit=500)

    def test_monday_only_from_sunday_evening(self, synthesizer):
        """Test first slot lands on Monday within working hours."""
        settings = make_settings({"monday": {"enabled": True, "ranges": [{"start": "09:00", "end": "17:00"}]}})

        slots = synthesizer.generate(settings, count=5, now=SUNDAY_EVENING)

        assert len(slots) == 5
        first = datetime.fromisoformat(slots[0].start)
        assert first == datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)
        for slot in slots:
            start = datetime.fromisoformat(slot.start)
            end = datetime.fromisoformat(slot.end)
            assert start.weekday() == 0
            assert 9 <= start.hour < 17
            assert end - start == timedelta(minutes=30)

    def test_slots_are_consecutive_steps(self, synthesizer):
        """Test slots advance in slot-duration steps."""
        settings = make_settings(WEEKDAYS_9_TO_5)

        slots = synthesizer.generate(settings, count=3, now=SUNDAY_EVENING)

        assert [s.start for s in slots] == [
            "2024-01-08T09:00:00+00:00",
            "2024-01-08T09:30:00+00:00",
            "2024-01-08T10:00:00+00:00",
        ]

    def test_strictly_ascending_and_unique(self, synthesizer):
        """Test ordering and uniqueness across several days."""
        settings = make_settings(
            {
                "monday": {"enabled": True, "ranges": [{"start": "09:00", "end": "10:00"}]},
                "wednesday": {"enabled": True, "ranges": [{"start": "09:00", "end": "10:00"}]},
                "friday": {"enabled": True, "ranges": [{"start": "09:00", "end": "10:00"}]},
            },
        )

        slots = synthesizer.generate(settings, count=6, now=SUNDAY_EVENING)

        starts = [datetime.fromisoformat(s.start) for s in slots]
        assert len(slots) == 6
        assert starts == sorted(starts)
        assert len(set(starts)) == len(starts)
        assert len({s.dedup_key for s in slots}) == len(slots)
        assert [s.weekday() for s in starts] == [0, 0, 2, 2, 4, 4]

    def test_window_bounds(self, synthesizer):
        """Test slots start within minimum notice and horizon."""
        settings = make_settings(
            {day: {"enabled": True, "ranges": [{"start": "00:00", "end": "24:00"}]} for day in (
                "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
            )},
            minimum_notice_hours=3,
            max_days_ahead=1,
            slot_duration_minutes=60,
        )

        slots = synthesizer.generate(settings, count=50, now=SUNDAY_EVENING)

        earliest = SUNDAY_EVENING + timedelta(hours=3)
        horizon = SUNDAY_EVENING + timedelta(days=1)
        assert slots
        for slot in slots:
            start = datetime.fromisoformat(slot.start)
            assert earliest <= start < horizon

    def test_all_days_disabled_returns_empty(self, synthesizer):
        """Test termination when no day is enabled."""
        settings = make_settings({day: {"enabled": False} for day in (
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        )})

        assert synthesizer.generate(settings, count=5, now=SUNDAY_EVENING) == []

    def test_no_working_hours_returns_empty(self, synthesizer):
        """Test empty working hours."""
        settings = make_settings(None)

        assert synthesizer.generate(settings, count=5, now=SUNDAY_EVENING) == []

    def test_iteration_limit_bounds_search(self):
        """Test the search stops at the iteration limit."""
        synthesizer = SlotSynthesizer(iteration_limit=3)
        settings = make_settings(WEEKDAYS_9_TO_5)

        # Monday 00:00 is reached after one jump; 09:00 is 18 steps further
        assert synthesizer.generate(settings, count=5, now=SUNDAY_EVENING) == []

    def test_minimum_notice_rounds_up(self, synthesizer):
        """Test earliest start rounds up to the next slot boundary."""
        settings = make_settings(WEEKDAYS_9_TO_5, minimum_notice_hours=1)
        now = datetime(2024, 1, 8, 9, 10, 30, tzinfo=timezone.utc)

        slots = synthesizer.generate(settings, count=1, now=now)

        assert slots[0].start == "2024-01-08T10:30:00+00:00"

    def test_slot_must_end_within_range(self, synthesizer):
        """Test a slot never runs past the range end."""
        settings = make_settings(
            {"monday": {"enabled": True, "ranges": [{"start": "09:00", "end": "10:15"}]}},
            slot_duration_minutes=30,
        )

        slots = synthesizer.generate(settings, count=5, now=SUNDAY_EVENING)

        assert [datetime.fromisoformat(s.start).strftime("%H:%M") for s in slots[:2]] == [
            "09:00",
            "09:30",
        ]
        assert all(
            datetime.fromisoformat(s.start).strftime("%H:%M") != "10:00" for s in slots
        )

    def test_split_ranges(self, synthesizer):
        """Test a lunch break between two ranges is skipped."""
        settings = make_settings(
            {"monday": {"enabled": True, "ranges": [
                {"start": "11:00", "end": "12:00"},
                {"start": "13:00", "end": "14:00"},
            ]}},
            slot_duration_minutes=60,
        )

        slots = synthesizer.generate(settings, count=2, now=SUNDAY_EVENING)

        assert [s.start for s in slots] == [
            "2024-01-08T11:00:00+00:00",
            "2024-01-08T13:00:00+00:00",
        ]

    def test_local_timezone(self, synthesizer):
        """Test working hours are read in the settings timezone."""
        settings = make_settings(
            {"monday": {"enabled": True, "ranges": [{"start": "09:00", "end": "17:00"}]}},
            timezone="America/New_York",
        )

        slots = synthesizer.generate(settings, count=1, now=SUNDAY_EVENING)

        start = datetime.fromisoformat(slots[0].start)
        assert start.strftime("%H:%M") == "09:00"
        assert start.astimezone(timezone.utc) == datetime(2024, 1, 8, 14, 0, tzinfo=timezone.utc)
        assert slots[0].timezone == "America/New_York"
        assert slots[0].id == "slot_20240108T1400Z"

    def test_slot_fields(self, synthesizer):
        """Test id, label and type of a synthesized slot."""
        settings = make_settings(WEEKDAYS_9_TO_5, default_booking_type="site_visit")

        slot = synthesizer.generate(settings, count=1, now=SUNDAY_EVENING)[0]

        assert slot.id == "slot_20240108T0900Z"
        assert slot.label == "Mon, Jan 8 · 9:00 AM – 9:30 AM"
        assert slot.appointment_type == "site_visit"
        assert slot.timezone == "UTC"

    def test_zero_count(self, synthesizer):
        """Test count of zero."""
        settings = make_settings(WEEKDAYS_9_TO_5)

        assert synthesizer.generate(settings, count=0, now=SUNDAY_EVENING) == []

    def test_settings_without_matching_day_record(self, synthesizer):
        """Test a hand-built settings object with partial working hours."""
        settings = SchedulingSettings(
            working_hours=(WorkingDay("tuesday", True, (TimeRange("09:00", "10:00"),)),),
        )

        slots = synthesizer.generate(settings, count=2, now=SUNDAY_EVENING)

        assert [datetime.fromisoformat(s.start).weekday() for s in slots] == [1, 1]


class TestDaylightSavingTime:
    """Test synthesis across DST changes in America/New_York."""

    @pytest.fixture
    def synthesizer(self):
        """Create synthesizer with default iteration limit."""
        return SlotSynthesizer(iteration_limit=500)

    def test_minimum_notice_is_absolute(self, synthesizer):
        """Test notice spanning spring-forward counts real hours."""
        settings = make_settings(
            WEEKDAYS_9_TO_5, timezone="America/New_York", minimum_notice_hours=48
        )
        now = datetime(2026, 3, 7, 14, 0, tzinfo=timezone.utc)

        slots = synthesizer.generate(settings, count=3, now=now)

        assert slots[0].start == "2026-03-09T10:00:00-04:00"
        for slot in slots:
            assert datetime.fromisoformat(slot.start) >= now + timedelta(hours=48)

    def test_horizon_is_absolute(self, synthesizer):
        """Test a slot landing exactly on the horizon after fall-back is excluded."""
        settings = make_settings(
            {"wednesday": {"enabled": True, "ranges": [{"start": "09:00", "end": "10:00"}]}},
            timezone="America/New_York",
            minimum_notice_hours=0,
            max_days_ahead=30,
            slot_duration_minutes=60,
        )
        now = datetime(2026, 10, 5, 14, 0, tzinfo=timezone.utc)

        slots = synthesizer.generate(settings, count=10, now=now)

        assert [s.start[:10] for s in slots] == [
            "2026-10-07",
            "2026-10-14",
            "2026-10-21",
            "2026-10-28",
        ]
        for slot in slots:
            assert datetime.fromisoformat(slot.start) < now + timedelta(days=30)

    def test_spring_forward_gap_skipped(self, synthesizer):
        """Test wall-clock times that do not exist are never offered."""
        settings = make_settings(
            {"sunday": {"enabled": True, "ranges": [{"start": "00:00", "end": "24:00"}]}},
            timezone="America/New_York",
            minimum_notice_hours=0,
        )
        # Sunday 2026-03-08 00:00 local
        now = datetime(2026, 3, 8, 5, 0, tzinfo=timezone.utc)

        slots = synthesizer.generate(settings, count=6, now=now)

        starts = [datetime.fromisoformat(s.start) for s in slots]
        assert starts == sorted(starts)
        assert len(set(starts)) == len(starts)
        assert [s.strftime("%H:%M") for s in starts] == [
            "00:00", "00:30", "01:00", "01:30", "03:00", "03:30",
        ]
        assert slots[4].start == "2026-03-08T03:00:00-04:00"

    def test_fall_back_keeps_order_and_duration(self, synthesizer):
        """Test the repeated hour yields ascending slots of full duration."""
        settings = make_settings(
            {"sunday": {"enabled": True, "ranges": [{"start": "00:00", "end": "04:00"}]}},
            timezone="America/New_York",
            minimum_notice_hours=0,
            max_days_ahead=1,
            slot_duration_minutes=60,
        )
        # Sunday 2026-11-01 00:00 local
        now = datetime(2026, 11, 1, 4, 0, tzinfo=timezone.utc)

        slots = synthesizer.generate(settings, count=10, now=now)

        starts = [datetime.fromisoformat(s.start) for s in slots]
        ends = [datetime.fromisoformat(s.end) for s in slots]
        assert len(slots) == 4
        assert starts == sorted(starts)
        assert all(end - start == timedelta(hours=1) for start, end in zip(starts, ends))


class TestFormatSlotLabel:
    """Test slot label formatting."""

    def test_with_end(self):
        """Test label with start and end."""
        start = datetime(2024, 1, 8, 13, 0, tzinfo=timezone.utc)
        end = datetime(2024, 1, 8, 13, 30, tzinfo=timezone.utc)

        assert format_slot_label(start, end) == "Mon, Jan 8 · 1:00 PM – 1:30 PM"

    def test_without_end(self):
        """Test label with start only."""
        start = datetime(2024, 1, 9, 0, 15, tzinfo=timezone.utc)

        assert format_slot_label(start) == "Tue, Jan 9 · 12:15 AM"
