"""Tests for live availability parsing and fallback."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from booking_flow.core.scheduling import (
    AvailabilityService,
    BookingSlot,
    SchedulingSettings,
    normalize_slots,
    normalize_working_hours,
)
from booking_flow.core.scheduling.availability import (
    dedupe_slots,
    extract_slot_list,
    parse_slot,
)
from booking_flow.infra.backend import BackendClientError

NOW = datetime(2024, 1, 7, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    """Settings with Monday working hours."""
    return SchedulingSettings(
        enabled=True,
        chatbot_offer_booking=True,
        show_available_slots=True,
        default_booking_type="call",
        timezone="UTC",
        max_days_ahead=14,
        working_hours=normalize_working_hours(
            {"monday": {"enabled": True, "ranges": [{"start": "09:00", "end": "17:00"}]}}
        ),
    )


class TestExtractSlotList:
    """Test extract_slot_list."""

    def test_bare_list(self):
        """Test list response."""
        assert extract_slot_list([{"start": "x"}]) == [{"start": "x"}]

    @pytest.mark.parametrize("key", ["slots", "data", "items"])
    def test_wrapped_list(self, key):
        """Test object wrapping a list."""
        assert extract_slot_list({key: [1, 2]}) == [1, 2]

    @pytest.mark.parametrize("data", [None, "slots", {"slots": "none"}, {}])
    def test_unreadable(self, data):
        """Test unreadable responses yield no slots."""
        assert extract_slot_list(data) == []


class TestParseSlot:
    """Test parse_slot."""

    def test_camel_case_record(self):
        """Test startAt/endAt keys."""
        slot = parse_slot(
            {"id": "abc", "startAt": "2024-01-08T09:00:00Z", "endAt": "2024-01-08T09:30:00Z"},
            default_type="call",
        )

        assert slot.id == "abc"
        assert slot.start == "2024-01-08T09:00:00+00:00"
        assert slot.end == "2024-01-08T09:30:00+00:00"
        assert slot.label == "Mon, Jan 8 · 9:00 AM – 9:30 AM"
        assert slot.appointment_type == "call"

    def test_date_and_time_fields(self):
        """Test separate date and time fields read in the default timezone."""
        slot = parse_slot(
            {"date": "2024-01-08", "time": "14:00"},
            default_timezone="Europe/Berlin",
            index=2,
        )

        assert slot.id == "slot_3"
        assert slot.start == "2024-01-08T14:00:00+01:00"
        assert slot.timezone == "Europe/Berlin"

    def test_slot_timezone_overrides_default(self):
        """Test a slot's own timezone is used."""
        slot = parse_slot(
            {"start": "2024-01-08T09:00:00", "timezone": "America/New_York"},
            default_timezone="UTC",
        )

        assert slot.start == "2024-01-08T09:00:00-05:00"
        assert slot.timezone == "America/New_York"

    def test_unknown_timezone_uses_default(self):
        """Test unknown slot timezone."""
        slot = parse_slot({"start": "2024-01-08T09:00:00", "timezone": "Nowhere/Land"})

        assert slot.timezone == "UTC"
        assert slot.start == "2024-01-08T09:00:00+00:00"

    def test_missing_start_dropped(self):
        """Test slot without a start."""
        assert parse_slot({"id": "x", "end": "2024-01-08T09:30:00Z"}) is None

    def test_unparseable_start_dropped(self):
        """Test slot with an unreadable start."""
        assert parse_slot({"start": "next monday"}) is None

    def test_end_before_start_cleared(self):
        """Test an end not after the start is dropped."""
        slot = parse_slot({"start": "2024-01-08T09:00:00Z", "end": "2024-01-08T08:00:00Z"})

        assert slot.end is None
        assert slot.label == "Mon, Jan 8 · 9:00 AM"

    def test_explicit_label_and_type(self):
        """Test backend-provided label and type are kept."""
        slot = parse_slot({
            "slot_id": "s-1",
            "start_time": "2024-01-08T09:00:00Z",
            "label": "Monday morning",
            "type": "meeting",
        }, default_type="call")

        assert slot.id == "s-1"
        assert slot.label == "Monday morning"
        assert slot.appointment_type == "meeting"

    def test_non_dict(self):
        """Test non-object records."""
        assert parse_slot("2024-01-08T09:00") is None


class TestDedupeSlots:
    """Test dedupe_slots."""

    def test_removes_duplicates_and_sorts(self):
        """Test duplicates removed and order by instant."""
        later = BookingSlot(id="b", start="2024-01-08T10:00:00+00:00", end="2024-01-08T10:30:00+00:00")
        earlier = BookingSlot(id="a", start="2024-01-08T09:00:00+00:00", end="2024-01-08T09:30:00+00:00")
        repeat = BookingSlot(id="c", start="2024-01-08T10:00:00+00:00", end="2024-01-08T10:30:00+00:00")

        result = dedupe_slots([later, earlier, repeat])

        assert [s.id for s in result] == ["a", "b"]

    def test_orders_by_instant_across_offsets(self):
        """Test ordering uses the instant, not the text."""
        berlin = BookingSlot(id="berlin", start="2024-01-08T10:00:00+01:00")
        utc = BookingSlot(id="utc", start="2024-01-08T09:30:00+00:00")

        assert [s.id for s in dedupe_slots([utc, berlin])] == ["berlin", "utc"]

    def test_same_start_different_type_kept(self):
        """Test slots differing in type are distinct."""
        call = BookingSlot(id="a", start="2024-01-08T09:00:00+00:00", appointment_type="call")
        visit = BookingSlot(id="b", start="2024-01-08T09:00:00+00:00", appointment_type="visit")

        assert len(dedupe_slots([call, visit])) == 2

    def test_drops_unreadable_start(self):
        """Test slots with unreadable starts are dropped."""
        bad = BookingSlot(id="bad", start="soon")

        assert dedupe_slots([bad]) == []


class TestNormalizeSlots:
    """Test normalize_slots."""

    def test_caps_and_orders(self, settings):
        """Test limit and ordering."""
        data = {"slots": [
            {"start": f"2024-01-08T{hour:02d}:00:00Z"} for hour in (15, 9, 11, 13, 10, 12, 14)
        ]}

        slots = normalize_slots(data, settings, limit=3)

        assert [s.start[11:16] for s in slots] == ["09:00", "10:00", "11:00"]

    def test_invalid_entries_dropped(self, settings):
        """Test invalid raw slots are skipped."""
        data = [{"start": "2024-01-08T09:00:00Z"}, {"foo": "bar"}, None]

        assert len(normalize_slots(data, settings)) == 1


class TestAvailabilityService:
    """Test AvailabilityService.find_slots."""

    @pytest.fixture
    def client(self):
        """Create mock backend client."""
        return MagicMock()

    @pytest.mark.asyncio
    async def test_live_slots(self, settings, client):
        """Test live availability is used when reachable."""
        client.get_available_slots = AsyncMock(return_value={
            "data": [
                {"id": "live-1", "start": "2024-01-09T15:00:00Z", "end": "2024-01-09T15:30:00Z"},
            ],
        })
        service = AvailabilityService(client=client)

        slots = await service.find_slots(settings, limit=5, now=NOW)

        assert [s.id for s in slots] == ["live-1"]
        client.get_available_slots.assert_awaited_once_with(
            appointment_type="call",
            date_from="2024-01-07",
            date_to="2024-01-21",
        )

    @pytest.mark.asyncio
    async def test_backend_failure_falls_back_to_synthesis(self, settings, client):
        """Test synthesized slots when the backend fails."""
        client.get_available_slots = AsyncMock(side_effect=BackendClientError("timeout"))
        service = AvailabilityService(client=client)

        slots = await service.find_slots(settings, limit=2, now=NOW)

        assert [s.start for s in slots] == [
            "2024-01-08T09:00:00+00:00",
            "2024-01-08T09:30:00+00:00",
        ]

    @pytest.mark.asyncio
    async def test_empty_live_result_not_replaced(self, settings, client):
        """Test a successful empty response means no availability."""
        client.get_available_slots = AsyncMock(return_value={"slots": []})
        service = AvailabilityService(client=client)

        assert await service.find_slots(settings, now=NOW) == []

    @pytest.mark.asyncio
    async def test_without_client_synthesizes(self, settings):
        """Test synthesis when no backend is configured."""
        service = AvailabilityService()

        slots = await service.find_slots(settings, limit=1, now=NOW)

        assert slots[0].id == "slot_20240108T0900Z"

    def test_synthesize_uses_injected_synthesizer(self, settings):
        """Test synthesize delegates to the synthesizer."""
        synthesizer = MagicMock()
        synthesizer.generate.return_value = []
        service = AvailabilityService(synthesizer=synthesizer)

        service.synthesize(settings, limit=4, now=NOW)

        synthesizer.generate.assert_called_once_with(settings, count=4, now=NOW)
