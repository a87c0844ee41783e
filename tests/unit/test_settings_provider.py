"""Tests for the cached scheduling settings provider."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from booking_flow.core.scheduling import SchedulingSettings, SchedulingSettingsProvider
from booking_flow.infra.backend import BackendClientError


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSchedulingSettingsProvider:
    """Test SchedulingSettingsProvider."""

    @pytest.fixture
    def clock(self):
        """Create fake clock."""
        return FakeClock()

    @pytest.fixture
    def client(self):
        """Create mock backend client."""
        client = MagicMock()
        client.get_scheduling_settings = AsyncMock(
            return_value={"scheduling_enabled": True, "chatbotOfferBooking": True}
        )
        return client

    @pytest.fixture
    def provider(self, client, clock):
        """Create provider with a 60 second window."""
        return SchedulingSettingsProvider(client=client, ttl_seconds=60, clock=clock)

    @pytest.mark.asyncio
    async def test_fetches_and_normalizes(self, provider, client):
        """Test first call fetches and normalizes."""
        settings = await provider.get()

        assert settings.enabled is True
        assert settings.chatbot_offer_booking is True
        client.get_scheduling_settings.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fresh_cache_reused(self, provider, client, clock):
        """Test no call within the cache window."""
        first = await provider.get()
        clock.now += 59
        second = await provider.get()

        assert second is first
        assert client.get_scheduling_settings.await_count == 1

    @pytest.mark.asyncio
    async def test_expired_cache_refetched(self, provider, client, clock):
        """Test refetch after the window."""
        await provider.get()
        client.get_scheduling_settings.return_value = {"scheduling_enabled": False}
        clock.now += 61

        settings = await provider.get()

        assert settings.enabled is False
        assert client.get_scheduling_settings.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_without_cache_returns_defaults(self, provider, client):
        """Test defaults when the first fetch fails."""
        client.get_scheduling_settings.side_effect = BackendClientError("down")

        settings = await provider.get()

        assert settings == SchedulingSettings()

    @pytest.mark.asyncio
    async def test_failure_reuses_stale_value(self, provider, client, clock):
        """Test stale settings survive a failed refresh."""
        first = await provider.get()
        client.get_scheduling_settings.side_effect = BackendClientError("down")
        clock.now += 120

        settings = await provider.get()

        assert settings is first
        assert settings.enabled is True

    @pytest.mark.asyncio
    async def test_failure_retried_next_call(self, provider, client, clock):
        """Test a failed refresh does not restart the cache window."""
        await provider.get()
        client.get_scheduling_settings.side_effect = BackendClientError("down")
        clock.now += 120
        await provider.get()

        client.get_scheduling_settings.side_effect = None
        client.get_scheduling_settings.return_value = {"scheduling_enabled": False}
        settings = await provider.get()

        assert settings.enabled is False
        assert client.get_scheduling_settings.await_count == 3

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, provider, client):
        """Test invalidate."""
        await provider.get()
        provider.invalidate()
        await provider.get()

        assert client.get_scheduling_settings.await_count == 2

    @pytest.mark.asyncio
    async def test_without_client(self):
        """Test provider without a backend uses defaults."""
        provider = SchedulingSettingsProvider(client=None, ttl_seconds=60)

        assert await provider.get() == SchedulingSettings()
        assert provider.cached == SchedulingSettings()
