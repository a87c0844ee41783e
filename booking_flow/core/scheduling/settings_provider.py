"""
Scheduling settings provider.

Caches normalized settings for a fixed window so every chat turn does
not hit the backend, while still picking up settings changes without a
restart. A failed fetch never blocks the turn.
"""

import logging
import time
from typing import Callable, Optional

from booking_flow.config import settings as app_settings
from booking_flow.infra.backend import BackendClient, BackendClientError, get_backend_client
from .normalizer import normalize_scheduling_settings
from .types import SchedulingSettings

logger = logging.getLogger(__name__)


class SchedulingSettingsProvider:
    """
    TTL cache over the backend settings fetch.

    - Fresh cache: returned without a call
    - Fetch failure with a cached value: stale value reused
    - Fetch failure without a cached value: all-defaults settings
    """

    def __init__(
        self,
        client: Optional[BackendClient] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize provider.

        Args:
            client: Backend client (defaults only when None)
            ttl_seconds: Cache window (defaults to settings)
            clock: Monotonic clock, injectable for tests
        """
        self._client = client
        self._ttl = ttl_seconds if ttl_seconds is not None else app_settings.settings_cache_ttl
        self._clock = clock
        self._cached: Optional[SchedulingSettings] = None
        self._fetched_at: Optional[float] = None

    @property
    def cached(self) -> Optional[SchedulingSettings]:
        return self._cached

    def _is_fresh(self) -> bool:
        return (
            self._cached is not None
            and self._fetched_at is not None
            and self._clock() - self._fetched_at < self._ttl
        )

    async def get(self) -> SchedulingSettings:
        """Get normalized scheduling settings.

        Returns:
            Cached, freshly fetched, stale, or default settings; never raises
        """
        if self._is_fresh():
            return self._cached

        if self._client is None:
            self._cached = self._cached or SchedulingSettings()
            return self._cached

        try:
            raw = await self._client.get_scheduling_settings()
        except BackendClientError as e:
            if self._cached is None:
                logger.warning(f"Scheduling settings unavailable, using defaults: {e}")
                self._cached = SchedulingSettings()
            else:
                logger.warning(f"Scheduling settings fetch failed, reusing cached value: {e}")
            return self._cached

        self._cached = normalize_scheduling_settings(raw)
        self._fetched_at = self._clock()
        logger.debug(
            f"Scheduling settings refreshed: enabled={self._cached.enabled}, "
            f"offer_booking={self._cached.chatbot_offer_booking}"
        )
        return self._cached

    def invalidate(self) -> None:
        """Force the next call to refetch."""
        self._fetched_at = None


# Singleton
_provider: Optional[SchedulingSettingsProvider] = None


def get_settings_provider() -> SchedulingSettingsProvider:
    """Get singleton SchedulingSettingsProvider backed by the backend client."""
    global _provider
    if _provider is None:
        _provider = SchedulingSettingsProvider(client=get_backend_client())
    return _provider
