"""
HTTP client for the lead-management backend.

The backend exposes REST endpoints for:
- Reading scheduling settings
- Listing appointment availability
- Booking a slot chosen in chat
"""

import logging
from typing import Any, Optional

import httpx

from booking_flow.config import get_settings

logger = logging.getLogger(__name__)


class BackendClientError(Exception):
    """Raised when a backend call fails."""
    pass


class BackendClient:
    """
    HTTP client for the backend API.

    Backend exposes:
    - GET /api/settings/scheduling - Scheduling settings (raw, loosely shaped)
    - GET /api/appointments/availability - Available slots
    - POST /api/scheduling/book-slot - Book a slot for a conversation
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            base_url: Backend base URL (defaults to settings)
            api_key: Bearer token (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.backend_api_url
        self.api_key = api_key or settings.backend_api_key
        self.timeout = timeout or settings.backend_timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            BackendClientError: On transport errors, non-2xx status or invalid JSON
        """
        client = await self._get_client()

        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise BackendClientError(f"{method} {path} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BackendClientError(f"{method} {path} returned invalid JSON") from e

    # === Settings ===

    async def get_scheduling_settings(self) -> Any:
        """Fetch raw scheduling settings.

        Returns:
            The decoded payload, unvalidated
        """
        return await self._request("GET", "/api/settings/scheduling")

    # === Availability ===

    async def get_available_slots(
        self,
        appointment_type: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> Any:
        """Fetch available slots.

        Args:
            appointment_type: Booking type tag (call, meeting, ...)
            date_from: Start date (YYYY-MM-DD)
            date_to: End date (YYYY-MM-DD)

        Returns:
            A list of raw slots or an object wrapping one
        """
        params = {}
        if appointment_type:
            params["type"] = appointment_type
        if date_from:
            params["from"] = date_from
        if date_to:
            params["to"] = date_to

        return await self._request(
            "GET",
            "/api/appointments/availability",
            params=params,
        )

    # === Bookings ===

    async def book_slot(
        self,
        conversation_key: str,
        slot_id: Optional[str],
        start: str,
        end: Optional[str] = None,
        appointment_type: Optional[str] = None,
        timezone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Book a slot chosen in chat.

        Sends snake_case and camelCase keys for backend compatibility.

        Args:
            conversation_key: Conversation the booking came from
            slot_id: Slot identifier, if the backend issued one
            start: Slot start (ISO-8601)
            end: Slot end (ISO-8601)
            appointment_type: Booking type tag
            timezone: IANA timezone of the slot
            notes: Free-text notes (contact details)

        Returns:
            Backend response dict (may wrap `appointment` or `booking`)
        """
        payload: dict = {
            "conversation_id": conversation_key,
            "slot_id": slot_id,
            "start": start,
            "start_at": start,
            "startAt": start,
            "source": "chatbot",
        }

        if end:
            payload.update({"end": end, "end_at": end, "endAt": end})
        if appointment_type:
            payload["appointment_type"] = appointment_type
            payload["appointmentType"] = appointment_type
        if timezone:
            payload["timezone"] = timezone
        if notes:
            payload["notes"] = notes

        data = await self._request("POST", "/api/scheduling/book-slot", json=payload)
        return data if isinstance(data, dict) else {}


# Singleton
_client: Optional[BackendClient] = None


def get_backend_client() -> BackendClient:
    """Get singleton BackendClient."""
    global _client
    if _client is None:
        _client = BackendClient()
    return _client


async def close_backend_client() -> None:
    """Close the singleton client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


async def check_backend_health() -> bool:
    """
    Check backend connectivity for health checks.

    Returns:
        True if the scheduling settings endpoint responds, False otherwise
    """
    try:
        await get_backend_client().get_scheduling_settings()
        return True

    except BackendClientError as e:
        logger.error(f"Backend health check failed: {e}")
        return False
