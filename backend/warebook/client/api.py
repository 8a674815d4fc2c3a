"""Async HTTP client for the marketplace API.

Used by consumers of the public endpoints (booking front ends, partner
integrations).  It unwraps the ``{"success": ..., "data": ...}``
envelope and raises ``MarketplaceAPIError`` carrying the server's
``error``/``code`` when a call fails.  ``MarketplaceClient`` implements
``AvailabilityProvider``, so it can stand in for the database provider
wherever the state machine needs an availability answer.
"""

import logging
from datetime import date
from typing import Any, Optional

import httpx

from warebook.services.availability import DayAvailability, TimeSlot

logger = logging.getLogger(__name__)


class MarketplaceAPIError(Exception):
    """A failed API call: envelope error, HTTP error or network failure."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401


class MarketplaceClient:
    """Client for the Warebook ``/api/v1`` endpoints.

    Args:
        base_url: Service root, e.g. ``https://api.example.com``
        token: Bearer access token (omit for public reads)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (``ASGITransport`` in tests)
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + self.API_PREFIX,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Marketplace API {method} {path} failed: {e}")
            raise MarketplaceAPIError(f"Network error: {e}", code="NETWORK_ERROR") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error or body.get("success") is False:
            raise MarketplaceAPIError(
                body.get("error") or response.reason_phrase or "Request failed",
                code=body.get("code", f"HTTP_{response.status_code}"),
                status_code=response.status_code,
                details=body.get("details"),
            )
        return body

    # ── Pricing ──────────────────────────────────────────────

    async def calculate_price(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = await self._request("POST", "/pricing/calculate", json=payload)
        return body["breakdown"]

    async def get_pricing(self, warehouse_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/warehouses/{warehouse_id}/pricing")
        return body["data"]

    # ── Availability ─────────────────────────────────────────

    async def get_day(self, warehouse_id: str, day: date) -> DayAvailability:
        body = await self._request(
            "GET", f"/warehouses/{warehouse_id}/availability", params={"date": day.isoformat()}
        )
        data = body["data"]
        return DayAvailability(
            date=date.fromisoformat(data["date"]),
            time_slots=tuple(
                TimeSlot(time=s["time"], available=s["available"], reason=s.get("reason"))
                for s in data.get("timeSlots", [])
            ),
            reason=data.get("reason"),
        )

    async def get_calendar(self, warehouse_id: str, start: date, end: date) -> list[dict[str, Any]]:
        body = await self._request(
            "GET",
            f"/warehouses/{warehouse_id}/calendar",
            params={"start": start.isoformat(), "end": end.isoformat()},
        )
        return body["data"]

    # ── Bookings ─────────────────────────────────────────────

    async def create_booking(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = await self._request("POST", "/bookings", json=payload)
        return body["data"]

    async def get_booking(self, booking_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/bookings/{booking_id}")
        return body["data"]

    async def booking_action(
        self,
        booking_id: str,
        action: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """POST a status action, e.g. ``"set-awaiting-time-slot"``."""
        kwargs = {"json": payload} if payload is not None else {}
        body = await self._request("POST", f"/bookings/{booking_id}/{action}", **kwargs)
        return body["data"]

    async def list_staff_bookings(self, **filters: Any) -> dict[str, Any]:
        """Staff booking list.  Filters use the API's camelCase names."""
        params = {
            k: (v.isoformat() if isinstance(v, date) else v)
            for k, v in filters.items()
            if v is not None
        }
        body = await self._request("GET", "/warehouse-staff/bookings", params=params)
        return body["data"]
