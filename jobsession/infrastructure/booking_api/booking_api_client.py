from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from jobsession.application.exceptions import (
    ConflictError,
    GatewayContractError,
    GatewayError,
    GatewayValidationError,
    NetworkError,
    NotFoundError,
    UnauthorizedError,
)
from jobsession.core.config import settings


class BookingApiClient:
    """Thin async HTTP client for the Booking API. The credential is fixed at construction."""

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not access_token:
            raise ValueError("An access token is required for the Booking API")
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.BOOKING_API_BASE_URL,
            timeout=timeout or settings.BOOKING_API_TIMEOUT_SECONDS,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Authorization": f"Bearer {access_token}",
            },
            transport=transport,
        )
        self._logger = logging.getLogger(__name__)

    async def get_booking(self, booking_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/bookings/{booking_id}", "fetch_booking", booking_id)

    async def check_in(self, booking_id: str, check_out: bool = False) -> dict[str, Any]:
        params = {"check_out": "true"} if check_out else None
        operation = "check_out" if check_out else "check_in"
        return await self._request(
            "POST", f"/v1/bookings/timesheet/check_in/{booking_id}", operation, booking_id, params=params
        )

    async def send_timesheet(self, booking_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "POST", f"/v1/bookings/timesheet/request/{booking_id}", "submit_timesheet", booking_id, json_body=payload
        )

    async def get_payout_dashboard_link(self) -> dict[str, Any]:
        return await self._request("GET", "/v1/payments/dashboard", "fetch_payout_link")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        booking_id: str | None = None,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, params=params, json=json_body)
        except httpx.TimeoutException as e:
            self._logger.error("Booking API timeout", extra={"operation": operation, "booking_id": booking_id})
            raise NetworkError(f"{operation} timed out", operation=operation) from e
        except httpx.TransportError as e:
            self._logger.error(
                "Booking API unreachable",
                extra={"operation": operation, "booking_id": booking_id, "error": str(e)},
            )
            raise NetworkError(f"{operation} failed: {e}", operation=operation) from e

        if resp.status_code >= 400:
            self._raise_for_status(resp, operation, booking_id)

        # Some endpoints answer with an empty body.
        text = resp.text
        if not text:
            return {}
        try:
            data = resp.json()
        except json.JSONDecodeError as e:
            raise GatewayContractError(
                f"{operation} returned a non-JSON body", operation=operation, status_code=resp.status_code
            ) from e
        if not isinstance(data, dict):
            raise GatewayContractError(
                f"{operation} returned {type(data).__name__}, expected an object",
                operation=operation,
                status_code=resp.status_code,
            )
        return data

    def _raise_for_status(self, resp: httpx.Response, operation: str, booking_id: str | None) -> None:
        status = resp.status_code
        try:
            error_json = resp.json()
            detail = error_json.get("detail") if isinstance(error_json, dict) else None
        except Exception:
            detail = None
        message = str(detail or resp.text or resp.reason_phrase)

        self._logger.error(
            "Booking API request failed",
            extra={
                "operation": operation,
                "booking_id": booking_id,
                "status_code": status,
                "error": message[:200],
            },
        )

        error_cls: type[GatewayError]
        if status == 404:
            error_cls = NotFoundError
        elif status in (401, 403):
            error_cls = UnauthorizedError
        elif status == 409:
            error_cls = ConflictError
        elif status in (400, 422):
            error_cls = GatewayValidationError
        else:
            error_cls = NetworkError
        raise error_cls(f"{operation} failed ({status}): {message}", operation=operation, status_code=status)
