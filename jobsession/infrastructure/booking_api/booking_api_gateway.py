from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from jobsession.application.dto.booking_payload import BookingDTO, CheckpointDTO, PayoutLinkDTO
from jobsession.application.exceptions import (
    AlreadyCheckedInError,
    ConflictError,
    GatewayContractError,
    NotCheckedInError,
)
from jobsession.application.ports.booking_gateway import BookingGatewayPort
from jobsession.application.utils.time_utils import ensure_utc
from jobsession.domain.entities.booking import Booking
from jobsession.domain.entities.timesheet import TimesheetSubmission
from jobsession.infrastructure.booking_api.booking_api_client import BookingApiClient


class BookingApiGateway(BookingGatewayPort):
    def __init__(self, client: BookingApiClient) -> None:
        self._client = client

    async def fetch_booking(self, booking_id: str) -> Booking:
        data = await self._client.get_booking(booking_id)
        try:
            return BookingDTO.model_validate(data).to_entity()
        except (ValidationError, ValueError) as e:
            raise GatewayContractError(f"Malformed booking {booking_id}: {e}", operation="fetch_booking") from e

    async def check_in(self, booking_id: str) -> datetime | None:
        try:
            data = await self._client.check_in(booking_id)
        except ConflictError as e:
            raise AlreadyCheckedInError(str(e), operation=e.operation, status_code=e.status_code) from e
        checkpoint = self._parse_checkpoint(data, "check_in")
        return ensure_utc(checkpoint.check_in_time) if checkpoint.check_in_time else None

    async def check_out(self, booking_id: str) -> datetime | None:
        try:
            data = await self._client.check_in(booking_id, check_out=True)
        except ConflictError as e:
            raise NotCheckedInError(str(e), operation=e.operation, status_code=e.status_code) from e
        checkpoint = self._parse_checkpoint(data, "check_out")
        return ensure_utc(checkpoint.check_out_time) if checkpoint.check_out_time else None

    async def submit_timesheet(self, booking_id: str, submission: TimesheetSubmission) -> dict[str, Any]:
        return await self._client.send_timesheet(booking_id, submission.to_payload())

    async def fetch_payout_link(self) -> str:
        data = await self._client.get_payout_dashboard_link()
        try:
            return PayoutLinkDTO.model_validate(data).url
        except ValidationError as e:
            raise GatewayContractError(f"Malformed payout link response: {e}", operation="fetch_payout_link") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _parse_checkpoint(data: dict[str, Any], operation: str) -> CheckpointDTO:
        try:
            return CheckpointDTO.model_validate(data)
        except ValidationError as e:
            raise GatewayContractError(f"Malformed {operation} response: {e}", operation=operation) from e
