from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from jobsession.application.exceptions import (
    AlreadyCheckedInError,
    GatewayValidationError,
    NotCheckedInError,
    NotFoundError,
)
from jobsession.application.ports.booking_gateway import BookingGatewayPort
from jobsession.application.utils.time_utils import parse_iso, utc_now
from jobsession.domain.entities.booking import Booking, BookingStatus
from jobsession.domain.entities.timesheet import TimesheetSubmission


def demo_bookings(now: datetime) -> dict[str, Booking]:
    start = now.replace(minute=0, second=0, microsecond=0)
    return {
        "1": Booking(
            id="1",
            title="Personal care support",
            service="self_care",
            suburb="Parramatta",
            address="12 Church St, Parramatta NSW",
            start_time=start,
            end_time=start + timedelta(hours=8),
            description="Morning routine assistance and meal preparation.",
            rate=35.0,
            status=BookingStatus.APPROVED,
        ),
    }


class MockBookingGateway(BookingGatewayPort):
    """In-memory gateway with the same conflict rules as the Booking API."""

    def __init__(
        self,
        bookings: dict[str, Booking] | None = None,
        payout_url: str | None = "https://connect.stripe.com/express/mock",
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._now = now
        self._bookings: dict[str, Booking] = dict(bookings) if bookings is not None else demo_bookings(now())
        self._payout_url = payout_url
        self.calls: list[str] = []
        self.submissions: list[tuple[str, TimesheetSubmission]] = []
        self._logger = logging.getLogger(__name__)

    def get(self, booking_id: str) -> Booking:
        return self._booking(booking_id)

    def set_status(self, booking_id: str, status: BookingStatus) -> Booking:
        """Simulate the organization side moving the booking forward."""
        booking = self._booking(booking_id).advance_to(status)
        self._bookings[booking_id] = booking
        return booking

    async def fetch_booking(self, booking_id: str) -> Booking:
        self.calls.append("fetch_booking")
        return self._booking(booking_id)

    async def check_in(self, booking_id: str) -> datetime | None:
        self.calls.append("check_in")
        booking = self._booking(booking_id)
        if booking.check_in_time is not None:
            raise AlreadyCheckedInError(
                f"Booking {booking_id} is already checked in",
                operation="check_in",
                status_code=409,
            )
        check_in_time = self._now()
        self._bookings[booking_id] = booking.with_checkpoints(check_in_time=check_in_time).advance_to(
            BookingStatus.IN_PROGRESS
        )
        self._logger.info("Mock check-in", extra={"booking_id": booking_id, "operation": "check_in"})
        return check_in_time

    async def check_out(self, booking_id: str) -> datetime | None:
        self.calls.append("check_out")
        booking = self._booking(booking_id)
        if booking.check_in_time is None or booking.check_out_time is not None:
            raise NotCheckedInError(
                f"Booking {booking_id} is not checked in",
                operation="check_out",
                status_code=409,
            )
        check_out_time = self._now()
        self._bookings[booking_id] = booking.with_checkpoints(check_out_time=check_out_time)
        self._logger.info("Mock check-out", extra={"booking_id": booking_id, "operation": "check_out"})
        return check_out_time

    async def submit_timesheet(self, booking_id: str, submission: TimesheetSubmission) -> dict[str, Any]:
        self.calls.append("submit_timesheet")
        booking = self._booking(booking_id)
        if not math.isfinite(submission.rate) or submission.rate <= 0:
            raise GatewayValidationError("Rate must be positive", operation="submit_timesheet", status_code=422)
        self.submissions.append((booking_id, submission))
        self._bookings[booking_id] = replace(
            booking,
            check_in_time=parse_iso(submission.check_in),
            check_out_time=parse_iso(submission.check_out),
        ).advance_to(BookingStatus.SENT_FOR_APPROVAL)
        self._logger.info("Mock timesheet submitted", extra={"booking_id": booking_id, "operation": "submit"})
        return {"booking_id": booking_id, "status": BookingStatus.SENT_FOR_APPROVAL.value}

    async def fetch_payout_link(self) -> str:
        self.calls.append("fetch_payout_link")
        if not self._payout_url:
            raise NotFoundError("No payout account connected", operation="fetch_payout_link", status_code=404)
        return self._payout_url

    def _booking(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", operation="fetch_booking", status_code=404)
        return booking
