from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from jobsession.domain.entities.booking import Booking
from jobsession.infrastructure.booking_api.mock_gateway import MockBookingGateway

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class ScriptedGateway(MockBookingGateway):
    """Mock gateway that can hold calls open and fail them on demand."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.attempts: list[str] = []
        self._failures: dict[str, list[Exception]] = {}
        self._holds: dict[str, asyncio.Event] = {}

    def put(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking

    def fail_next(self, operation: str, error: Exception) -> None:
        self._failures.setdefault(operation, []).append(error)

    def hold(self, operation: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds[operation] = event
        return event

    async def _gate(self, operation: str) -> None:
        self.attempts.append(operation)
        event = self._holds.pop(operation, None)
        if event is not None:
            await event.wait()
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)

    async def fetch_booking(self, booking_id):
        await self._gate("fetch_booking")
        return await super().fetch_booking(booking_id)

    async def check_in(self, booking_id):
        await self._gate("check_in")
        return await super().check_in(booking_id)

    async def check_out(self, booking_id):
        await self._gate("check_out")
        return await super().check_out(booking_id)

    async def submit_timesheet(self, booking_id, submission):
        await self._gate("submit_timesheet")
        return await super().submit_timesheet(booking_id, submission)

    async def fetch_payout_link(self):
        await self._gate("fetch_payout_link")
        return await super().fetch_payout_link()
