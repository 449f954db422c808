from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from jobsession.domain.entities.booking import Booking
from jobsession.domain.entities.timesheet import TimesheetSubmission


class BookingGatewayPort(ABC):
    @abstractmethod
    async def fetch_booking(self, booking_id: str) -> Booking:
        """Fetch the authoritative booking record."""
        raise NotImplementedError

    @abstractmethod
    async def check_in(self, booking_id: str) -> datetime | None:
        """Record a check-in. Returns the server check-in time when provided."""
        raise NotImplementedError

    @abstractmethod
    async def check_out(self, booking_id: str) -> datetime | None:
        """Record a check-out. Returns the server check-out time when provided."""
        raise NotImplementedError

    @abstractmethod
    async def submit_timesheet(self, booking_id: str, submission: TimesheetSubmission) -> dict[str, Any]:
        """Send a timesheet for approval. Returns the gateway acknowledgment."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_payout_link(self) -> str:
        """Fetch the payout dashboard URL for the current credential."""
        raise NotImplementedError
