from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest

from jobsession.application.use_cases.job_session import JobSessionUseCase
from jobsession.application.use_cases.payout_link import PayoutLinkResolver
from jobsession.application.use_cases.session_clock import SessionClock
from jobsession.application.use_cases.timesheet_review import TimesheetReviewUseCase
from jobsession.domain.entities.booking import Booking, BookingStatus
from support import FakeClock, ScriptedGateway


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def booking() -> Booking:
    return Booking(
        id="42",
        title="Support shift",
        suburb="Parramatta",
        rate=35.0,
        status=BookingStatus.APPROVED,
    )


@pytest.fixture
def gateway(clock: FakeClock, booking: Booking) -> ScriptedGateway:
    return ScriptedGateway(bookings={booking.id: booking}, now=clock)


@pytest.fixture
def review(gateway: ScriptedGateway) -> TimesheetReviewUseCase:
    return TimesheetReviewUseCase(
        gateway=gateway,
        min_rate=30.0,
        timezone=ZoneInfo("UTC"),
        enforce_checkpoint_order=True,
    )


@pytest.fixture
def session(gateway: ScriptedGateway, review: TimesheetReviewUseCase, clock: FakeClock) -> JobSessionUseCase:
    return JobSessionUseCase(
        gateway=gateway,
        review=review,
        payout_resolver=PayoutLinkResolver(gateway),
        now=clock,
        clock=SessionClock(now=clock, interval_seconds=3600),
    )
