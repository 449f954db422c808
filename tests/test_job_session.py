from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from jobsession.application.exceptions import (
    AlreadyCheckedInError,
    InvalidTransitionError,
    NetworkError,
    NotFoundError,
    OperationInProgressError,
    RateBelowMinimumError,
    SessionDisposedError,
    UnauthorizedError,
)
from jobsession.application.use_cases.job_session import (
    CANCEL_TIMESHEET,
    CHECK_IN,
    CHECK_OUT,
    EDIT_TIMESHEET,
    OPEN_TIMESHEET,
    SUBMIT,
)
from jobsession.application.utils.session_messages import TIMESHEET_SENT_MESSAGE
from jobsession.domain.entities.booking import BookingStatus
from jobsession.domain.entities.session_state import (
    CheckedOut,
    NotStarted,
    PaymentReceived,
    PendingPayment,
    Running,
    Submitted,
)
from support import START


@pytest.mark.asyncio
async def test_hydrate_resumes_running_timer_from_wall_clock(session, gateway, booking, clock):
    """Test that a reload while checked in resumes the timer instead of restarting at zero."""
    checked_in = START - timedelta(hours=5)
    gateway.put(booking.with_checkpoints(check_in_time=checked_in))

    state = await session.hydrate(booking.id)

    assert state == Running(since=checked_in)
    assert session.elapsed_seconds == 5 * 3600
    assert session.elapsed_display == "05:00:00"
    assert session.clock.is_running is True
    session.dispose()


@pytest.mark.asyncio
async def test_hydrate_with_future_check_in_clamps_elapsed(session, gateway, booking):
    """Test that clock skew never produces a negative elapsed value."""
    gateway.put(booking.with_checkpoints(check_in_time=START + timedelta(minutes=3)))

    await session.hydrate(booking.id)

    assert isinstance(session.state, Running)
    assert session.elapsed_seconds == 0
    session.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected_type"),
    [
        (BookingStatus.IN_PROGRESS, CheckedOut),
        (BookingStatus.SENT_FOR_APPROVAL, Submitted),
        (BookingStatus.COMPLETED, Submitted),
        (BookingStatus.PENDING_PAYMENT, PendingPayment),
    ],
)
async def test_hydrate_fast_forwards_to_remote_status(session, gateway, booking, status, expected_type):
    """Test that hydrate enters the state implied by remote status, e.g. a submit from another device."""
    gateway.put(
        booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=8)).advance_to(status)
    )

    state = await session.hydrate(booking.id)

    assert isinstance(state, expected_type)
    assert session.elapsed_display == "08:00:00"
    assert session.clock.is_running is False


@pytest.mark.asyncio
async def test_hydrate_payment_received_attaches_payout_link_once(session, gateway, booking):
    """Test that reaching payment received resolves the payout link exactly once."""
    gateway.put(
        booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=8)).advance_to(
            BookingStatus.PAYMENT_RECEIVED
        )
    )

    state = await session.hydrate(booking.id)
    again = await session.resolve_payout_link()

    assert isinstance(state, PaymentReceived)
    assert state.payout_link == "https://connect.stripe.com/express/mock"
    assert again == state.payout_link
    assert gateway.attempts.count("fetch_payout_link") == 1
    assert session.available_actions == frozenset()


@pytest.mark.asyncio
async def test_payout_link_failure_is_not_fatal(session, gateway, booking):
    """Test that a payout link error is shown inline while the session stays usable."""
    gateway.put(
        booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=8)).advance_to(
            BookingStatus.PAYMENT_RECEIVED
        )
    )
    gateway.fail_next("fetch_payout_link", NotFoundError("no account", operation="fetch_payout_link"))

    state = await session.hydrate(booking.id)

    assert isinstance(state, PaymentReceived)
    assert state.payout_link is None
    assert isinstance(session.errors["payout_link"], NotFoundError)
    assert await session.resolve_payout_link() is None
    assert gateway.attempts.count("fetch_payout_link") == 1


@pytest.mark.asyncio
async def test_hydrate_not_found_surfaces_error(session):
    """Test that an unknown booking leaves the session unloaded with an inline error."""
    with pytest.raises(NotFoundError):
        await session.hydrate("missing")

    assert session.state is None
    assert isinstance(session.errors["hydrate"], NotFoundError)
    assert session.available_actions == frozenset()


@pytest.mark.asyncio
async def test_check_out_rejected_when_not_running(session, gateway, booking):
    """Test that check-out outside Running is refused locally without a gateway call."""
    await session.hydrate(booking.id)
    assert isinstance(session.state, NotStarted)

    with pytest.raises(InvalidTransitionError):
        await session.check_out()

    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=1)))
    await session.hydrate(booking.id)
    assert isinstance(session.state, CheckedOut)

    with pytest.raises(InvalidTransitionError):
        await session.check_out()

    assert "check_out" not in gateway.attempts
    assert isinstance(session.errors[CHECK_OUT], InvalidTransitionError)


@pytest.mark.asyncio
async def test_full_session_from_check_in_to_submission(session, gateway, booking, clock):
    """Test check-in, an hour of work, check-out and an approved-rate submission end to end."""
    assert isinstance(await session.hydrate(booking.id), NotStarted)
    assert session.available_actions == frozenset({CHECK_IN})

    state = await session.check_in()
    assert state == Running(since=START)
    assert session.clock.is_running is True

    clock.advance(3600)
    assert session.elapsed_display == "01:00:00"
    assert session.clock.display() == "01:00:00"

    state = await session.check_out()
    assert state == CheckedOut(check_in=START, check_out=START + timedelta(hours=1))
    assert session.clock.is_running is False
    assert session.available_actions == frozenset({OPEN_TIMESHEET})

    draft = session.open_timesheet()
    assert draft.rate == 35.0
    assert session.available_actions == frozenset({EDIT_TIMESHEET, SUBMIT, CANCEL_TIMESHEET})

    result = await session.submit()

    assert isinstance(session.state, Submitted)
    assert result.message == TIMESHEET_SENT_MESSAGE
    assert result.submission.check_in == "2024-01-01T09:00:00Z"
    assert result.submission.check_out == "2024-01-01T10:00:00Z"
    assert gateway.attempts.count("submit_timesheet") == 1
    assert len(gateway.submissions) == 1
    assert session.booking.status == BookingStatus.SENT_FOR_APPROVAL
    assert session.draft is None
    assert session.summary().headline == "Job Session Concluded"
    assert session.available_actions == frozenset()


@pytest.mark.asyncio
async def test_check_in_network_failure_keeps_not_started(session, gateway, booking):
    """Test that a failed check-in leaves the session untouched and reports the error."""
    await session.hydrate(booking.id)
    gateway.fail_next("check_in", NetworkError("offline", operation="check_in"))

    with pytest.raises(NetworkError):
        await session.check_in()

    assert isinstance(session.state, NotStarted)
    assert session.clock.is_running is False
    assert session.elapsed_seconds == 0
    assert isinstance(session.errors[CHECK_IN], NetworkError)
    assert session.in_flight is None

    await session.check_in()
    assert isinstance(session.state, Running)
    assert CHECK_IN not in session.errors
    session.dispose()


@pytest.mark.asyncio
async def test_check_in_unauthorized_keeps_not_started(session, gateway, booking):
    """Test that an expired credential does not change the session."""
    await session.hydrate(booking.id)
    gateway.fail_next("check_in", UnauthorizedError("expired", operation="check_in", status_code=401))

    with pytest.raises(UnauthorizedError):
        await session.check_in()

    assert isinstance(session.state, NotStarted)


@pytest.mark.asyncio
async def test_rapid_double_check_out_issues_one_gateway_call(session, gateway, booking):
    """Test that a second check-out while the first is pending is rejected."""
    await session.hydrate(booking.id)
    await session.check_in()
    release = gateway.hold("check_out")

    first = asyncio.create_task(session.check_out())
    await asyncio.sleep(0)
    assert session.in_flight == CHECK_OUT

    with pytest.raises(OperationInProgressError):
        await session.check_out()

    release.set()
    state = await first

    assert isinstance(state, CheckedOut)
    assert gateway.attempts.count("check_out") == 1


@pytest.mark.asyncio
async def test_clock_keeps_running_while_check_out_pending_and_after_failure(session, gateway, booking, clock):
    """Test that the timer stays live during a pending check-out and after it fails."""
    await session.hydrate(booking.id)
    await session.check_in()
    release = gateway.hold("check_out")
    gateway.fail_next("check_out", NetworkError("timeout", operation="check_out"))

    pending = asyncio.create_task(session.check_out())
    await asyncio.sleep(0)
    clock.advance(90)
    assert session.clock.is_running is True
    assert session.clock.display() == "00:01:30"

    release.set()
    with pytest.raises(NetworkError):
        await pending

    assert isinstance(session.state, Running)
    assert session.clock.is_running is True
    assert session.elapsed_seconds == 90
    session.dispose()


@pytest.mark.asyncio
async def test_check_in_conflict_rehydrates_to_true_state(session, gateway, booking):
    """Test that a check-in recorded on another device is picked up after the conflict."""
    await session.hydrate(booking.id)
    other_device = START - timedelta(minutes=10)
    gateway.put(booking.with_checkpoints(check_in_time=other_device))

    with pytest.raises(AlreadyCheckedInError):
        await session.check_in()

    assert session.state == Running(since=other_device)
    assert session.elapsed_seconds == 600
    assert isinstance(session.errors[CHECK_IN], AlreadyCheckedInError)
    session.dispose()


@pytest.mark.asyncio
async def test_check_in_rejected_outside_not_started(session, gateway, booking):
    """Test that check-in while already running is refused without a gateway call."""
    gateway.put(booking.with_checkpoints(check_in_time=START))
    await session.hydrate(booking.id)

    with pytest.raises(InvalidTransitionError):
        await session.check_in()

    assert "check_in" not in gateway.attempts
    session.dispose()


@pytest.mark.asyncio
async def test_submit_below_minimum_stays_in_review(session, gateway, booking):
    """Test that a low rate keeps the session checked out with the draft open."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()
    session.edit_timesheet(rate=29.99)

    with pytest.raises(RateBelowMinimumError):
        await session.submit()

    assert isinstance(session.state, CheckedOut)
    assert session.draft is not None
    assert session.draft.rate == 29.99
    assert isinstance(session.errors[SUBMIT], RateBelowMinimumError)
    assert gateway.submissions == []


@pytest.mark.asyncio
async def test_cancel_timesheet_returns_to_checked_out(session, gateway, booking):
    """Test that cancelling review discards the draft and leaves the session checked out."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()

    session.cancel_timesheet()

    assert session.draft is None
    assert isinstance(session.state, CheckedOut)
    assert session.available_actions == frozenset({OPEN_TIMESHEET})
    with pytest.raises(InvalidTransitionError):
        await session.submit()
    assert "submit_timesheet" not in gateway.attempts


@pytest.mark.asyncio
async def test_dispose_discards_late_gateway_result(session, gateway, booking):
    """Test that a check-in finishing after teardown is not applied to the session."""
    await session.hydrate(booking.id)
    release = gateway.hold("check_in")

    pending = asyncio.create_task(session.check_in())
    await asyncio.sleep(0)
    session.dispose()
    release.set()

    with pytest.raises(SessionDisposedError):
        await pending

    assert isinstance(session.state, NotStarted)
    assert session.clock.is_running is False


@pytest.mark.asyncio
async def test_disposed_session_rejects_new_operations(session, gateway, booking):
    """Test that nothing can be dispatched once the session is torn down."""
    await session.hydrate(booking.id)
    session.dispose()

    with pytest.raises(SessionDisposedError):
        await session.check_in()
    with pytest.raises(SessionDisposedError):
        await session.hydrate(booking.id)

    assert gateway.attempts == ["fetch_booking"]
    assert session.available_actions == frozenset()


@pytest.mark.asyncio
async def test_operations_before_hydrate_are_invalid(session, gateway):
    """Test that transitions need a loaded booking."""
    with pytest.raises(InvalidTransitionError):
        await session.check_in()
    assert gateway.attempts == []


@pytest.mark.asyncio
async def test_submit_rejects_nan_rate_without_gateway_call(session, gateway, booking):
    """Test that a NaN rate counts as below the minimum and is never sent."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()
    session.edit_timesheet(rate=float("nan"))

    with pytest.raises(RateBelowMinimumError):
        await session.submit()

    assert isinstance(session.state, CheckedOut)
    assert "submit_timesheet" not in gateway.attempts
    assert gateway.submissions == []


@pytest.mark.asyncio
async def test_submit_gateway_failure_keeps_draft_and_checked_out(session, gateway, booking):
    """Test that a failed submission leaves the session reviewing with the edits intact."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()
    session.edit_timesheet(rate=40.0)
    gateway.fail_next("submit_timesheet", NetworkError("offline", operation="submit_timesheet"))

    with pytest.raises(NetworkError):
        await session.submit()

    assert isinstance(session.state, CheckedOut)
    assert session.draft is not None
    assert session.draft.rate == 40.0
    assert isinstance(session.errors[SUBMIT], NetworkError)
    assert session.in_flight is None
    assert gateway.submissions == []

    result = await session.submit()

    assert isinstance(session.state, Submitted)
    assert result.submission.rate == 40.0
    assert SUBMIT not in session.errors


@pytest.mark.asyncio
async def test_draft_changes_rejected_while_submit_pending(session, gateway, booking):
    """Test that cancel and edit cannot touch the draft while its submission is in flight."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()
    release = gateway.hold("submit_timesheet")
    gateway.fail_next("submit_timesheet", NetworkError("timeout", operation="submit_timesheet"))

    pending = asyncio.create_task(session.submit())
    await asyncio.sleep(0)
    assert session.in_flight == SUBMIT

    with pytest.raises(OperationInProgressError):
        session.cancel_timesheet()
    with pytest.raises(OperationInProgressError):
        session.edit_timesheet(rate=10.0)
    with pytest.raises(OperationInProgressError):
        session.open_timesheet()

    release.set()
    with pytest.raises(NetworkError):
        await pending

    assert session.draft is not None
    assert session.draft.rate == 35.0
    assert isinstance(session.state, CheckedOut)


@pytest.mark.asyncio
async def test_cancel_timesheet_after_dispose_is_rejected(session, gateway, booking):
    """Test that a torn-down session refuses to cancel review."""
    gateway.put(booking.with_checkpoints(check_in_time=START, check_out_time=START + timedelta(hours=2)))
    await session.hydrate(booking.id)
    session.open_timesheet()
    session.dispose()

    with pytest.raises(SessionDisposedError):
        session.cancel_timesheet()
