from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from jobsession.application.exceptions import (
    ConflictError,
    InvalidTransitionError,
    JobSessionError,
    OperationInProgressError,
    SessionDisposedError,
)
from jobsession.application.ports.booking_gateway import BookingGatewayPort
from jobsession.application.use_cases.payout_link import PayoutLinkResolver
from jobsession.application.use_cases.session_clock import SessionClock, elapsed_seconds, format_elapsed
from jobsession.application.use_cases.timesheet_review import TimesheetReviewUseCase
from jobsession.application.utils.session_messages import SessionSummary, summarize_state
from jobsession.application.utils.time_utils import utc_now
from jobsession.domain.entities.booking import SUBMITTED_STATUSES, Booking, BookingStatus
from jobsession.domain.entities.session_state import (
    CheckedOut,
    CompletedCheckpoints,
    NotStarted,
    PaymentReceived,
    PendingPayment,
    Running,
    SessionViewState,
    Submitted,
)
from jobsession.domain.entities.timesheet import SubmissionResult, TimesheetDraft

CHECK_IN = "check_in"
CHECK_OUT = "check_out"
OPEN_TIMESHEET = "open_timesheet"
EDIT_TIMESHEET = "edit_timesheet"
SUBMIT = "submit"
CANCEL_TIMESHEET = "cancel_timesheet"
HYDRATE = "hydrate"
PAYOUT_LINK = "payout_link"


def derive_session_state(booking: Booking, payout_link: str | None = None) -> SessionViewState:
    """
    Project a booking onto exactly one session view state.

    Remote status fast-forwards past checkpoints this client did not witness,
    e.g. a timesheet sent from another device.
    """
    if booking.check_in_time is None:
        return NotStarted()
    if booking.check_out_time is None:
        return Running(since=booking.check_in_time)

    check_in, check_out = booking.check_in_time, booking.check_out_time
    if booking.status == BookingStatus.PAYMENT_RECEIVED:
        return PaymentReceived(check_in=check_in, check_out=check_out, payout_link=payout_link)
    if booking.status == BookingStatus.PENDING_PAYMENT:
        return PendingPayment(check_in=check_in, check_out=check_out)
    if booking.status in SUBMITTED_STATUSES:
        return Submitted(check_in=check_in, check_out=check_out)
    return CheckedOut(check_in=check_in, check_out=check_out)


class JobSessionUseCase:
    """
    Drives one booking through check-in, check-out, timesheet review and payout.

    Every gateway-calling operation is single-flight: a second call while one
    is pending raises OperationInProgressError without touching the network.
    Failed operations leave the previous state in place, are logged, recorded
    in `errors` under the operation name, and re-raised.
    """

    def __init__(
        self,
        gateway: BookingGatewayPort,
        review: TimesheetReviewUseCase | None = None,
        payout_resolver: PayoutLinkResolver | None = None,
        now: Callable[[], datetime] = utc_now,
        clock: SessionClock | None = None,
    ) -> None:
        self._gateway = gateway
        self._review = review or TimesheetReviewUseCase(gateway=gateway)
        self._payout_resolver = payout_resolver or PayoutLinkResolver(gateway)
        self._now = now
        self._clock = clock or SessionClock(now=now)
        self._booking: Booking | None = None
        self._state: SessionViewState | None = None
        self._in_flight: str | None = None
        self._disposed = False
        self.errors: dict[str, JobSessionError] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def booking(self) -> Booking | None:
        return self._booking

    @property
    def state(self) -> SessionViewState | None:
        return self._state

    @property
    def review(self) -> TimesheetReviewUseCase:
        return self._review

    @property
    def draft(self) -> TimesheetDraft | None:
        return self._review.draft

    @property
    def in_flight(self) -> str | None:
        return self._in_flight

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def clock(self) -> SessionClock:
        return self._clock

    @property
    def elapsed_seconds(self) -> int:
        state = self._state
        if isinstance(state, Running):
            return elapsed_seconds(state.since, self._now())
        if isinstance(state, CompletedCheckpoints):
            return elapsed_seconds(state.check_in, state.check_out)
        return 0

    @property
    def elapsed_display(self) -> str:
        return format_elapsed(self.elapsed_seconds)

    @property
    def available_actions(self) -> frozenset[str]:
        state = self._state
        if self._disposed or state is None:
            return frozenset()
        if isinstance(state, NotStarted):
            return frozenset({CHECK_IN})
        if isinstance(state, Running):
            return frozenset({CHECK_OUT})
        if isinstance(state, CheckedOut):
            if self._review.is_open:
                return frozenset({EDIT_TIMESHEET, SUBMIT, CANCEL_TIMESHEET})
            return frozenset({OPEN_TIMESHEET})
        return frozenset()

    def summary(self) -> SessionSummary:
        return summarize_state(self._state)

    async def hydrate(self, booking_id: str) -> SessionViewState:
        with self._single_flight(HYDRATE):
            try:
                state = await self._hydrate(booking_id)
            except JobSessionError as e:
                self._record_failure(HYDRATE, e, booking_id)
                raise
            self.errors.pop(HYDRATE, None)
            return state

    async def check_in(self) -> SessionViewState:
        booking = self._require_booking(CHECK_IN)
        if not isinstance(self._state, NotStarted):
            raise self._invalid(CHECK_IN)

        with self._single_flight(CHECK_IN):
            try:
                check_in_time = await self._gateway.check_in(booking.id)
            except ConflictError as e:
                await self._resync_after_conflict(CHECK_IN, e, booking.id)
                raise
            except JobSessionError as e:
                self._record_failure(CHECK_IN, e, booking.id)
                raise
            self._ensure_live(CHECK_IN)

            since = check_in_time or self._now()
            self._booking = booking.with_checkpoints(check_in_time=since)
            self._set_state(Running(since=since), CHECK_IN)
            self.errors.pop(CHECK_IN, None)
            return self._state

    async def check_out(self) -> SessionViewState:
        booking = self._require_booking(CHECK_OUT)
        state = self._state
        if not isinstance(state, Running):
            raise self._invalid(CHECK_OUT)

        with self._single_flight(CHECK_OUT):
            # The clock keeps ticking until the gateway confirms the check-out.
            try:
                check_out_time = await self._gateway.check_out(booking.id)
            except ConflictError as e:
                await self._resync_after_conflict(CHECK_OUT, e, booking.id)
                raise
            except JobSessionError as e:
                self._record_failure(CHECK_OUT, e, booking.id)
                raise
            self._ensure_live(CHECK_OUT)

            check_out = check_out_time or self._now()
            self._booking = booking.with_checkpoints(check_out_time=check_out)
            self._set_state(CheckedOut(check_in=state.since, check_out=check_out), CHECK_OUT)
            self.errors.pop(CHECK_OUT, None)
            return self._state

    def open_timesheet(self) -> TimesheetDraft:
        booking = self._require_booking(OPEN_TIMESHEET)
        self._ensure_idle(OPEN_TIMESHEET)
        state = self._state
        if not isinstance(state, CheckedOut):
            raise self._invalid(OPEN_TIMESHEET)
        if self._review.draft is not None:
            return self._review.draft
        return self._review.open(state.check_in, state.check_out, booking.rate)

    def edit_timesheet(
        self,
        check_in: datetime | str | None = None,
        check_out: datetime | str | None = None,
        rate: float | None = None,
    ) -> TimesheetDraft:
        self._require_booking(EDIT_TIMESHEET)
        self._ensure_idle(EDIT_TIMESHEET)
        if not isinstance(self._state, CheckedOut) or not self._review.is_open:
            raise self._invalid(EDIT_TIMESHEET)
        return self._review.edit(check_in=check_in, check_out=check_out, rate=rate)

    async def submit(self, draft: TimesheetDraft | None = None) -> SubmissionResult:
        booking = self._require_booking(SUBMIT)
        state = self._state
        if not isinstance(state, CheckedOut) or (draft is None and not self._review.is_open):
            raise self._invalid(SUBMIT)

        with self._single_flight(SUBMIT):
            try:
                result = await self._review.confirm(booking.id, draft)
            except JobSessionError as e:
                self._record_failure(SUBMIT, e, booking.id)
                raise
            self._ensure_live(SUBMIT)

            # Optimistic; the gateway moves the status itself.
            self._booking = booking.advance_to(BookingStatus.SENT_FOR_APPROVAL)
            self._set_state(Submitted(check_in=state.check_in, check_out=state.check_out), SUBMIT)
            self.errors.pop(SUBMIT, None)
            return result

    def cancel_timesheet(self) -> None:
        if self._disposed:
            raise SessionDisposedError(f"Session disposed; cannot run {CANCEL_TIMESHEET}")
        self._ensure_idle(CANCEL_TIMESHEET)
        self._review.cancel()

    async def resolve_payout_link(self) -> str | None:
        """Attach the payout link once the session reached PaymentReceived."""
        state = self._state
        if self._disposed:
            raise SessionDisposedError(f"Session disposed; cannot run {PAYOUT_LINK}")
        if not isinstance(state, PaymentReceived):
            raise self._invalid(PAYOUT_LINK)
        if state.payout_link:
            return state.payout_link
        return await self._attach_payout_link()

    def dispose(self) -> None:
        """Tear down the session. Results of pending gateway calls are discarded."""
        self._disposed = True
        self._clock.stop()
        self._review.cancel()
        self._logger.info(
            "Job session disposed",
            extra={"booking_id": self._booking.id if self._booking else None, "operation": self._in_flight},
        )

    async def _hydrate(self, booking_id: str) -> SessionViewState:
        booking = await self._gateway.fetch_booking(booking_id)
        self._ensure_live(HYDRATE)

        self._booking = booking
        self._payout_resolver.reset()
        if self._review.is_open:
            self._review.cancel()
        state = derive_session_state(booking)
        self._set_state(state, HYDRATE)

        if isinstance(state, PaymentReceived):
            await self._attach_payout_link()
        return self._state

    async def _attach_payout_link(self) -> str | None:
        # Failure is non-fatal: the error is kept for inline display and not retried.
        try:
            url = await self._payout_resolver.resolve()
        except JobSessionError as e:
            self._record_failure(PAYOUT_LINK, e, self._booking.id if self._booking else None)
            return None
        self._ensure_live(PAYOUT_LINK)

        state = self._state
        if isinstance(state, PaymentReceived) and state.payout_link != url:
            self._state = PaymentReceived(check_in=state.check_in, check_out=state.check_out, payout_link=url)
        self.errors.pop(PAYOUT_LINK, None)
        return url

    async def _resync_after_conflict(self, operation: str, error: ConflictError, booking_id: str) -> None:
        self._record_failure(operation, error, booking_id)
        self._ensure_live(operation)
        try:
            await self._hydrate(booking_id)
        except JobSessionError as e:
            self._logger.warning(
                "Re-hydrate after conflict failed",
                extra={"booking_id": booking_id, "operation": operation, "error": str(e)},
            )

    def _set_state(self, state: SessionViewState, operation: str) -> None:
        self._state = state
        if isinstance(state, Running):
            self._clock.start(state.since)
        else:
            self._clock.stop()
        self._logger.info(
            "Job session state changed",
            extra={
                "booking_id": self._booking.id if self._booking else None,
                "operation": operation,
                "state": state.name,
                "elapsed": self.elapsed_display,
            },
        )

    @contextmanager
    def _single_flight(self, operation: str) -> Iterator[None]:
        if self._disposed:
            raise SessionDisposedError(f"Session disposed; cannot run {operation}")
        if self._in_flight is not None:
            raise OperationInProgressError(operation, self._in_flight)
        self._in_flight = operation
        try:
            yield
        finally:
            self._in_flight = None

    def _ensure_idle(self, operation: str) -> None:
        # Draft edits share the in-flight window with gateway calls.
        if self._in_flight is not None:
            raise OperationInProgressError(operation, self._in_flight)

    def _ensure_live(self, operation: str) -> None:
        if self._disposed:
            self._logger.info("Discarding result for disposed session", extra={"operation": operation})
            raise SessionDisposedError(f"Session disposed while {operation} was in flight")

    def _require_booking(self, operation: str) -> Booking:
        if self._disposed:
            raise SessionDisposedError(f"Session disposed; cannot run {operation}")
        if self._booking is None:
            raise InvalidTransitionError(f"Cannot {operation} before the booking is loaded")
        return self._booking

    def _invalid(self, operation: str) -> InvalidTransitionError:
        state_name = self._state.name if self._state is not None else "unloaded"
        error = InvalidTransitionError(f"Cannot {operation} while session is {state_name}")
        self.errors[operation] = error
        return error

    def _record_failure(self, operation: str, error: JobSessionError, booking_id: str | None) -> None:
        self.errors[operation] = error
        self._logger.warning(
            "Job session operation failed",
            extra={
                "booking_id": booking_id,
                "operation": operation,
                "state": self._state.name if self._state is not None else None,
                "status_code": getattr(error, "status_code", None),
                "error": str(error),
            },
        )
