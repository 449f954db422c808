from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from jobsession.application.exceptions import CheckOutBeforeCheckInError, RateBelowMinimumError
from jobsession.application.ports.booking_gateway import BookingGatewayPort
from jobsession.application.utils.session_messages import TIMESHEET_SENT_MESSAGE
from jobsession.application.utils.time_utils import parse_local_input, safe_timezone, to_local, to_utc_iso
from jobsession.core.config import settings
from jobsession.domain.entities.timesheet import SubmissionResult, TimesheetDraft, TimesheetSubmission

OK = "ok"
RATE_BELOW_MINIMUM = "rate_below_minimum"
CHECK_OUT_BEFORE_CHECK_IN = "check_out_before_check_in"


@dataclass(frozen=True)
class ValidationOutcome:
    reason: str = OK
    min_rate: float | None = None

    @property
    def ok(self) -> bool:
        return self.reason == OK


class TimesheetReviewUseCase:
    def __init__(
        self,
        gateway: BookingGatewayPort,
        min_rate: float | None = None,
        timezone: ZoneInfo | None = None,
        enforce_checkpoint_order: bool | None = None,
    ) -> None:
        self._gateway = gateway
        self._min_rate = settings.MIN_RECOMMENDED_RATE if min_rate is None else min_rate
        self._timezone = timezone or safe_timezone(settings.LOCAL_TIMEZONE)
        self._enforce_checkpoint_order = (
            settings.TIMESHEET_ENFORCE_CHECKPOINT_ORDER
            if enforce_checkpoint_order is None
            else enforce_checkpoint_order
        )
        self._draft: TimesheetDraft | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def draft(self) -> TimesheetDraft | None:
        return self._draft

    @property
    def is_open(self) -> bool:
        return self._draft is not None

    @property
    def min_rate(self) -> float:
        return self._min_rate

    def open(self, check_in: datetime, check_out: datetime, agreed_rate: float | None) -> TimesheetDraft:
        """Seed an editable draft from the recorded checkpoints and the agreed rate."""
        self._draft = TimesheetDraft(
            check_in=to_local(check_in, self._timezone),
            check_out=to_local(check_out, self._timezone),
            rate=float(agreed_rate or 0.0),
        )
        return self._draft

    def edit(
        self,
        check_in: datetime | str | None = None,
        check_out: datetime | str | None = None,
        rate: float | None = None,
    ) -> TimesheetDraft:
        """Apply user edits. String times are read as local datetime-local values."""
        if self._draft is None:
            raise ValueError("No timesheet draft is open")
        if check_in is not None:
            self._draft.check_in = self._as_local(check_in)
        if check_out is not None:
            self._draft.check_out = self._as_local(check_out)
        if rate is not None:
            self._draft.rate = float(rate)
        return self._draft

    def validate(self, draft: TimesheetDraft) -> ValidationOutcome:
        # NaN and infinity never satisfy the minimum.
        if not math.isfinite(draft.rate) or draft.rate < self._min_rate:
            return ValidationOutcome(reason=RATE_BELOW_MINIMUM, min_rate=self._min_rate)
        if self._enforce_checkpoint_order and draft.check_out < draft.check_in:
            return ValidationOutcome(reason=CHECK_OUT_BEFORE_CHECK_IN)
        return ValidationOutcome()

    def build_submission(self, draft: TimesheetDraft) -> TimesheetSubmission:
        return TimesheetSubmission(
            check_in=to_utc_iso(draft.check_in),
            check_out=to_utc_iso(draft.check_out),
            rate=draft.rate,
        )

    async def confirm(self, booking_id: str, draft: TimesheetDraft | None = None) -> SubmissionResult:
        """
        Re-validate and send the draft to the gateway.

        On success the draft is discarded. On failure it is kept so the user
        can retry without re-entering anything.
        """
        draft = draft or self._draft
        if draft is None:
            raise ValueError("No timesheet draft is open")

        outcome = self.validate(draft)
        if outcome.reason == RATE_BELOW_MINIMUM:
            raise RateBelowMinimumError(draft.rate, self._min_rate)
        if outcome.reason == CHECK_OUT_BEFORE_CHECK_IN:
            raise CheckOutBeforeCheckInError("Check-out time must not be earlier than check-in time")

        submission = self.build_submission(draft)
        acknowledgment = await self._gateway.submit_timesheet(booking_id, submission)

        self._draft = None
        self._logger.info("Timesheet submitted", extra={"booking_id": booking_id, "operation": "submit"})
        return SubmissionResult(
            submission=submission,
            message=TIMESHEET_SENT_MESSAGE,
            acknowledgment=acknowledgment,
        )

    def cancel(self) -> None:
        self._draft = None

    def _as_local(self, value: datetime | str) -> datetime:
        if isinstance(value, str):
            return parse_local_input(value, self._timezone)
        return to_local(value, self._timezone)
