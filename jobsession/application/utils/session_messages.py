from __future__ import annotations

from dataclasses import dataclass

from jobsession.domain.entities.session_state import (
    CheckedOut,
    NotStarted,
    PaymentReceived,
    PendingPayment,
    Running,
    SessionViewState,
    Submitted,
)

TIMESHEET_SENT_MESSAGE = "Your job was done and timesheet has been sent successfully!"


@dataclass(frozen=True)
class SessionSummary:
    headline: str
    detail: str


def summarize_state(state: SessionViewState | None) -> SessionSummary:
    if state is None:
        return SessionSummary("Loading job details...", "")
    if isinstance(state, NotStarted):
        return SessionSummary("Job Session", "Check in when you arrive to start the timer.")
    if isinstance(state, Running):
        return SessionSummary("Job Session", "Timer running. Check out when the job is done.")
    if isinstance(state, CheckedOut):
        return SessionSummary("Job Session", "Checked out. Review and send your timesheet for approval.")
    if isinstance(state, Submitted):
        return SessionSummary(
            "Job Session Concluded",
            "Timesheet sent for approval. We'll notify you once it's reviewed.",
        )
    if isinstance(state, PendingPayment):
        return SessionSummary(
            "Timesheet Approved!",
            "Your payment is on the way. We'll notify you when it's processed.",
        )
    if isinstance(state, PaymentReceived):
        if state.payout_link:
            return SessionSummary("Payment Received", f"View your payout: {state.payout_link}")
        return SessionSummary("Payment Received", "Your payment has been processed.")
    raise TypeError(f"Unknown session state: {state!r}")
