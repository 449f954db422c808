from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class TimesheetDraft:
    # Local, timezone-aware times as the user sees and edits them.
    check_in: datetime
    check_out: datetime
    rate: float


@dataclass(frozen=True)
class TimesheetSubmission:
    check_in: str  # ISO-8601 UTC, e.g. 2024-01-01T09:00:00Z
    check_out: str
    rate: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "check_in_time": self.check_in,
            "check_out_time": self.check_out,
            "rate": self.rate,
        }


@dataclass(frozen=True)
class SubmissionResult:
    submission: TimesheetSubmission
    message: str
    acknowledgment: dict[str, Any] = field(default_factory=dict)
