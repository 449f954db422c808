from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class BookingStatus(str, Enum):
    # Declaration order is the direction remote status may move in.
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    SENT_FOR_APPROVAL = "sent_for_approval"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_RECEIVED = "payment_received"

    @property
    def rank(self) -> int:
        return list(BookingStatus).index(self)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @classmethod
    def parse(cls, value: str | None) -> BookingStatus | None:
        """Map a wire status string to a member. Unknown values return None."""
        if not value:
            return None
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            return None


SUBMITTED_STATUSES = frozenset({BookingStatus.SENT_FOR_APPROVAL, BookingStatus.COMPLETED})


@dataclass(frozen=True)
class Booking:
    id: str
    title: str = ""
    service: str | None = None
    suburb: str | None = None
    address: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None
    rate: float | None = None  # agreed rate, currency per hour
    status: BookingStatus | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None

    def __post_init__(self) -> None:
        if self.check_out_time is not None and self.check_in_time is None:
            raise ValueError(f"Booking {self.id} has a check-out time without a check-in time")

    @property
    def location(self) -> str | None:
        return self.address or self.suburb

    @property
    def status_label(self) -> str | None:
        return self.status.label if self.status else None

    def advance_to(self, status: BookingStatus) -> Booking:
        """Return a copy with the new status, unless that would move status backward."""
        if self.status is not None and status.rank <= self.status.rank:
            return self
        return replace(self, status=status)

    def with_checkpoints(
        self,
        check_in_time: datetime | None = None,
        check_out_time: datetime | None = None,
    ) -> Booking:
        return replace(
            self,
            check_in_time=check_in_time or self.check_in_time,
            check_out_time=check_out_time or self.check_out_time,
        )
