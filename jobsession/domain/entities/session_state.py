from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Union


@dataclass(frozen=True)
class NotStarted:
    name: ClassVar[str] = "not_started"


@dataclass(frozen=True)
class Running:
    since: datetime
    name: ClassVar[str] = "running"


@dataclass(frozen=True)
class CheckedOut:
    check_in: datetime
    check_out: datetime
    name: ClassVar[str] = "checked_out"


@dataclass(frozen=True)
class Submitted:
    check_in: datetime
    check_out: datetime
    name: ClassVar[str] = "submitted"


@dataclass(frozen=True)
class PendingPayment:
    check_in: datetime
    check_out: datetime
    name: ClassVar[str] = "pending_payment"


@dataclass(frozen=True)
class PaymentReceived:
    check_in: datetime
    check_out: datetime
    payout_link: str | None = None
    name: ClassVar[str] = "payment_received"


SessionViewState = Union[NotStarted, Running, CheckedOut, Submitted, PendingPayment, PaymentReceived]

# States that carry both checkpoints.
CompletedCheckpoints = (CheckedOut, Submitted, PendingPayment, PaymentReceived)
