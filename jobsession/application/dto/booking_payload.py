from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from jobsession.application.utils.time_utils import ensure_utc
from jobsession.domain.entities.booking import Booking, BookingStatus


def _utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


class BookingDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    title: str | None = None
    service: str | None = None
    suburb: str | None = None
    address: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    description: str | None = None
    rate: float | None = None
    status: str | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None

    def to_entity(self) -> Booking:
        return Booking(
            id=str(self.id),
            title=self.title or "",
            service=self.service,
            suburb=self.suburb,
            address=self.address,
            start_time=_utc(self.start_time),
            end_time=_utc(self.end_time),
            description=self.description,
            rate=self.rate,
            status=BookingStatus.parse(self.status),
            check_in_time=_utc(self.check_in_time),
            check_out_time=_utc(self.check_out_time),
        )


class CheckpointDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    booking_id: int | str | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None


class PayoutLinkDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
