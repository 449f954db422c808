import logging
from collections.abc import Callable

from jobsession.application.ports.booking_gateway import BookingGatewayPort
from jobsession.application.use_cases.job_session import JobSessionUseCase
from jobsession.application.use_cases.payout_link import PayoutLinkResolver
from jobsession.application.use_cases.session_clock import SessionClock
from jobsession.application.use_cases.timesheet_review import TimesheetReviewUseCase
from jobsession.application.utils.time_utils import safe_timezone
from jobsession.core.config import settings
from jobsession.infrastructure.booking_api.booking_api_client import BookingApiClient
from jobsession.infrastructure.booking_api.booking_api_gateway import BookingApiGateway
from jobsession.infrastructure.booking_api.mock_gateway import MockBookingGateway


_gateway: BookingGatewayPort | None = None


def get_booking_gateway() -> BookingGatewayPort:
    global _gateway
    if _gateway is not None:
        return _gateway

    logger = logging.getLogger(__name__)
    logger.info(
        "BOOKING_API_ACCESS_TOKEN present=%s ENV=%s",
        bool(settings.BOOKING_API_ACCESS_TOKEN),
        settings.ENV,
    )

    if not settings.BOOKING_API_ACCESS_TOKEN:
        if settings.ENV.lower() in {"dev", "local"}:
            logger.info("Using MockBookingGateway (token missing, ENV=dev/local)")
            _gateway = MockBookingGateway()
            return _gateway
        raise ValueError("BOOKING_API_ACCESS_TOKEN is required to reach the Booking API.")

    logger.info("Using BookingApiGateway at %s", settings.BOOKING_API_BASE_URL)
    client = BookingApiClient(
        access_token=settings.BOOKING_API_ACCESS_TOKEN,
        base_url=settings.BOOKING_API_BASE_URL,
        timeout=settings.BOOKING_API_TIMEOUT_SECONDS,
    )
    _gateway = BookingApiGateway(client=client)
    return _gateway


def get_timesheet_review(gateway: BookingGatewayPort) -> TimesheetReviewUseCase:
    return TimesheetReviewUseCase(
        gateway=gateway,
        min_rate=settings.MIN_RECOMMENDED_RATE,
        timezone=safe_timezone(settings.LOCAL_TIMEZONE),
        enforce_checkpoint_order=settings.TIMESHEET_ENFORCE_CHECKPOINT_ORDER,
    )


def get_job_session(
    gateway: BookingGatewayPort | None = None,
    on_tick: Callable[[int], None] | None = None,
) -> JobSessionUseCase:
    gateway = gateway or get_booking_gateway()
    return JobSessionUseCase(
        gateway=gateway,
        review=get_timesheet_review(gateway),
        payout_resolver=PayoutLinkResolver(gateway),
        clock=SessionClock(interval_seconds=settings.CLOCK_TICK_SECONDS, on_tick=on_tick),
    )
