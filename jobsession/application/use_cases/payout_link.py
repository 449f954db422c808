from __future__ import annotations

import asyncio
import logging

from jobsession.application.ports.booking_gateway import BookingGatewayPort


class PayoutLinkResolver:
    """
    One-shot resolution of the payout dashboard link.

    Concurrent callers share the in-flight request; later callers get the
    cached URL or the cached error. Failures are not retried until reset().
    """

    def __init__(self, gateway: BookingGatewayPort) -> None:
        self._gateway = gateway
        self._task: asyncio.Task[str] | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def url(self) -> str | None:
        if self._task is None or not self._task.done() or self._task.cancelled():
            return None
        if self._task.exception() is not None:
            return None
        return self._task.result()

    @property
    def error(self) -> BaseException | None:
        if self._task is None or not self._task.done() or self._task.cancelled():
            return None
        return self._task.exception()

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def resolve(self) -> str:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._fetch())
        return await asyncio.shield(self._task)

    def reset(self) -> None:
        # A request still in flight is left to finish; its result is dropped.
        self._task = None

    async def _fetch(self) -> str:
        try:
            url = await self._gateway.fetch_payout_link()
        except Exception as e:
            self._logger.warning("Payout link unavailable", extra={"operation": "payout_link", "error": str(e)})
            raise
        self._logger.info("Payout link resolved", extra={"operation": "payout_link"})
        return url
