from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from jobsession.application.utils.time_utils import ensure_utc, utc_now


def elapsed_seconds(since: datetime, now: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    return max(0, int((ensure_utc(now) - ensure_utc(since)).total_seconds()))


def format_elapsed(total_seconds: int) -> str:
    hours, remainder = divmod(max(0, int(total_seconds)), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class SessionClock:
    """
    Ticks while a session is running and reports elapsed wall-clock time.

    Every tick recomputes now - since, so missed ticks (a suspended loop, a
    backgrounded app) never make the display drift.
    """

    def __init__(
        self,
        now: Callable[[], datetime] = utc_now,
        interval_seconds: float = 1.0,
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        self._now = now
        self._interval_seconds = interval_seconds
        self._on_tick = on_tick
        self._since: datetime | None = None
        self._task: asyncio.Task[None] | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return self._since is not None

    def start(self, since: datetime) -> None:
        self.stop()
        self._since = since
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._logger.debug("Session clock started", extra={"elapsed": self.display()})

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._since is not None:
            self._logger.debug("Session clock stopped", extra={"elapsed": self.display()})
        self._since = None

    def tick(self) -> int:
        elapsed = self.elapsed()
        if self._on_tick is not None:
            self._on_tick(elapsed)
        return elapsed

    def elapsed(self) -> int:
        if self._since is None:
            return 0
        return elapsed_seconds(self._since, self._now())

    def display(self) -> str:
        return format_elapsed(self.elapsed())

    async def _run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self._interval_seconds)
