#!/usr/bin/env python3
"""
Interactive local job session harness.

Usage:
  python3 scripts/job_session_local.py [booking_id]

What it does:
- Builds a job session through the project wiring (mock gateway when ENV=dev/local
  and no BOOKING_API_ACCESS_TOKEN is set)
- Hydrates the booking and lets you check in, check out, review and send the timesheet
- Prints the session state, elapsed timer and any inline error after every command
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jobsession.application.exceptions import JobSessionError
from jobsession.application.use_cases.job_session import JobSessionUseCase
from jobsession.core.logging_setup import configure_logging
from jobsession.domain.entities.booking import BookingStatus
from jobsession.infrastructure.booking_api.mock_gateway import MockBookingGateway
from jobsession.wiring.dependencies import get_booking_gateway, get_job_session

HELP = """Commands:
  in        -> check in (starts the timer)
  out       -> check out
  review    -> open the timesheet draft
  rate N    -> edit the draft rate
  times A B -> edit draft check-in/check-out (YYYY-MM-DDTHH:MM, local time)
  send      -> confirm and send the timesheet
  cancel    -> discard the draft
  status S  -> (mock only) move the booking to status S, then reload
  reload    -> re-fetch the booking
  /quit     -> exit"""


def _print_session(session: JobSessionUseCase) -> None:
    booking = session.booking
    summary = session.summary()
    print("-" * 60)
    if booking is not None:
        print(f"{booking.title} @ {booking.location or '-'} | rate: {booking.rate} | status: {booking.status_label}")
    print(f"state: {session.state.name if session.state else '-'}  timer: {session.elapsed_display}")
    print(f"{summary.headline} - {summary.detail}")
    if session.draft is not None:
        draft = session.draft
        print(f"draft: in={draft.check_in.isoformat()} out={draft.check_out.isoformat()} rate={draft.rate}")
    print(f"actions: {', '.join(sorted(session.available_actions)) or '(none)'}")
    for operation, error in session.errors.items():
        print(f"! {operation}: {error}")


async def _run_command(session: JobSessionUseCase, booking_id: str, parts: list[str]) -> None:
    cmd, args = parts[0].lower(), parts[1:]
    if cmd == "in":
        await session.check_in()
    elif cmd == "out":
        await session.check_out()
    elif cmd == "review":
        session.open_timesheet()
    elif cmd == "rate" and args:
        session.edit_timesheet(rate=float(args[0]))
    elif cmd == "times" and len(args) == 2:
        session.edit_timesheet(check_in=args[0], check_out=args[1])
    elif cmd == "send":
        result = await session.submit()
        print(f"Hurray! {result.message}")
    elif cmd == "cancel":
        session.cancel_timesheet()
    elif cmd == "status" and args:
        gateway = get_booking_gateway()
        if not isinstance(gateway, MockBookingGateway):
            print("status changes are only available with the mock gateway")
            return
        gateway.set_status(booking_id, BookingStatus(args[0]))
        await session.hydrate(booking_id)
    elif cmd == "reload":
        await session.hydrate(booking_id)
    else:
        print(HELP)


async def main() -> None:
    configure_logging()
    booking_id = sys.argv[1] if len(sys.argv) > 1 else "1"
    session = get_job_session()

    print("\nLocal Job Session Harness")
    print(HELP)
    try:
        await session.hydrate(booking_id)
    except JobSessionError as e:
        print(f"Could not load booking {booking_id}: {e}")
        return
    _print_session(session)

    try:
        while True:
            try:
                text = (await asyncio.to_thread(input, "\n> ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                return
            if not text:
                _print_session(session)
                continue
            if text.lower() in ("/quit", "/exit"):
                print("Bye!")
                return
            try:
                await _run_command(session, booking_id, text.split())
            except (JobSessionError, ValueError) as e:
                print(f"ERROR: {e}")
            _print_session(session)
    finally:
        session.dispose()


if __name__ == "__main__":
    asyncio.run(main())
