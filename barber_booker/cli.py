from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from .booking import SessionedBookingClient
from .config import Settings, load_settings
from .explorer import run_exploration
from .models import BookingConfig

LOGGER = logging.getLogger(__name__)

EXPLORE_USAGE = """\
Please provide the barber booking URL.

Usage:
  barber-booker explore <URL>
  or
  BARBER_URL=<URL> barber-booker explore

Example:
  barber-booker explore https://example-barber-site.com/book"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="barber_booker command-line interface")
    parser.add_argument("--log-level", default="INFO", help="Logging level (INFO, DEBUG, ...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    book_parser = subparsers.add_parser("book", help="Log in over HTTP and book when a date and time are set")
    book_parser.add_argument("--mobile", default=None, help="Registered mobile number (env MOBILE)")
    book_parser.add_argument("--date", default=None, help="Appointment date YYYY-MM-DD (env DATE)")
    book_parser.add_argument("--time", default=None, help="Appointment time HH:MM (env TIME)")
    book_parser.add_argument("--appointment-type-id", type=int, default=None, help="Appointment type id")
    book_parser.add_argument("--scheduler-id", type=int, default=None, help="Provider (scheduler) id")
    book_parser.add_argument("--branch-id", type=int, default=None, help="Branch id")

    explore_parser = subparsers.add_parser("explore", help="Open the booking site in a browser and log API traffic")
    explore_parser.add_argument("url", nargs="?", default=None, help="Start URL (env BARBER_URL)")
    window_group = explore_parser.add_mutually_exclusive_group()
    window_group.add_argument(
        "--show-browser", dest="headless", action="store_false", default=None, help="Show the browser window"
    )
    window_group.add_argument(
        "--headless", dest="headless", action="store_true", default=None, help="Run the browser without a window"
    )
    explore_parser.add_argument("--wait-seconds", type=int, default=None, help="How long to keep the browser open")
    return parser


def describe_config(config: BookingConfig) -> str:
    lines = [
        "Configuration:",
        f"  Mobile: {config.mobile}",
        f"  Appointment Type ID: {config.appointment_type_id}",
        f"  Scheduler ID: {config.scheduler_id}",
    ]
    if config.wants_booking():
        lines.append(f"  Date: {config.date}")
        lines.append(f"  Time: {config.time}")
    else:
        lines.append("  ⚠️  No date/time specified - will only login and check availability")
    return "\n".join(lines)


def run_book(settings: Settings) -> int:
    config = settings.to_booking_config()
    print("🚀 Starting API-based booking...\n")
    print(describe_config(config))

    try:
        with SessionedBookingClient(
            settings.base_url,
            timeout=settings.request_timeout_seconds,
            verify=settings.verify_tls,
        ) as client:
            result = client.complete_booking(config)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Fatal error: %s", exc)
        print(f"\n❌ Fatal error: {exc}")
        return 1

    if result.success:
        print("\n✅ SUCCESS!")
        print(f"   {result.message}")
        if result.date and result.time:
            print(f"   Appointment: {result.date} at {result.time}")
        return 0

    print("\n❌ FAILED")
    print(f"   {result.message or 'Unknown error'}")
    return 1


def run_explore(settings: Settings, url: str | None) -> int:
    target = url or settings.barber_url
    if not target:
        print(f"❌ Error: {EXPLORE_USAGE}")
        return 1

    try:
        asyncio.run(
            run_exploration(
                target,
                headless=settings.headless,
                wait_seconds=settings.explore_wait_seconds,
                slow_mo_ms=settings.slow_mo_ms,
            )
        )
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted by user")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        settings = load_settings()
        if args.command == "book":
            settings = settings.with_overrides(
                mobile=args.mobile,
                date=args.date,
                time=args.time,
                appointment_type_id=args.appointment_type_id,
                scheduler_id=args.scheduler_id,
                branch_id=args.branch_id,
            )
        elif args.command == "explore":
            settings = settings.with_overrides(
                headless=args.headless,
                explore_wait_seconds=args.wait_seconds,
            )
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "book":
        return run_book(settings)
    if args.command == "explore":
        return run_explore(settings, args.url)
    parser.error("Unknown command")  # pragma: no cover - argparse enforces valid commands
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
