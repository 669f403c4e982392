from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
import os
from typing import Any

from dotenv import load_dotenv

from ..models.booking import (
    DEFAULT_APPOINTMENT_TYPE_ID,
    DEFAULT_BOOKING_LENGTH,
    DEFAULT_SCHEDULER_ID,
    VENDOR_BASE_URL,
    BookingConfig,
)

load_dotenv()

DEFAULT_MOBILE = "0544458876"

_TIME_FMT = "%H:%M"
_DATE_FMT = "%Y-%m-%d"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_int(name: str, value: str | None, default: int | None = None) -> int | None:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _parse_float(name: str, value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _parse_date(name: str, value: str | None) -> str | None:
    """Validate a YYYY-MM-DD string, returning it unchanged."""

    if not value:
        return None
    try:
        datetime.strptime(value, _DATE_FMT)
    except ValueError as exc:
        raise ValueError(f"{name} must use YYYY-MM-DD, got {value!r}") from exc
    return value


def _parse_time(name: str, value: str | None) -> str | None:
    """Validate an HH:MM string, returning it unchanged."""

    if not value:
        return None
    try:
        datetime.strptime(value, _TIME_FMT)
    except ValueError as exc:
        raise ValueError(f"{name} must use HH:MM, got {value!r}") from exc
    return value


@dataclass(slots=True)
class Settings:
    """Aggregated runtime configuration."""

    base_url: str
    mobile: str
    appointment_type_id: int
    scheduler_id: int
    branch_id: int
    booking_length: int
    date: str | None = None
    time: str | None = None
    request_timeout_seconds: float | None = None
    verify_tls: bool = True
    barber_url: str | None = None
    headless: bool = False
    explore_wait_seconds: int = 300
    slow_mo_ms: int = 500

    def to_booking_config(self) -> BookingConfig:
        return BookingConfig(
            mobile=self.mobile,
            appointment_type_id=self.appointment_type_id,
            scheduler_id=self.scheduler_id,
            date=self.date,
            time=self.time,
            branch_id=self.branch_id,
            length=self.booking_length,
        )

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with command-line values applied; ``None`` keeps the current value."""

        values = {name: value for name, value in overrides.items() if value is not None}
        if "date" in values:
            values["date"] = _parse_date("--date", values["date"])
        if "time" in values:
            values["time"] = _parse_time("--time", values["time"])
        return replace(self, **values)


def load_settings() -> Settings:
    """Load configuration from environment variables (and a local .env file)."""

    base_url = os.getenv("BASE_URL", VENDOR_BASE_URL) or VENDOR_BASE_URL
    mobile = os.getenv("MOBILE", DEFAULT_MOBILE) or DEFAULT_MOBILE

    return Settings(
        base_url=base_url.rstrip("/"),
        mobile=mobile,
        appointment_type_id=_parse_int(
            "APPOINTMENT_TYPE_ID", os.getenv("APPOINTMENT_TYPE_ID"), DEFAULT_APPOINTMENT_TYPE_ID
        ),
        scheduler_id=_parse_int("SCHEDULER_ID", os.getenv("SCHEDULER_ID"), DEFAULT_SCHEDULER_ID),
        branch_id=_parse_int("BRANCH_ID", os.getenv("BRANCH_ID"), 0),
        booking_length=_parse_int("BOOKING_LENGTH", os.getenv("BOOKING_LENGTH"), DEFAULT_BOOKING_LENGTH),
        date=_parse_date("DATE", os.getenv("DATE")),
        time=_parse_time("TIME", os.getenv("TIME")),
        request_timeout_seconds=_parse_float("REQUEST_TIMEOUT_SECONDS", os.getenv("REQUEST_TIMEOUT_SECONDS")),
        verify_tls=_parse_bool(os.getenv("VERIFY_TLS"), default=True),
        barber_url=os.getenv("BARBER_URL") or None,
        headless=_parse_bool(os.getenv("HEADLESS")),
        explore_wait_seconds=_parse_int("EXPLORE_WAIT_SECONDS", os.getenv("EXPLORE_WAIT_SECONDS"), 300),
        slow_mo_ms=_parse_int("SLOW_MO_MS", os.getenv("SLOW_MO_MS"), 500),
    )
