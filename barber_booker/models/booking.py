from __future__ import annotations

from dataclasses import dataclass
from typing import Any

VENDOR_BASE_URL = "https://mentor.tormahir.co.il"

# Men's haircut with Saul, as picked in the vendor's wizard.
DEFAULT_APPOINTMENT_TYPE_ID = 37331
DEFAULT_SCHEDULER_ID = 6132
DEFAULT_BOOKING_LENGTH = 7


@dataclass(slots=True)
class BookingConfig:
    """What to book and for whom."""

    mobile: str
    appointment_type_id: int = DEFAULT_APPOINTMENT_TYPE_ID
    scheduler_id: int = DEFAULT_SCHEDULER_ID
    date: str | None = None
    time: str | None = None
    branch_id: int = 0
    length: int = DEFAULT_BOOKING_LENGTH

    @property
    def appointment_type_ids(self) -> list[int]:
        return [self.appointment_type_id or DEFAULT_APPOINTMENT_TYPE_ID]

    def wants_booking(self) -> bool:
        return bool(self.date and self.time)


@dataclass(slots=True)
class BookingResult:
    """Outcome of a booking attempt."""

    success: bool
    message: str
    date: str | None = None
    time: str | None = None
    available_times: Any = None

    def summary_line(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        line = f"{status}: {self.message}"
        if self.date and self.time:
            line += f" | appointment {self.date} at {self.time}"
        return line
