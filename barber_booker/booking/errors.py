from __future__ import annotations

from typing import Mapping


class BookingFlowError(RuntimeError):
    """Base class for failures of the vendor booking flow."""


class MobileValidationError(BookingFlowError):
    """The vendor rejected the mobile number."""


class TokenNotFoundError(BookingFlowError):
    """The login page no longer carries the anti-forgery field."""


class LoginRejectedError(BookingFlowError):
    """The login submit answered with neither success nor redirect."""


class UnexpectedStatusError(BookingFlowError):
    def __init__(self, step: str, status_code: int, headers: Mapping[str, str] | None = None) -> None:
        super().__init__(f"{step} answered with unexpected status {status_code}")
        self.step = step
        self.status_code = status_code
        self.headers = dict(headers or {})
