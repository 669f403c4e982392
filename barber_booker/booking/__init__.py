"""HTTP replay of the vendor booking flow."""

from .client import FlowStage, SessionedBookingClient, extract_verification_token
from .cookies import CookieStore
from .errors import (
    BookingFlowError,
    LoginRejectedError,
    MobileValidationError,
    TokenNotFoundError,
    UnexpectedStatusError,
)

__all__ = [
    "BookingFlowError",
    "CookieStore",
    "FlowStage",
    "LoginRejectedError",
    "MobileValidationError",
    "SessionedBookingClient",
    "TokenNotFoundError",
    "UnexpectedStatusError",
    "extract_verification_token",
]
