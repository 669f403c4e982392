"""Data models."""

from .booking import BookingConfig, BookingResult

__all__ = ["BookingConfig", "BookingResult"]
