"""Barber appointment booking over the vendor's web flow."""

__version__ = "0.1.0"
