"""Versioned API routers."""

from . import availability, bookings, slots

__all__ = ["availability", "bookings", "slots"]
