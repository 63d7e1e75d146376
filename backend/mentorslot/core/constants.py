# backend/mentorslot/core/constants.py
"""Shared constants for the reservation engine."""

BRAND_NAME = "MentorSlot"

# Availability grid
SLOT_GRANULARITY_MINUTES = 15
MINUTES_PER_DAY = 24 * 60

# Payment window
DEFAULT_PAYMENT_WINDOW_SECONDS = 300
DEFAULT_ALLOWED_DURATIONS = (30, 60)

# Cancellation reasons
TIMEOUT_REASON = "timeout"
TIMEOUT_REASON_MESSAGE = "Booking expired after payment window elapsed"
USER_CANCEL_REASON = "cancelled_by_user"

# Client-side storage keys
TIMEOUT_STORAGE_KEY = "booking_timeouts"
HANDLED_EXPIRY_STORAGE_KEY = "handled_expiry_sessions"
HANDLED_EXPIRY_TTL_SECONDS = 24 * 60 * 60

# Largest batch the timeout sync/status routes accept
TIMEOUT_BATCH_LIMIT = 200

# Auth header set by the upstream gateway
USER_ID_HEADER = "X-User-Id"
