"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 1000
MAX_CI_LENGTH = 32
MAX_COMPLEMENT_LENGTH = 8

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
# Note: production URLs should be added via FRONTEND_URL environment variable
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Calendar event types
EVENT_TYPE_APPOINTMENT = "appointment"
EVENT_TYPE_UNAVAILABLE = "unavailable"

# Booking reference: number of random bytes behind the opaque hash (hex encoded -> 32 chars)
BOOKING_HASH_BYTES = 16

# Weekday keys used by the weekly working plan (index matches date.weekday())
WEEKDAY_NAMES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

# Provider selector value meaning "first provider with free time"
ANY_PROVIDER = "any-provider"

# Conflict guard reference date modes (RESERVATION_CHECK_DATE)
RESERVATION_CHECK_TODAY = "today"
RESERVATION_CHECK_APPOINTMENT = "appointment"
