"""
Application configuration and constants for TourHub Scheduling Server.

This module centralizes environment-based configuration, scheduling limits,
pricing rates, and other constants.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "TourHub Scheduling Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@tourhub.com")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "tourhub")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "tourhub-scheduling")
OPENOBSERVE_TIMEOUT = 5  # Seconds to wait for the ingestion endpoint


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Scheduling constraints
# ---------------------------------------------------------------------------
LOAD_BALANCE_WINDOW = 30 * 24 * 60 * 60  # Trailing window for trip counts (in seconds)
TRIP_COUNT_CACHE_TTL = 5 * 60  # Redis TTL of a cached trip count (in seconds)
STORAGE_RETRY_LIMIT = 1  # Retries after a transient storage error
CONFLICT_RETRY_LIMIT = 1  # Re-plans after losing a scheduling race
MAX_BOOKING_DURATION = 90 * 24 * 60 * 60  # Longest bookable interval (in seconds)
MAX_PARTY_SIZE = 60  # Largest party accepted in a single booking

# Isolation level of the booking write transaction
WRITE_ISOLATION_LEVEL = environ.get("WRITE_ISOLATION_LEVEL", "SERIALIZABLE")


# ---------------------------------------------------------------------------
# Pricing constants (all amounts in minor units)
# ---------------------------------------------------------------------------
CURRENCY = environ.get("CURRENCY", "RUB")
MINOR_UNITS = 100  # Minor units per major unit (kopecks per rouble)
SECONDS_PER_DAY = 24 * 60 * 60
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

# Flat rate used when a route has neither a tariff nor its own default rate
_transferDefaultRate = environ.get("TRANSFER_DEFAULT_RATE")
TRANSFER_DEFAULT_RATE = int(_transferDefaultRate) if _transferDefaultRate else None

# Add-on prices, per rental day or once per transfer
ADDON_CHILD_SEAT_RATE = 300 * MINOR_UNITS
ADDON_GPS_RATE = 500 * MINOR_UNITS
ADDON_EXTRA_DRIVER_RATE = 700 * MINOR_UNITS

# Insurance rates in percent of the rental base price
INSURANCE_BASIC_PERCENT = 8
INSURANCE_PREMIUM_PERCENT = 15


# ---------------------------------------------------------------------------
# Booking reference prefixes
# ---------------------------------------------------------------------------
TRANSFER_REFERENCE_PREFIX = "TR"
RENTAL_REFERENCE_PREFIX = "RN"
