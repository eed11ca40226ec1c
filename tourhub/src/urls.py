"""
API Endpoint URL Constants

This module defines the URL paths used by the customer and operator
applications. They are relative to the application mount point
(`/customer` or `/operator`).
"""

# -------------------------------
# Booking
# -------------------------------
URL_BOOKING = "/booking"
URL_BOOKING_AVAILABILITY = "/booking/availability"
URL_BOOKING_QUOTE = "/booking/quote"

# -------------------------------
# Schedule
# -------------------------------
URL_SCHEDULE = "/schedule"
URL_SCHEDULE_BLOCK = "/schedule/block"

# -------------------------------
# Resources
# -------------------------------
URL_VEHICLE = "/vehicle"
URL_DRIVER = "/driver"
