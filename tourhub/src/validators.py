"""
Validation checks for TourHub Scheduling API.

This module centralizes guard logic such as:
- State transition enforcement
- Booking request sanity checks

All functions raise appropriate exceptions from `tourhub.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Column

from tourhub.src import exceptions
from tourhub.src.constants import MAX_BOOKING_DURATION, MAX_PARTY_SIZE
from tourhub.src.db import Booking
from tourhub.src.enums import BookingKind, InsuranceType
from tourhub.src.functions import isValidTransition
from tourhub.src.intervals import toUTC
from tourhub.src.schemas import BookingRequest


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


# ---------------------------------------------------------------------------
# Booking requests
# ---------------------------------------------------------------------------
def bookingRequest(request: BookingRequest, now: datetime) -> bool:
    """
    Validate a booking request before any resource is planned.

    Conditions:
        - The interval must be non-empty (`starting_at < ending_at`).
        - The interval must not start in the past and must not exceed
          MAX_BOOKING_DURATION.
        - The party size must be between 1 and MAX_PARTY_SIZE.
        - A transfer must name its route and always needs a driver.
        - A self-drive rental must not name a driver.
        - Insurance applies to rentals only.
        - Add-ons must not repeat.

    Args:
        request (BookingRequest): The request to validate.
        now (datetime): Current time, used for the "not in the past" check.

    Returns:
        bool: True if the request is valid.

    Raises:
        exceptions.InvalidValue: If any field holds an impossible value.
        exceptions.MissingParameter: If a transfer has no route.
    """
    startingAt = toUTC(request.starting_at)
    endingAt = toUTC(request.ending_at)
    if not startingAt < endingAt:
        raise exceptions.InvalidValue(Booking.ending_at)
    if startingAt < toUTC(now):
        raise exceptions.InvalidValue(Booking.starting_at)
    if endingAt - startingAt > timedelta(seconds=MAX_BOOKING_DURATION):
        raise exceptions.InvalidValue(Booking.ending_at)
    if not 1 <= request.party_size <= MAX_PARTY_SIZE:
        raise exceptions.InvalidValue(Booking.party_size)
    if request.kind == BookingKind.TRANSFER:
        if request.route_id is None:
            raise exceptions.MissingParameter(Booking.route_id)
        if request.requires_driver is False:
            raise exceptions.InvalidValue(Booking.driver_id)
        if request.insurance != InsuranceType.NONE:
            raise exceptions.InvalidValue(Booking.insurance)
    elif request.requires_driver is False and (
        request.driver_id is not None or request.preferred_driver_id is not None
    ):
        raise exceptions.InvalidValue(Booking.driver_id)
    if len(set(request.addons)) != len(request.addons):
        raise exceptions.InvalidValue(Booking.addons)
    return True
