"""
Deterministic pricing of transfers and rentals.

All amounts are integers in minor units. Given the same tariffs and the same
request, `PricingEngine.quote` always returns the same `Quote`.
"""

from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from tourhub.src import exceptions
from tourhub.src.constants import (
    ADDON_CHILD_SEAT_RATE,
    ADDON_EXTRA_DRIVER_RATE,
    ADDON_GPS_RATE,
    CURRENCY,
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    INSURANCE_BASIC_PERCENT,
    INSURANCE_PREMIUM_PERCENT,
    SECONDS_PER_DAY,
    TRANSFER_DEFAULT_RATE,
)
from tourhub.src.db import Booking, RentalTariff, RouteTariff, TransferRoute, Vehicle
from tourhub.src.enums import AddonType, BookingKind, InsuranceType
from tourhub.src.functions import percentOf
from tourhub.src.intervals import Interval, toUTC
from tourhub.src.schemas import BookingRequest, Quote


ADDON_RATES = {
    AddonType.CHILD_SEAT: ADDON_CHILD_SEAT_RATE,
    AddonType.GPS: ADDON_GPS_RATE,
    AddonType.EXTRA_DRIVER: ADDON_EXTRA_DRIVER_RATE,
}
INSURANCE_PERCENTS = {
    InsuranceType.NONE: 0,
    InsuranceType.BASIC: INSURANCE_BASIC_PERCENT,
    InsuranceType.PREMIUM: INSURANCE_PREMIUM_PERCENT,
}


def rentalDays(interval: Interval) -> int:
    """
    Number of billed rental days, every started 24h period counts in full.

    Example:
        >>> rentalDays(Interval(start=t, end=t + timedelta(hours=25)))
        2
    """
    return -(-interval.duration // timedelta(seconds=SECONDS_PER_DAY))


def rentalBase(days: int, tariff: RentalTariff) -> int:
    """
    Price `days` rental days with greedy tier substitution.

    Whole 30-day blocks go at the monthly rate, then whole 7-day blocks at
    the weekly rate, the remainder at the daily rate. A missing tier rate
    leaves its days to the next tier.
    """
    remaining = days
    base = 0
    if tariff.monthly_rate is not None:
        months, remaining = divmod(remaining, DAYS_PER_MONTH)
        base += months * tariff.monthly_rate
    if tariff.weekly_rate is not None:
        weeks, remaining = divmod(remaining, DAYS_PER_WEEK)
        base += weeks * tariff.weekly_rate
    return base + remaining * tariff.daily_rate


def narrowestTariff(tariffs: List):
    """
    Pick the tariff with the narrowest validity range.

    Ties go to the most recently created tariff, then to the highest id.
    """
    if not tariffs:
        return None
    ordered = sorted(tariffs, key=lambda t: t.id, reverse=True)
    ordered.sort(key=lambda t: toUTC(t.created_on), reverse=True)
    ordered.sort(key=lambda t: t.valid_to - t.valid_from)
    return ordered[0]


class PricingEngine:
    """
    Quote transfers from route tariffs and rentals from category tariffs.

    Args:
        sessionMaker (sessionmaker): Factory of sessions for tariff lookups.
        defaultTransferRate (int, optional): Last resort transfer price used
            when neither a route tariff nor the route's default rate applies.
    """

    def __init__(
        self,
        sessionMaker: sessionmaker,
        defaultTransferRate: Optional[int] = TRANSFER_DEFAULT_RATE,
    ):
        self.sessionMaker = sessionMaker
        self.defaultTransferRate = defaultTransferRate

    def quote(
        self,
        request: BookingRequest,
        vehicleId: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> Quote:
        """
        Price a request, optionally for an already planned vehicle.

        Args:
            request (BookingRequest): A validated booking request.
            vehicleId (int, optional): Planned vehicle; its category selects
                the rental tariff instead of `request.vehicle_category`.
            session (Session, optional): Session to run the lookups in.

        Returns:
            Quote: The price breakdown.

        Raises:
            exceptions.PriceUnavailable: If no tariff and no default applies.
        """
        ownSession = session is None
        session = session or self.sessionMaker()
        try:
            if request.kind == BookingKind.TRANSFER:
                return self.transferQuote(request, session)
            return self.rentalQuote(request, vehicleId, session)
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()

    def transferQuote(self, request: BookingRequest, session: Session) -> Quote:
        route = session.get(TransferRoute, request.route_id)
        if route is None:
            raise exceptions.UnknownValue(Booking.route_id)
        if route.operator_id != request.operator_id:
            raise exceptions.InvalidAssociation(Booking.route_id, Booking.operator_id)

        pickupDate = toUTC(request.starting_at).date()
        tariffs = session.scalars(
            select(RouteTariff)
            .where(RouteTariff.route_id == route.id)
            .where(RouteTariff.valid_from <= pickupDate)
            .where(RouteTariff.valid_to >= pickupDate)
        ).all()
        tariff = narrowestTariff(tariffs)
        if tariff is not None:
            basePrice = tariff.rate
        elif route.default_rate is not None:
            basePrice = route.default_rate
        elif self.defaultTransferRate is not None:
            basePrice = self.defaultTransferRate
        else:
            raise exceptions.PriceUnavailable()

        addonPrice = sum(ADDON_RATES[AddonType(addon)] for addon in request.addons)
        return Quote(
            kind=BookingKind.TRANSFER,
            base_price=basePrice,
            addon_price=addonPrice,
            total=basePrice + addonPrice,
            currency=CURRENCY,
        )

    def rentalQuote(
        self, request: BookingRequest, vehicleId: Optional[int], session: Session
    ) -> Quote:
        category = request.vehicle_category
        if vehicleId is not None:
            vehicle = session.get(Vehicle, vehicleId)
            if vehicle is None:
                raise exceptions.ResourceNotFound(Vehicle, vehicleId)
            category = vehicle.category
        if category is None:
            raise exceptions.MissingParameter(Vehicle.category)

        tariff = self.rentalTariff(
            request.operator_id, category, toUTC(request.starting_at).date(), session
        )
        if tariff is None:
            raise exceptions.PriceUnavailable()

        days = rentalDays(request.interval)
        basePrice = rentalBase(days, tariff)
        addonPrice = days * sum(
            ADDON_RATES[AddonType(addon)] for addon in request.addons
        )
        insurancePrice = percentOf(
            basePrice, INSURANCE_PERCENTS[InsuranceType(request.insurance)]
        )
        return Quote(
            kind=BookingKind.RENTAL,
            base_price=basePrice,
            addon_price=addonPrice,
            insurance_price=insurancePrice,
            deposit=tariff.deposit,
            total=basePrice + addonPrice + insurancePrice,
            currency=CURRENCY,
            rental_days=days,
        )

    def rentalTariff(
        self, operatorId: int, category: str, day: date, session: Session
    ) -> Optional[RentalTariff]:
        tariffs = session.scalars(
            select(RentalTariff)
            .where(RentalTariff.operator_id == operatorId)
            .where(RentalTariff.category == category)
            .where(RentalTariff.valid_from <= day)
            .where(RentalTariff.valid_to >= day)
        ).all()
        return narrowestTariff(tariffs)
