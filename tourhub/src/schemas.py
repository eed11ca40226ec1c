from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, computed_field

from tourhub.src.constants import CURRENCY, MINOR_UNITS
from tourhub.src.enums import (
    AddonType,
    BookingKind,
    BookingStatus,
    InsuranceType,
)
from tourhub.src.intervals import Interval


def toMajorUnits(amount: int) -> Decimal:
    """
    Convert an integer amount in minor units into a Decimal for display.

    Example:
        >>> toMajorUnits(900050)
        Decimal('9000.50')
    """
    return (Decimal(amount) / Decimal(MINOR_UNITS)).quantize(Decimal("0.01"))


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str


class BookingRequest(BaseModel):
    """
    A customer's request for a transfer or a rental.

    Only the shape is checked here, the business rules (non-empty interval,
    start not in the past, party size, route presence) are enforced by
    `validators.bookingRequest` so that they surface as API errors.

    `vehicle_id`/`driver_id` are manual overrides that skip selection.
    `vehicle_ids`/`driver_ids` narrow the candidate pools.
    """

    kind: BookingKind
    operator_id: int
    customer_id: int
    starting_at: datetime
    ending_at: datetime
    party_size: int = 1
    vehicle_category: Optional[str] = None
    vehicle_ids: Optional[List[int]] = None
    driver_ids: Optional[List[int]] = None
    route_id: Optional[int] = None
    requires_driver: Optional[bool] = None
    addons: List[AddonType] = []
    insurance: InsuranceType = InsuranceType.NONE
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    preferred_driver_id: Optional[int] = None

    @property
    def interval(self) -> Interval:
        return Interval(start=self.starting_at, end=self.ending_at)

    @property
    def needsDriver(self) -> bool:
        """Transfers always, rentals when a driver is requested or named."""
        if self.kind == BookingKind.TRANSFER:
            return True
        if self.requires_driver is not None:
            return self.requires_driver
        return self.driver_id is not None or self.preferred_driver_id is not None


class Quote(BaseModel):
    """
    Price breakdown in minor units. `deposit` is held, never part of `total`.

    `display_total` and `display_deposit` repeat the amounts in major units.
    """

    model_config = ConfigDict(frozen=True)

    kind: BookingKind
    base_price: int
    addon_price: int = 0
    insurance_price: int = 0
    deposit: int = 0
    total: int
    currency: str = CURRENCY
    rental_days: Optional[int] = None

    @computed_field
    @property
    def display_total(self) -> Decimal:
        return toMajorUnits(self.total)

    @computed_field
    @property
    def display_deposit(self) -> Decimal:
        return toMajorUnits(self.deposit)


class BookingResult(BaseModel):
    booking_id: int
    reference: str
    status: BookingStatus
    vehicle_id: int
    driver_id: Optional[int]
    starting_at: datetime
    ending_at: datetime
    quote: Quote
