from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from tourhub.src import exceptions, getters, schemas
from tourhub.src.coordinator import BookingTransactionCoordinator
from tourhub.src.db import Booking, Vehicle
from tourhub.src.loggers import logEvent
from tourhub.src.enums import (
    AddonType,
    BookingKind,
    BookingStatus,
    InsuranceType,
    ResourceType,
)
from tourhub.src.constants import MAX_PARTY_SIZE
from tourhub.src.functions import enumStr, fuseExceptionResponses
from tourhub.src.intervals import Interval
from tourhub.src.urls import URL_BOOKING, URL_BOOKING_AVAILABILITY, URL_BOOKING_QUOTE

route_customer = APIRouter()
route_operator = APIRouter()


## Output Schema
class BookingSchema(BaseModel):
    id: int
    reference: str
    kind: int
    operator_id: int
    customer_id: int
    vehicle_id: int
    driver_id: Optional[int]
    route_id: Optional[int]
    starting_at: datetime
    ending_at: datetime
    party_size: int
    rental_days: Optional[int]
    addons: List[int]
    insurance: int
    base_price: int
    addon_price: int
    insurance_price: int
    deposit: int
    price: int
    currency: str
    status: int
    cancellation_reason: Optional[str]
    assigned_on: Optional[datetime]
    confirmed_on: Optional[datetime]
    started_on: Optional[datetime]
    completed_on: Optional[datetime]
    cancelled_on: Optional[datetime]
    updated_on: Optional[datetime] = None
    created_on: Optional[datetime] = None


class AvailabilitySchema(BaseModel):
    resource_type: int
    resource_id: int
    starting_at: datetime
    ending_at: datetime
    available: bool


## Input Forms
class CreateForm(BaseModel):
    kind: BookingKind = Field(Form(description=enumStr(BookingKind)))
    operator_id: int = Field(Form())
    customer_id: int = Field(Form())
    starting_at: datetime = Field(Form())
    ending_at: datetime = Field(Form())
    party_size: int = Field(Form(ge=1, le=MAX_PARTY_SIZE, default=1))
    vehicle_category: str | None = Field(Form(max_length=32, default=None))
    vehicle_ids: List[int] | None = Field(Form(default=None))
    driver_ids: List[int] | None = Field(Form(default=None))
    route_id: int | None = Field(Form(default=None))
    requires_driver: bool | None = Field(Form(default=None))
    addons: List[AddonType] = Field(Form(description=enumStr(AddonType), default=[]))
    insurance: InsuranceType = Field(
        Form(description=enumStr(InsuranceType), default=InsuranceType.NONE)
    )
    vehicle_id: int | None = Field(Form(default=None))
    driver_id: int | None = Field(Form(default=None))
    preferred_driver_id: int | None = Field(Form(default=None))


class CancelForm(BaseModel):
    id: int = Field(Form())
    cancellation_reason: str | None = Field(Form(max_length=512, default=None))


class UpdateForm(CancelForm):
    status: BookingStatus = Field(Form(description=enumStr(BookingStatus)))


## Query Parameters
class AvailabilityParams(BaseModel):
    resource_type: ResourceType = Field(Query(description=enumStr(ResourceType)))
    resource_id: int = Field(Query())
    starting_at: datetime = Field(Query())
    ending_at: datetime = Field(Query())


## Function
def toBookingRequest(fParam: CreateForm) -> schemas.BookingRequest:
    return schemas.BookingRequest(**fParam.model_dump())


## API endpoints [Customer]
@route_customer.post(
    URL_BOOKING,
    tags=["Booking"],
    response_model=schemas.BookingResult,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.MissingParameter(Booking.route_id),
            exceptions.ResourceConflict(Vehicle, 1),
            exceptions.NoVehicleAvailable(),
            exceptions.NoDriverAvailable(),
            exceptions.PriceUnavailable(),
            exceptions.StorageError(),
        ]
    ),
    description="""
    Books a transfer or a rental.
    A vehicle and, when needed, a driver are selected automatically unless given explicitly.
    Explicit vehicle and driver are re-validated against the current schedule.
    Transfers are priced from the route tariff, rentals from the vehicle category tariff.
    Logs the booking creation activity with the request metadata.
    """,
)
async def create_booking(
    fParam: CreateForm = Depends(),
    coordinator: BookingTransactionCoordinator = Depends(getters.coordinator),
    request_info=Depends(getters.requestInfo),
):
    try:
        result = coordinator.planAndBook(toBookingRequest(fParam))

        resultData = jsonable_encoder(result)
        logEvent(request_info, resultData)
        return resultData
    except Exception as e:
        exceptions.handle(e)


@route_customer.post(
    URL_BOOKING_QUOTE,
    tags=["Booking"],
    response_model=schemas.Quote,
    responses=fuseExceptionResponses([exceptions.PriceUnavailable()]),
    description="""
    Prices a transfer or a rental without booking it.
    All amounts are in minor units, the deposit is never part of the total.
    """,
)
async def quote_booking(
    fParam: CreateForm = Depends(),
    coordinator: BookingTransactionCoordinator = Depends(getters.coordinator),
):
    try:
        return coordinator.quote(toBookingRequest(fParam))
    except Exception as e:
        exceptions.handle(e)


@route_customer.get(
    URL_BOOKING_AVAILABILITY,
    tags=["Booking"],
    response_model=AvailabilitySchema,
    description="""
    Checks whether a vehicle or driver is free over a half-open interval.
    """,
)
async def check_availability(
    qParam: AvailabilityParams = Depends(),
    coordinator: BookingTransactionCoordinator = Depends(getters.coordinator),
):
    try:
        interval = Interval(start=qParam.starting_at, end=qParam.ending_at)
        available = coordinator.checkAvailability(
            qParam.resource_type, qParam.resource_id, interval
        )
        return AvailabilitySchema(
            resource_type=qParam.resource_type,
            resource_id=qParam.resource_id,
            starting_at=interval.start,
            ending_at=interval.end,
            available=available,
        )
    except Exception as e:
        exceptions.handle(e)


@route_customer.delete(
    URL_BOOKING,
    tags=["Booking"],
    response_model=BookingSchema,
    responses=fuseExceptionResponses([exceptions.InvalidIdentifier()]),
    description="""
    Cancels a booking and releases its vehicle and driver schedule.
    Completed or already cancelled bookings cannot be cancelled.
    Logs the cancellation activity with the request metadata.
    """,
)
async def cancel_booking(
    fParam: CancelForm = Depends(),
    coordinator: BookingTransactionCoordinator = Depends(getters.coordinator),
    request_info=Depends(getters.requestInfo),
):
    try:
        booking = coordinator.cancel(fParam.id, fParam.cancellation_reason)

        bookingData = jsonable_encoder(booking)
        logEvent(request_info, bookingData)
        return bookingData
    except Exception as e:
        exceptions.handle(e)


## API endpoints [Operator]
@route_operator.patch(
    URL_BOOKING,
    tags=["Booking"],
    response_model=BookingSchema,
    responses=fuseExceptionResponses([exceptions.InvalidIdentifier()]),
    description="""
    Moves a booking through its lifecycle.
    The matching lifecycle timestamp is stamped on every status change.
    Declining or cancelling releases the schedule, re-opening a declined booking claims it again.
    Logs the status change with the request metadata.
    """,
)
async def update_booking(
    fParam: UpdateForm = Depends(),
    coordinator: BookingTransactionCoordinator = Depends(getters.coordinator),
    request_info=Depends(getters.requestInfo),
):
    try:
        booking = coordinator.transition(
            fParam.id, fParam.status, fParam.cancellation_reason
        )

        bookingData = jsonable_encoder(booking)
        logEvent(request_info, bookingData)
        return bookingData
    except Exception as e:
        exceptions.handle(e)
