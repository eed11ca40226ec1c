from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tourhub.src.coordinator import BookingTransactionCoordinator
from tourhub.src.db import (
    Booking,
    Driver,
    ORMbase,
    RentalTariff,
    RouteTariff,
    ScheduleEntry,
    TransferRoute,
    Vehicle,
)
from tourhub.src.enums import (
    BookingKind,
    BookingStatus,
    ResourceStatus,
    ResourceType,
    ScheduleType,
)
from tourhub.src.pricing import PricingEngine
from tourhub.src.schemas import BookingRequest

NOW = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)
OPERATOR_ID = 1


def at(days: int = 0, hours: int = 0) -> datetime:
    """A point in time relative to the frozen test clock."""
    return NOW + timedelta(days=days, hours=hours)


class Factory:
    """Inserts committed rows for a test scenario."""

    def __init__(self, sessionMaker):
        self.sessionMaker = sessionMaker
        self.counter = 0

    def save(self, obj):
        session = self.sessionMaker()
        try:
            session.add(obj)
            session.commit()
            return obj
        finally:
            session.close()

    def vehicle(self, capacity=4, category="sedan", status=ResourceStatus.ACTIVE, operator_id=OPERATOR_ID):
        self.counter += 1
        return self.save(
            Vehicle(
                operator_id=operator_id,
                registration_number=f"A{self.counter:03d}AA41",
                name=f"Vehicle {self.counter}",
                category=category,
                capacity=capacity,
                status=status,
            )
        )

    def driver(self, vehicle_id=None, status=ResourceStatus.ACTIVE, operator_id=OPERATOR_ID):
        self.counter += 1
        return self.save(
            Driver(
                operator_id=operator_id,
                full_name=f"Driver {self.counter}",
                vehicle_id=vehicle_id,
                status=status,
            )
        )

    def route(self, default_rate=None, operator_id=OPERATOR_ID):
        self.counter += 1
        return self.save(
            TransferRoute(
                operator_id=operator_id,
                name=f"Route {self.counter}",
                from_location="Airport",
                to_location="Centre",
                default_rate=default_rate,
            )
        )

    def routeTariff(self, route_id, rate, valid_from, valid_to, created_on=NOW):
        return self.save(
            RouteTariff(
                route_id=route_id,
                rate=rate,
                valid_from=valid_from,
                valid_to=valid_to,
                created_on=created_on,
            )
        )

    def rentalTariff(
        self,
        daily_rate,
        weekly_rate=None,
        monthly_rate=None,
        deposit=0,
        category="sedan",
        valid_from=date(2026, 1, 1),
        valid_to=date(2026, 12, 31),
        created_on=NOW,
        operator_id=OPERATOR_ID,
    ):
        return self.save(
            RentalTariff(
                operator_id=operator_id,
                category=category,
                daily_rate=daily_rate,
                weekly_rate=weekly_rate,
                monthly_rate=monthly_rate,
                deposit=deposit,
                valid_from=valid_from,
                valid_to=valid_to,
                created_on=created_on,
            )
        )

    def entry(self, resource_type, resource_id, starting_at, ending_at, type=ScheduleType.BOOKED, booking_id=None):
        return self.save(
            ScheduleEntry(
                resource_type=resource_type,
                resource_id=resource_id,
                date=starting_at.date(),
                starting_at=starting_at,
                ending_at=ending_at,
                type=type,
                booking_id=booking_id,
            )
        )

    def completedTrip(self, vehicle_id, driver_id=None, ending_at=None):
        self.counter += 1
        ending_at = ending_at or at(days=-1)
        return self.save(
            Booking(
                reference=f"TR-TEST-{self.counter}",
                kind=BookingKind.TRANSFER,
                operator_id=OPERATOR_ID,
                customer_id=99,
                vehicle_id=vehicle_id,
                driver_id=driver_id,
                starting_at=ending_at - timedelta(hours=1),
                ending_at=ending_at,
                party_size=1,
                base_price=1000,
                price=1000,
                status=BookingStatus.COMPLETED,
            )
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    ORMbase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sessionMaker(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def factory(sessionMaker):
    return Factory(sessionMaker)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def coordinator(sessionMaker, clock):
    return BookingTransactionCoordinator(
        sessionMaker,
        pricing=PricingEngine(sessionMaker, defaultTransferRate=None),
        clock=clock,
        isolationLevel=None,
    )


@pytest.fixture
def transferRequest():
    def build(route_id, **overrides):
        fields = dict(
            kind=BookingKind.TRANSFER,
            operator_id=OPERATOR_ID,
            customer_id=7,
            route_id=route_id,
            starting_at=at(days=1),
            ending_at=at(days=1, hours=2),
            party_size=2,
        )
        fields.update(overrides)
        return BookingRequest(**fields)

    return build


@pytest.fixture
def rentalRequest():
    def build(**overrides):
        fields = dict(
            kind=BookingKind.RENTAL,
            operator_id=OPERATOR_ID,
            customer_id=8,
            vehicle_category="sedan",
            starting_at=at(days=1),
            ending_at=at(days=4),
            party_size=2,
        )
        fields.update(overrides)
        return BookingRequest(**fields)

    return build


def scheduleOf(sessionMaker, resourceType: ResourceType, resourceId: int):
    session = sessionMaker()
    try:
        return (
            session.query(ScheduleEntry)
            .filter(ScheduleEntry.resource_type == resourceType)
            .filter(ScheduleEntry.resource_id == resourceId)
            .order_by(ScheduleEntry.starting_at)
            .all()
        )
    finally:
        session.close()


def bookingCount(sessionMaker) -> int:
    session = sessionMaker()
    try:
        return session.query(Booking).count()
    finally:
        session.close()
