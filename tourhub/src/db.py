from sqlalchemy import (
    JSON,
    TEXT,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from tourhub.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
    CURRENCY,
)
from tourhub.src.enums import (
    BookingStatus,
    InsuranceType,
    ResourceStatus,
    ScheduleType,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()


# ----------------------------------- Resource DB Models --------------------------------------#
class Vehicle(ORMbase):
    """
    Represents a vehicle that is part of a transfer or rental operator's fleet.

    Each vehicle record stores registration and operational details and is uniquely
    identified by a combination of its registration number and operator ID.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the vehicle.

        operator_id (Integer):
            Identifier of the operator partner that owns the vehicle.
            Must be non-null. Indexed for scoping resource pools to one operator.

        registration_number (String(16)):
            This should be an immutable value.
            Vehicle registration number.
            Must be unique per operator and non-null.

        name (String(64)):
            Display name or label for the vehicle.
            Must be non-null.

        category (String(32)):
            Vehicle class used by rental tariffs (e.g. `economy`, `suv`, `minibus`).
            Must be non-null. Indexed for tariff lookup.

        capacity (Integer):
            Passenger capacity of the vehicle.
            Must be non-null.

        status (Integer):
            Operational status of the vehicle (ACTIVE, MAINTENANCE, INACTIVE, SUSPENDED).
            Only ACTIVE vehicles are ever selected for a booking.
            Defaults to `ResourceStatus.ACTIVE`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the vehicle record was initially created.
    """

    __tablename__ = "vehicle"
    __table_args__ = (UniqueConstraint("registration_number", "operator_id"),)

    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer, nullable=False, index=True)
    registration_number = Column(String(16), nullable=False)
    name = Column(String(64), nullable=False)
    category = Column(String(32), nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=ResourceStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Driver(ORMbase):
    """
    Represents a driver employed by a transfer operator.

    A driver has no passenger capacity; the only scheduling constraint is
    that a driver holds at most one busy schedule entry at any instant.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the driver.

        operator_id (Integer):
            Identifier of the operator partner that employs the driver.
            Must be non-null. Indexed.

        full_name (TEXT):
            Full name of the driver.
            Must be non-null.

        phone_number (TEXT):
            Optional contact number, saved in RFC3966 format.

        category (String(8)):
            Driving licence category (e.g. `B`, `D`).

        vehicle_id (Integer):
            Foreign key referencing `vehicle.id`.
            The vehicle this driver is normally assigned to.
            Preferred when the planner selects a driver for that vehicle.
            Set to null if the vehicle is removed.

        status (Integer):
            Operational status (ACTIVE, INACTIVE, SUSPENDED, ON_LEAVE).
            Defaults to `ResourceStatus.ACTIVE`.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the driver record was initially created.
    """

    __tablename__ = "driver"

    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer, nullable=False, index=True)
    full_name = Column(TEXT, nullable=False)
    phone_number = Column(TEXT)
    category = Column(String(8))
    vehicle_id = Column(Integer, ForeignKey("vehicle.id", ondelete="SET NULL"))
    status = Column(Integer, nullable=False, default=ResourceStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ------------------------------------ Tariff DB Models ---------------------------------------#
class TransferRoute(ORMbase):
    """
    Represents a point to point transfer route offered by an operator.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the route.

        operator_id (Integer):
            Identifier of the operator partner that owns the route.

        name (String(128)):
            Display name of the route, unique per operator.

        from_location (TEXT):
            Pickup location description.

        to_location (TEXT):
            Drop-off location description.

        default_rate (Integer):
            Optional flat price (minor units) used when no route tariff
            covers the pickup date.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the route was created.
    """

    __tablename__ = "transfer_route"
    __table_args__ = (UniqueConstraint("name", "operator_id"),)

    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer, nullable=False, index=True)
    name = Column(String(128), nullable=False)
    from_location = Column(TEXT, nullable=False)
    to_location = Column(TEXT, nullable=False)
    default_rate = Column(Integer)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class RouteTariff(ORMbase):
    """
    Seasonal flat price of a transfer route.

    Several tariffs may cover the same date; the one with the narrowest
    `valid_from`..`valid_to` range wins and ties go to the most recently
    created tariff.

    Columns:
        id (Integer):
            Primary key.

        route_id (Integer):
            Foreign key referencing `transfer_route.id`.
            Cascades on delete.

        rate (Integer):
            Flat transfer price in minor units.

        valid_from (Date):
            First date (inclusive) on which the tariff applies.

        valid_to (Date):
            Last date (inclusive) on which the tariff applies.

        created_on (DateTime):
            Timestamp indicating when the tariff was created.
    """

    __tablename__ = "route_tariff"

    id = Column(Integer, primary_key=True)
    route_id = Column(
        Integer,
        ForeignKey("transfer_route.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rate = Column(Integer, nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class RentalTariff(ORMbase):
    """
    Rental price rule for one vehicle category of an operator.

    Columns:
        id (Integer):
            Primary key.

        operator_id (Integer):
            Identifier of the operator partner that owns the tariff.

        category (String(32)):
            Vehicle category the tariff applies to.

        daily_rate (Integer):
            Price of one rental day in minor units.

        weekly_rate (Integer):
            Optional price of a 7-day block, substituted for seven daily rates.

        monthly_rate (Integer):
            Optional price of a 30-day block, substituted for thirty daily rates.

        deposit (Integer):
            Security deposit held (never charged) for a rental. Defaults to 0.

        valid_from (Date):
            First date (inclusive) on which the tariff applies.

        valid_to (Date):
            Last date (inclusive) on which the tariff applies.

        created_on (DateTime):
            Timestamp indicating when the tariff was created.
    """

    __tablename__ = "rental_tariff"

    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer, nullable=False, index=True)
    category = Column(String(32), nullable=False, index=True)
    daily_rate = Column(Integer, nullable=False)
    weekly_rate = Column(Integer)
    monthly_rate = Column(Integer)
    deposit = Column(Integer, nullable=False, default=0)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Booking DB Models ---------------------------------------#
class Booking(ORMbase):
    """
    Represents a transfer or rental booking placed by a customer against an
    operator's vehicle and, when needed, driver.

    The price columns are computed once by the pricing engine and never
    re-evaluated afterwards.

    Columns:
        id (Integer):
            Primary key.

        reference (String(32)):
            Human readable unique booking reference (`TR-...` or `RN-...`).

        kind (Integer):
            Mapped from the `BookingKind` enum (TRANSFER, RENTAL).

        operator_id (Integer):
            Identifier of the operator that owns the booked resources.

        customer_id (Integer):
            Identifier of the customer who requested the booking.

        vehicle_id (Integer):
            Foreign key referencing `vehicle.id`. Cascades on delete, removal of
            a vehicle with non-terminal bookings is rejected by the application.

        driver_id (Integer):
            Optional foreign key referencing `driver.id`. Cascades on delete.

        route_id (Integer):
            Optional foreign key referencing `transfer_route.id` (transfers only).

        starting_at (DateTime):
            Inclusive start of the booked interval (UTC).

        ending_at (DateTime):
            Exclusive end of the booked interval (UTC).

        party_size (Integer):
            Number of passengers.

        rental_days (Integer):
            Billed rental days (rentals only).

        addons (JSON):
            List of `AddonType` values requested with the booking.

        insurance (Integer):
            Mapped from the `InsuranceType` enum. Defaults to NONE.

        base_price, addon_price, insurance_price, deposit, price (Integer):
            Price breakdown in minor units. `price` is the payable total and
            never includes the deposit.

        currency (String(3)):
            ISO 4217 currency code.

        status (Integer):
            Mapped from the `BookingStatus` enum. Defaults to PENDING.

        cancellation_reason (TEXT):
            Reason given when the booking was cancelled or declined.

        assigned_on, confirmed_on, started_on, completed_on, cancelled_on (DateTime):
            Lifecycle timestamps stamped on the matching status change.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the booking was created.
    """

    __tablename__ = "booking"

    id = Column(Integer, primary_key=True)
    reference = Column(String(32), nullable=False, unique=True)
    kind = Column(Integer, nullable=False)
    operator_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    vehicle_id = Column(
        Integer,
        ForeignKey("vehicle.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    driver_id = Column(
        Integer, ForeignKey("driver.id", ondelete="CASCADE"), index=True
    )
    route_id = Column(Integer, ForeignKey("transfer_route.id", ondelete="SET NULL"))
    starting_at = Column(DateTime(timezone=True), nullable=False)
    ending_at = Column(DateTime(timezone=True), nullable=False)
    party_size = Column(Integer, nullable=False, default=1)
    rental_days = Column(Integer)
    addons = Column(JSON, nullable=False, default=list)
    insurance = Column(Integer, nullable=False, default=InsuranceType.NONE)
    # Price breakdown
    base_price = Column(Integer, nullable=False)
    addon_price = Column(Integer, nullable=False, default=0)
    insurance_price = Column(Integer, nullable=False, default=0)
    deposit = Column(Integer, nullable=False, default=0)
    price = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default=CURRENCY)
    status = Column(Integer, nullable=False, default=BookingStatus.PENDING)
    cancellation_reason = Column(TEXT)
    # Lifecycle
    assigned_on = Column(DateTime(timezone=True))
    confirmed_on = Column(DateTime(timezone=True))
    started_on = Column(DateTime(timezone=True))
    completed_on = Column(DateTime(timezone=True))
    cancelled_on = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ScheduleEntry(ORMbase):
    """
    Commitment of one resource (vehicle or driver) over a time window.

    Entries of a busy type (BOOKED, MAINTENANCE, OFF) on the same resource
    must never overlap; the booking coordinator enforces this with a
    conditional upsert on (resource_type, resource_id, date, starting_at)
    followed by an overlap re-check inside the same transaction.

    Columns:
        id (Integer):
            Primary key.

        resource_type (Integer):
            Mapped from the `ResourceType` enum (VEHICLE, DRIVER).

        resource_id (Integer):
            Identifier of the vehicle or driver.

        date (Date):
            UTC calendar date of `starting_at`.

        starting_at (DateTime):
            Inclusive start of the window (UTC).

        ending_at (DateTime):
            Exclusive end of the window (UTC).

        type (Integer):
            Mapped from the `ScheduleType` enum. AVAILABLE windows never block
            a booking and may be claimed by one.

        booking_id (Integer):
            Foreign key referencing `booking.id` for BOOKED entries.
            Set to null when the booking is removed.

        notes (TEXT):
            Optional operator notes (e.g. maintenance reason).

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the entry was created.
    """

    __tablename__ = "schedule_entry"
    __table_args__ = (
        UniqueConstraint("resource_type", "resource_id", "date", "starting_at"),
    )

    id = Column(Integer, primary_key=True)
    resource_type = Column(Integer, nullable=False)
    resource_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False)
    starting_at = Column(DateTime(timezone=True), nullable=False)
    ending_at = Column(DateTime(timezone=True), nullable=False)
    type = Column(Integer, nullable=False, default=ScheduleType.BOOKED)
    booking_id = Column(Integer, ForeignKey("booking.id", ondelete="SET NULL"))
    notes = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
