"""
Atomic booking of planned resources.

`BookingTransactionCoordinator` runs validation -> planning -> pricing ->
persistence for one request. Correctness under concurrency comes from the
write transaction only: the chosen resource rows are locked, availability is
re-checked, the schedule is claimed through a conditional upsert and then
checked once more for overlaps before commit. No in-process lock is held, so
any number of service instances may book concurrently.

Usage:
    coordinator = BookingTransactionCoordinator(sessionMaker, cache=redisClient)
    result = coordinator.planAndBook(request)
"""

import logging
import secrets
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from redis import Redis
from sqlalchemy import or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from tourhub.src import exceptions, validators
from tourhub.src.availability import AvailabilityResolver, TripCounter, utcNow
from tourhub.src.constants import (
    CONFLICT_RETRY_LIMIT,
    RENTAL_REFERENCE_PREFIX,
    STORAGE_RETRY_LIMIT,
    TRANSFER_REFERENCE_PREFIX,
    WRITE_ISOLATION_LEVEL,
)
from tourhub.src.db import Booking, ScheduleEntry
from tourhub.src.enums import BookingKind, BookingStatus, ResourceType, ScheduleType
from tourhub.src.intervals import (
    BUSY_TYPES,
    RESOURCE_MODELS,
    Interval,
    IntervalStore,
    overlapCondition,
)
from tourhub.src.planner import AssignmentPlanner, Plan
from tourhub.src.pricing import PricingEngine
from tourhub.src.schemas import BookingRequest, BookingResult, Quote

logger = logging.getLogger("Coordinator")

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: [
        BookingStatus.ASSIGNED,
        BookingStatus.CANCELLED,
        BookingStatus.DECLINED,
    ],
    BookingStatus.ASSIGNED: [
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.DECLINED,
    ],
    BookingStatus.CONFIRMED: [
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.DECLINED,
    ],
    BookingStatus.IN_PROGRESS: [
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.DECLINED,
    ],
    BookingStatus.DECLINED: [BookingStatus.PENDING, BookingStatus.CANCELLED],
    BookingStatus.COMPLETED: [],
    BookingStatus.CANCELLED: [],
}

# Lifecycle timestamp stamped when a booking enters the status
STATUS_TIMESTAMPS = {
    BookingStatus.ASSIGNED: Booking.assigned_on.key,
    BookingStatus.CONFIRMED: Booking.confirmed_on.key,
    BookingStatus.IN_PROGRESS: Booking.started_on.key,
    BookingStatus.COMPLETED: Booking.completed_on.key,
    BookingStatus.CANCELLED: Booking.cancelled_on.key,
    BookingStatus.DECLINED: Booking.cancelled_on.key,
}
RELEASING_STATUSES = [BookingStatus.CANCELLED, BookingStatus.DECLINED]
UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def bookingReference(kind: BookingKind, startingAt: datetime) -> str:
    """
    Generate a human readable booking reference.

    Example:
        >>> bookingReference(BookingKind.TRANSFER, datetime(2026, 7, 1, 9))
        'TR-260701-9F3A0C1B'
    """
    prefix = (
        TRANSFER_REFERENCE_PREFIX
        if kind == BookingKind.TRANSFER
        else RENTAL_REFERENCE_PREFIX
    )
    return f"{prefix}-{startingAt:%y%m%d}-{secrets.token_hex(4).upper()}"


def bookingResources(booking: Booking) -> List[Tuple[ResourceType, int]]:
    resources = [(ResourceType.VEHICLE, booking.vehicle_id)]
    if booking.driver_id is not None:
        resources.append((ResourceType.DRIVER, booking.driver_id))
    return resources


class BookingTransactionCoordinator:
    """
    Entry point of the scheduling core.

    Args:
        sessionMaker (sessionmaker): Factory of sessions bound to the booking storage.
        cache (Redis, optional): Redis client caching recent trip counts.
        intervalStore (IntervalStore, optional): Schedule lookups, built from
            `sessionMaker` when omitted.
        pricing (PricingEngine, optional): Price rules, built from `sessionMaker`
            when omitted.
        clock (Callable[[], datetime], optional): Source of the current time.
        isolationLevel (str, optional): Isolation level of the write
            transaction, None keeps the engine default.
    """

    def __init__(
        self,
        sessionMaker: sessionmaker,
        cache: Optional[Redis] = None,
        intervalStore: Optional[IntervalStore] = None,
        pricing: Optional[PricingEngine] = None,
        clock: Callable[[], datetime] = utcNow,
        isolationLevel: Optional[str] = WRITE_ISOLATION_LEVEL,
    ):
        self.sessionMaker = sessionMaker
        self.clock = clock
        self.isolationLevel = isolationLevel
        self.intervalStore = intervalStore or IntervalStore(sessionMaker)
        self.tripCounter = TripCounter(sessionMaker, cache, clock)
        self.resolver = AvailabilityResolver(self.intervalStore, self.tripCounter)
        self.planner = AssignmentPlanner(self.resolver)
        self.pricing = pricing or PricingEngine(sessionMaker)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def checkAvailability(
        self, resourceType: ResourceType, resourceId: int, interval: Interval
    ) -> bool:
        """True if the resource holds no busy entry overlapping the interval."""
        return not self.intervalStore.isBusy(resourceType, resourceId, interval)

    def quote(self, request: BookingRequest) -> Quote:
        """Price a request without planning or booking anything."""
        validators.bookingRequest(request, self.clock())
        return self.pricing.quote(request, request.vehicle_id)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def planAndBook(self, request: BookingRequest) -> BookingResult:
        """
        Validate, plan, price and persist a booking as one unit.

        A lost race (`ResourceConflict` during the commit) is answered with
        exactly CONFLICT_RETRY_LIMIT fresh plans. If a fresh plan finds
        nothing, or conflicts again, the conflict is surfaced.

        Returns:
            BookingResult: The committed booking and its quote.

        Raises:
            exceptions.ValidationError: If the request is malformed.
            exceptions.NoResourceAvailable: If nothing can serve the request.
            exceptions.ResourceConflict: If the race could not be won.
            exceptions.PriceUnavailable: If no tariff applies.
            exceptions.StorageError: If the storage keeps failing.
        """
        validators.bookingRequest(request, self.clock())
        conflict = None
        replans = 0
        while True:
            try:
                plan = self.planner.plan(request)
            except exceptions.NoResourceAvailable:
                if conflict is not None:
                    raise conflict
                raise
            quote = self.pricing.quote(request, plan.vehicle_id)
            try:
                return self.commitWithRetry(request, plan, quote)
            except exceptions.ResourceConflict as e:
                if replans >= CONFLICT_RETRY_LIMIT:
                    raise
                replans += 1
                conflict = e
                logger.info(f"Lost a booking race ({e.detail}), planning again")

    def commitWithRetry(
        self, request: BookingRequest, plan: Plan, quote: Quote
    ) -> BookingResult:
        attempts = 0
        while True:
            try:
                return self.commit(request, plan, quote)
            except exceptions.StorageError:
                if attempts >= STORAGE_RETRY_LIMIT:
                    raise
                attempts += 1
                logger.warning("Booking commit failed on storage, retrying")

    def commit(self, request: BookingRequest, plan: Plan, quote: Quote) -> BookingResult:
        session = self.sessionMaker()
        try:
            self.beginWrite(session)
            interval = plan.interval
            now = self.clock()
            resources = [(ResourceType.VEHICLE, plan.vehicle_id)]
            if plan.driver_id is not None:
                resources.append((ResourceType.DRIVER, plan.driver_id))

            self.lockResources(session, resources)
            for resourceType, resourceId in resources:
                if self.intervalStore.isBusy(resourceType, resourceId, interval, session):
                    raise exceptions.ResourceConflict(
                        RESOURCE_MODELS[resourceType], resourceId
                    )

            status = (
                BookingStatus.ASSIGNED
                if plan.driver_id is not None
                else BookingStatus.PENDING
            )
            booking = Booking(
                reference=bookingReference(request.kind, interval.start),
                kind=request.kind,
                operator_id=request.operator_id,
                customer_id=request.customer_id,
                vehicle_id=plan.vehicle_id,
                driver_id=plan.driver_id,
                route_id=request.route_id,
                starting_at=interval.start,
                ending_at=interval.end,
                party_size=request.party_size,
                rental_days=quote.rental_days,
                addons=[int(addon) for addon in request.addons],
                insurance=request.insurance,
                base_price=quote.base_price,
                addon_price=quote.addon_price,
                insurance_price=quote.insurance_price,
                deposit=quote.deposit,
                price=quote.total,
                currency=quote.currency,
                status=status,
                assigned_on=now if status == BookingStatus.ASSIGNED else None,
            )
            session.add(booking)
            session.flush()

            self.claimSchedule(session, booking, resources, interval)
            session.commit()
            logger.info(f"Booked {booking.reference} for customer {booking.customer_id}")
            return BookingResult(
                booking_id=booking.id,
                reference=booking.reference,
                status=booking.status,
                vehicle_id=booking.vehicle_id,
                driver_id=booking.driver_id,
                starting_at=interval.start,
                ending_at=interval.end,
                quote=quote,
            )
        except Exception as e:
            session.rollback()
            exceptions.handle(e)
        finally:
            session.close()

    def beginWrite(self, session: Session) -> None:
        if self.isolationLevel:
            session.connection(
                execution_options={"isolation_level": self.isolationLevel}
            )

    def lockResources(
        self, session: Session, resources: List[Tuple[ResourceType, int]]
    ) -> None:
        for resourceType, resourceId in resources:
            model = RESOURCE_MODELS[resourceType]
            locked = session.scalars(
                select(model.id).where(model.id == resourceId).with_for_update()
            ).first()
            if locked is None:
                raise exceptions.ResourceNotFound(model, resourceId)

    def claimSchedule(
        self,
        session: Session,
        booking: Booking,
        resources: List[Tuple[ResourceType, int]],
        interval: Interval,
    ) -> None:
        """
        Upsert one BOOKED schedule entry per resource for the booking.

        An existing entry with the same (resource, date, start) is only taken
        over when it is an AVAILABLE block or already belongs to this booking.
        A refused takeover, or any other busy entry overlapping the interval
        after the write, raises `ResourceConflict`.
        """
        dialect = session.get_bind().dialect.name
        if dialect not in UPSERT_DIALECTS:
            raise exceptions.StorageError(detail=f"Unsupported dialect {dialect}")
        insert = UPSERT_DIALECTS[dialect]
        table = ScheduleEntry.__table__
        for resourceType, resourceId in resources:
            statement = insert(table).values(
                resource_type=resourceType,
                resource_id=resourceId,
                date=interval.start.date(),
                starting_at=interval.start,
                ending_at=interval.end,
                type=ScheduleType.BOOKED,
                booking_id=booking.id,
            )
            statement = statement.on_conflict_do_update(
                index_elements=[
                    table.c.resource_type,
                    table.c.resource_id,
                    table.c.date,
                    table.c.starting_at,
                ],
                set_={
                    "type": ScheduleType.BOOKED,
                    "ending_at": statement.excluded.ending_at,
                    "booking_id": statement.excluded.booking_id,
                    "updated_on": self.clock(),
                },
                where=or_(
                    table.c.type == ScheduleType.AVAILABLE,
                    table.c.booking_id == booking.id,
                ),
            )
            result = session.execute(statement)
            if result.rowcount == 0:
                raise exceptions.ResourceConflict(
                    RESOURCE_MODELS[resourceType], resourceId
                )

            overlapping = session.scalars(
                select(ScheduleEntry.id)
                .where(ScheduleEntry.resource_type == resourceType)
                .where(ScheduleEntry.resource_id == resourceId)
                .where(ScheduleEntry.type.in_(BUSY_TYPES))
                .where(overlapCondition(interval))
                .where(
                    or_(
                        ScheduleEntry.booking_id.is_(None),
                        ScheduleEntry.booking_id != booking.id,
                    )
                )
            ).first()
            if overlapping is not None:
                raise exceptions.ResourceConflict(
                    RESOURCE_MODELS[resourceType], resourceId
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def cancel(self, bookingId: int, reason: Optional[str] = None) -> Booking:
        """
        Cancel a booking and hand its schedule entries back as AVAILABLE.

        Raises:
            exceptions.InvalidIdentifier: If the booking does not exist.
            exceptions.InvalidStateTransition: If the booking is already
                completed or cancelled.
        """
        return self.transition(bookingId, BookingStatus.CANCELLED, reason)

    def transition(
        self, bookingId: int, status: BookingStatus, reason: Optional[str] = None
    ) -> Booking:
        """
        Move a booking to a new status.

        The matching lifecycle timestamp is stamped. Cancelling or declining
        releases the schedule; re-opening a declined booking claims it again
        and fails with `ResourceConflict` if the slot has been taken meanwhile.

        Raises:
            exceptions.InvalidIdentifier: If the booking does not exist.
            exceptions.InvalidStateTransition: If the move is not allowed.
            exceptions.ResourceConflict: If a re-opened booking lost its slot.
        """
        session = self.sessionMaker()
        try:
            self.beginWrite(session)
            booking = session.get(Booking, bookingId, with_for_update=True)
            if booking is None:
                raise exceptions.InvalidIdentifier()
            previous = BookingStatus(booking.status)
            validators.stateTransition(
                BOOKING_TRANSITIONS, previous, status, Booking.status
            )

            now = self.clock()
            booking.status = status
            if status in STATUS_TIMESTAMPS:
                setattr(booking, STATUS_TIMESTAMPS[status], now)
            if status in RELEASING_STATUSES:
                booking.cancellation_reason = reason
                self.releaseSchedule(session, booking)
            elif previous == BookingStatus.DECLINED:
                booking.cancellation_reason = None
                booking.cancelled_on = None
                resources = bookingResources(booking)
                self.lockResources(session, resources)
                interval = Interval(start=booking.starting_at, end=booking.ending_at)
                self.claimSchedule(session, booking, resources, interval)
            session.commit()
            logger.info(
                f"Booking {booking.reference} moved from {previous.name} to {status.name}"
            )
        except Exception as e:
            session.rollback()
            exceptions.handle(e)
        finally:
            session.close()

        if status == BookingStatus.COMPLETED:
            for resourceType, resourceId in bookingResources(booking):
                self.tripCounter.invalidate(resourceType, resourceId)
        return booking

    def releaseSchedule(self, session: Session, booking: Booking) -> None:
        session.execute(
            update(ScheduleEntry)
            .where(ScheduleEntry.booking_id == booking.id)
            .values(type=ScheduleType.AVAILABLE, booking_id=None)
        )
