"""
Half-open time intervals and the schedule-entry backed interval store.

The store answers one question for the rest of the scheduling core:
is a resource busy during `[start, end)`? Every lookup either returns a
complete answer or raises; a storage failure is never reported as "free".
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from tourhub.src import exceptions
from tourhub.src.db import Driver, ScheduleEntry, Vehicle
from tourhub.src.enums import ResourceType, ScheduleType


BUSY_TYPES = [ScheduleType.BOOKED, ScheduleType.MAINTENANCE, ScheduleType.OFF]
RESOURCE_MODELS = {ResourceType.VEHICLE: Vehicle, ResourceType.DRIVER: Driver}


def toUTC(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values (as returned by drivers without timezone support) are
    interpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Interval(BaseModel):
    """
    Half-open time range `[start, end)` in UTC.

    Two intervals overlap iff `a.start < b.end and b.start < a.end`, so an
    interval ending at T and another starting at T do not conflict.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize(cls, value: datetime) -> datetime:
        return toUTC(value)

    @model_validator(mode="after")
    def checkOrder(self):
        if not self.start < self.end:
            raise ValueError("interval start must be before its end")
        return self

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class DateRange(BaseModel):
    """Inclusive range of UTC calendar dates."""

    model_config = ConfigDict(frozen=True)

    first: date
    last: date

    @model_validator(mode="after")
    def checkOrder(self):
        if self.first > self.last:
            raise ValueError("date range must not end before it starts")
        return self

    def toInterval(self) -> Interval:
        start = datetime.combine(self.first, datetime.min.time(), timezone.utc)
        end = datetime.combine(self.last, datetime.min.time(), timezone.utc)
        return Interval(start=start, end=end + timedelta(days=1))


def overlapCondition(interval: Interval):
    return (ScheduleEntry.starting_at < interval.end) & (
        ScheduleEntry.ending_at > interval.start
    )


class IntervalStore:
    """
    Read access to the persisted schedule of vehicles and drivers.

    Args:
        sessionMaker (sessionmaker): Factory of sessions for standalone lookups.

    Every public method accepts an optional `session` so the booking
    coordinator can repeat a check inside its own write transaction.
    """

    def __init__(self, sessionMaker: sessionmaker):
        self.sessionMaker = sessionMaker

    def isBusy(
        self,
        resourceType: ResourceType,
        resourceId: int,
        interval: Interval,
        session: Optional[Session] = None,
        excludeBookingId: Optional[int] = None,
    ) -> bool:
        """
        Check whether a resource holds a busy schedule entry overlapping the interval.

        Args:
            resourceType (ResourceType): VEHICLE or DRIVER.
            resourceId (int): Identifier of the vehicle or driver.
            interval (Interval): Requested half-open interval.
            session (Session, optional): Session to run the lookup in.
            excludeBookingId (int, optional): Ignore entries claimed by this booking.

        Returns:
            bool: True if any BOOKED, MAINTENANCE or OFF entry overlaps the interval.

        Raises:
            exceptions.ResourceNotFound: If the resource does not exist.
            exceptions.StorageError: If the storage cannot be queried.
        """
        return bool(
            self._busyIds(
                resourceType, [resourceId], interval, session, excludeBookingId, True
            )
        )

    def busyResourceIds(
        self,
        resourceType: ResourceType,
        resourceIds: Iterable[int],
        interval: Interval,
        session: Optional[Session] = None,
    ) -> Set[int]:
        """Return the subset of `resourceIds` that is busy during the interval."""
        return self._busyIds(resourceType, list(resourceIds), interval, session)

    def listBookedIntervals(
        self,
        resourceType: ResourceType,
        resourceId: int,
        dateRange: DateRange,
        session: Optional[Session] = None,
    ) -> List[Interval]:
        """
        List the busy intervals of a resource that touch a range of dates.

        Args:
            resourceType (ResourceType): VEHICLE or DRIVER.
            resourceId (int): Identifier of the vehicle or driver.
            dateRange (DateRange): Inclusive UTC dates to inspect.

        Returns:
            List[Interval]: Busy intervals ordered by start.
        """
        window = dateRange.toInterval()
        ownSession = session is None
        session = session or self.sessionMaker()
        try:
            self._checkResource(session, resourceType, resourceId)
            rows = session.execute(
                select(ScheduleEntry.starting_at, ScheduleEntry.ending_at)
                .where(ScheduleEntry.resource_type == resourceType)
                .where(ScheduleEntry.resource_id == resourceId)
                .where(ScheduleEntry.type.in_(BUSY_TYPES))
                .where(overlapCondition(window))
                .order_by(ScheduleEntry.starting_at.asc())
            ).all()
            return [Interval(start=row[0], end=row[1]) for row in rows]
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()

    def _busyIds(
        self,
        resourceType: ResourceType,
        resourceIds: List[int],
        interval: Interval,
        session: Optional[Session] = None,
        excludeBookingId: Optional[int] = None,
        checkExists: bool = False,
    ) -> Set[int]:
        if not resourceIds:
            return set()
        ownSession = session is None
        session = session or self.sessionMaker()
        try:
            if checkExists:
                for resourceId in resourceIds:
                    self._checkResource(session, resourceType, resourceId)
            query = (
                select(ScheduleEntry.resource_id)
                .where(ScheduleEntry.resource_type == resourceType)
                .where(ScheduleEntry.resource_id.in_(resourceIds))
                .where(ScheduleEntry.type.in_(BUSY_TYPES))
                .where(overlapCondition(interval))
            )
            if excludeBookingId is not None:
                query = query.where(
                    (ScheduleEntry.booking_id.is_(None))
                    | (ScheduleEntry.booking_id != excludeBookingId)
                )
            return set(session.scalars(query).all())
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()

    def _checkResource(
        self, session: Session, resourceType: ResourceType, resourceId: int
    ) -> None:
        model = RESOURCE_MODELS[ResourceType(resourceType)]
        if session.get(model, resourceId) is None:
            raise exceptions.ResourceNotFound(model, resourceId)
