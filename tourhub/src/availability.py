"""
Availability resolution over vehicle and driver pools.

Usage:
    resolver = AvailabilityResolver(IntervalStore(sessionMaker), TripCounter(sessionMaker))
    vehicleIds = resolver.resolve(ResourceType.VEHICLE, operatorId, interval, partySize=5)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from tourhub.src import exceptions
from tourhub.src.constants import LOAD_BALANCE_WINDOW, TRIP_COUNT_CACHE_TTL
from tourhub.src.db import Booking, Vehicle
from tourhub.src.enums import BookingStatus, ResourceStatus, ResourceType
from tourhub.src.intervals import RESOURCE_MODELS, Interval, IntervalStore
from tourhub.src.redis import tripCountKey

logger = logging.getLogger("Availability")


def utcNow() -> datetime:
    return datetime.now(timezone.utc)


class TripCounter:
    """
    Count completed trips of resources over the trailing load-balance window.

    Counts are cached in Redis for TRIP_COUNT_CACHE_TTL seconds when a client
    is given. A Redis failure only costs the cache: it is logged and the
    counts are recomputed from the database.

    Args:
        sessionMaker (sessionmaker): Factory of sessions for the count query.
        cache (Redis, optional): Redis client used as a read-through cache.
        clock (Callable[[], datetime], optional): Source of the current time.
    """

    def __init__(
        self,
        sessionMaker: sessionmaker,
        cache: Optional[Redis] = None,
        clock: Callable[[], datetime] = utcNow,
    ):
        self.sessionMaker = sessionMaker
        self.cache = cache
        self.clock = clock

    def counts(
        self,
        resourceType: ResourceType,
        resourceIds: Iterable[int],
        session: Optional[Session] = None,
    ) -> Dict[int, int]:
        resourceIds = list(resourceIds)
        if not resourceIds:
            return {}
        counts = self._fromCache(resourceType, resourceIds)
        missing = [pk for pk in resourceIds if pk not in counts]
        if missing:
            fresh = self._fromStorage(resourceType, missing, session)
            self._toCache(resourceType, fresh)
            counts.update(fresh)
        return counts

    def invalidate(self, resourceType: ResourceType, resourceId: int) -> None:
        if self.cache is None:
            return
        try:
            self.cache.delete(tripCountKey(resourceType, resourceId))
        except RedisError:
            logger.warning(f"Could not drop cached trip count of {resourceId}")

    def _fromCache(
        self, resourceType: ResourceType, resourceIds: List[int]
    ) -> Dict[int, int]:
        if self.cache is None:
            return {}
        keys = [tripCountKey(resourceType, pk) for pk in resourceIds]
        try:
            values = self.cache.mget(keys)
        except RedisError:
            logger.warning("Trip count cache unavailable, counting from storage")
            return {}
        return {
            pk: int(value)
            for pk, value in zip(resourceIds, values)
            if value is not None
        }

    def _toCache(self, resourceType: ResourceType, counts: Dict[int, int]) -> None:
        if self.cache is None or not counts:
            return
        try:
            pipeline = self.cache.pipeline()
            for pk, count in counts.items():
                pipeline.set(tripCountKey(resourceType, pk), count, ex=TRIP_COUNT_CACHE_TTL)
            pipeline.execute()
        except RedisError:
            logger.warning("Trip count cache unavailable, counts not stored")

    def _fromStorage(
        self,
        resourceType: ResourceType,
        resourceIds: List[int],
        session: Optional[Session] = None,
    ) -> Dict[int, int]:
        column = (
            Booking.vehicle_id
            if resourceType == ResourceType.VEHICLE
            else Booking.driver_id
        )
        now = self.clock()
        windowStart = now - timedelta(seconds=LOAD_BALANCE_WINDOW)
        ownSession = session is None
        session = session or self.sessionMaker()
        try:
            rows = session.execute(
                select(column, func.count(Booking.id))
                .where(column.in_(resourceIds))
                .where(Booking.status == BookingStatus.COMPLETED)
                .where(Booking.ending_at >= windowStart)
                .where(Booking.ending_at < now)
                .group_by(column)
            ).all()
            counts = {pk: 0 for pk in resourceIds}
            counts.update({row[0]: row[1] for row in rows})
            return counts
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()


class AvailabilityResolver:
    """
    Shortlist the resources of one operator that can serve an interval.

    A resource qualifies when it is ACTIVE, belongs to the operator, has
    room for the party (vehicles only) and holds no busy schedule entry
    overlapping the interval. Qualifying ids are ordered by fewest completed
    trips in the trailing window, then by lowest id.

    An empty list is the normal "fully booked" answer; only infrastructure
    failures raise.
    """

    def __init__(self, intervalStore: IntervalStore, tripCounter: TripCounter):
        self.intervalStore = intervalStore
        self.tripCounter = tripCounter

    def resolve(
        self,
        resourceType: ResourceType,
        operatorId: int,
        interval: Interval,
        partySize: Optional[int] = None,
        candidateIds: Optional[Iterable[int]] = None,
        category: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> List[int]:
        """
        Return the ordered ids of feasible resources.

        Args:
            resourceType (ResourceType): VEHICLE or DRIVER pool.
            operatorId (int): Owner of the pool.
            interval (Interval): Requested half-open interval.
            partySize (int, optional): Required seats, ignored for drivers.
            candidateIds (Iterable[int], optional): Restrict the pool to these ids.
            category (str, optional): Vehicle category, ignored for drivers.
            session (Session, optional): Session to run the lookups in.

        Returns:
            List[int]: Feasible resource ids, best candidate first.
        """
        if candidateIds is not None:
            candidateIds = list(candidateIds)
            if not candidateIds:
                return []
        ownSession = session is None
        session = session or self.intervalStore.sessionMaker()
        try:
            model = RESOURCE_MODELS[ResourceType(resourceType)]
            query = (
                select(model.id)
                .where(model.operator_id == operatorId)
                .where(model.status == ResourceStatus.ACTIVE)
            )
            if candidateIds is not None:
                query = query.where(model.id.in_(candidateIds))
            if model is Vehicle:
                if partySize is not None:
                    query = query.where(Vehicle.capacity >= partySize)
                if category is not None:
                    query = query.where(Vehicle.category == category)
            poolIds = list(session.scalars(query).all())
            busyIds = self.intervalStore.busyResourceIds(
                resourceType, poolIds, interval, session
            )
            freeIds = [pk for pk in poolIds if pk not in busyIds]
            tripCounts = self.tripCounter.counts(resourceType, freeIds, session)
            return sorted(freeIds, key=lambda pk: (tripCounts.get(pk, 0), pk))
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()
