from datetime import timedelta
from unittest.mock import MagicMock

from redis.exceptions import ConnectionError

from tourhub.src.availability import AvailabilityResolver, TripCounter
from tourhub.src.constants import TRIP_COUNT_CACHE_TTL
from tourhub.src.enums import ResourceStatus, ResourceType, ScheduleType
from tourhub.src.intervals import Interval, IntervalStore

from conftest import NOW, at


def makeResolver(sessionMaker, cache=None):
    counter = TripCounter(sessionMaker, cache, clock=lambda: NOW)
    return AvailabilityResolver(IntervalStore(sessionMaker), counter)


INTERVAL = Interval(start=at(days=1), end=at(days=1, hours=2))


def test_filters_status_capacity_operator_and_schedule(sessionMaker, factory):
    resolver = makeResolver(sessionMaker)
    small = factory.vehicle(capacity=4)
    large = factory.vehicle(capacity=6)
    factory.vehicle(capacity=8, status=ResourceStatus.MAINTENANCE)
    factory.vehicle(capacity=8, operator_id=2)
    busy = factory.vehicle(capacity=7)
    factory.entry(ResourceType.VEHICLE, busy.id, at(days=1, hours=1), at(days=1, hours=3))

    assert resolver.resolve(ResourceType.VEHICLE, 1, INTERVAL, partySize=5) == [large.id]
    assert resolver.resolve(ResourceType.VEHICLE, 1, INTERVAL) == [small.id, large.id]


def test_filters_category_and_candidates(sessionMaker, factory):
    resolver = makeResolver(sessionMaker)
    sedan = factory.vehicle(category="sedan")
    suv = factory.vehicle(category="suv")
    other = factory.vehicle(category="suv")

    assert resolver.resolve(ResourceType.VEHICLE, 1, INTERVAL, category="suv") == [
        suv.id,
        other.id,
    ]
    assert resolver.resolve(
        ResourceType.VEHICLE, 1, INTERVAL, candidateIds=[sedan.id, other.id]
    ) == [sedan.id, other.id]
    assert resolver.resolve(ResourceType.VEHICLE, 1, INTERVAL, candidateIds=[]) == []


def test_fully_booked_is_an_empty_list(sessionMaker, factory):
    resolver = makeResolver(sessionMaker)
    driver = factory.driver()
    factory.entry(ResourceType.DRIVER, driver.id, at(days=1), at(days=1, hours=8), ScheduleType.OFF)

    assert resolver.resolve(ResourceType.DRIVER, 1, INTERVAL) == []


def test_orders_by_recent_trips_then_id(sessionMaker, factory):
    resolver = makeResolver(sessionMaker)
    busiest = factory.vehicle()
    quiet = factory.vehicle()
    idle = factory.vehicle()
    factory.completedTrip(busiest.id, ending_at=at(days=-1))
    factory.completedTrip(busiest.id, ending_at=at(days=-2))
    factory.completedTrip(quiet.id, ending_at=at(days=-3))
    # outside the trailing window
    factory.completedTrip(idle.id, ending_at=at(days=-31))
    factory.completedTrip(idle.id, ending_at=at(days=-40))

    assert resolver.resolve(ResourceType.VEHICLE, 1, INTERVAL) == [
        idle.id,
        quiet.id,
        busiest.id,
    ]


def test_trip_counts_are_read_through_the_cache(sessionMaker, factory):
    vehicle = factory.vehicle()
    other = factory.vehicle()
    factory.completedTrip(other.id)
    cache = MagicMock()
    cache.mget.return_value = ["5", None]
    pipeline = cache.pipeline.return_value

    counts = TripCounter(sessionMaker, cache, clock=lambda: NOW).counts(
        ResourceType.VEHICLE, [vehicle.id, other.id]
    )

    assert counts == {vehicle.id: 5, other.id: 1}
    cache.mget.assert_called_once_with(
        [f"trips:vehicle:{vehicle.id}", f"trips:vehicle:{other.id}"]
    )
    pipeline.set.assert_called_once_with(
        f"trips:vehicle:{other.id}", 1, ex=TRIP_COUNT_CACHE_TTL
    )
    pipeline.execute.assert_called_once()


def test_cache_outage_falls_back_to_storage(sessionMaker, factory):
    vehicle = factory.vehicle()
    factory.completedTrip(vehicle.id)
    cache = MagicMock()
    cache.mget.side_effect = ConnectionError("redis is down")
    cache.pipeline.return_value.execute.side_effect = ConnectionError("redis is down")

    counts = TripCounter(sessionMaker, cache, clock=lambda: NOW).counts(
        ResourceType.VEHICLE, [vehicle.id]
    )

    assert counts == {vehicle.id: 1}


def test_only_trips_inside_the_window_count(sessionMaker, factory):
    vehicle = factory.vehicle()
    factory.completedTrip(vehicle.id, ending_at=NOW - timedelta(days=30))
    factory.completedTrip(vehicle.id, ending_at=NOW - timedelta(days=30, seconds=1))
    factory.completedTrip(vehicle.id, ending_at=NOW + timedelta(hours=1))

    counts = TripCounter(sessionMaker, clock=lambda: NOW).counts(
        ResourceType.VEHICLE, [vehicle.id]
    )

    assert counts == {vehicle.id: 1}
