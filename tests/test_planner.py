import pytest

from tourhub.src import exceptions
from tourhub.src.availability import AvailabilityResolver, TripCounter
from tourhub.src.enums import PlanStage, ResourceStatus, ResourceType
from tourhub.src.intervals import IntervalStore
from tourhub.src.planner import AssignmentPlanner

from conftest import NOW, at


@pytest.fixture
def planner(sessionMaker):
    counter = TripCounter(sessionMaker, clock=lambda: NOW)
    return AssignmentPlanner(AvailabilityResolver(IntervalStore(sessionMaker), counter))


def test_plans_smallest_id_vehicle_that_fits(planner, factory, transferRequest):
    factory.vehicle(capacity=4)
    large = factory.vehicle(capacity=6)
    driver = factory.driver()

    plan = planner.plan(transferRequest(route_id=1, party_size=5))

    assert plan.vehicle_id == large.id
    assert plan.driver_id == driver.id
    assert plan.stage == PlanStage.PLANNED
    assert plan.interval.start == at(days=1)


def test_no_vehicle_available(planner, factory, transferRequest):
    factory.vehicle(capacity=4)
    factory.driver()

    with pytest.raises(exceptions.NoVehicleAvailable):
        planner.plan(transferRequest(route_id=1, party_size=5))


def test_no_driver_available(planner, factory, transferRequest):
    factory.vehicle()
    driver = factory.driver()
    factory.entry(ResourceType.DRIVER, driver.id, at(days=1), at(days=1, hours=1))

    with pytest.raises(exceptions.NoDriverAvailable):
        planner.plan(transferRequest(route_id=1))


def test_self_drive_rental_needs_no_driver(planner, factory, rentalRequest):
    vehicle = factory.vehicle()

    plan = planner.plan(rentalRequest())

    assert plan.vehicle_id == vehicle.id
    assert plan.driver_id is None


def test_chauffeured_rental_gets_a_driver(planner, factory, rentalRequest):
    factory.vehicle()
    driver = factory.driver()

    plan = planner.plan(rentalRequest(requires_driver=True))

    assert plan.driver_id == driver.id


def test_vehicle_assigned_driver_is_preferred(planner, factory, transferRequest):
    vehicle = factory.vehicle()
    factory.driver()
    assigned = factory.driver(vehicle_id=vehicle.id)

    plan = planner.plan(transferRequest(route_id=1))

    assert plan.driver_id == assigned.id


def test_preferred_driver_beats_assigned_driver(planner, factory, transferRequest):
    vehicle = factory.vehicle()
    factory.driver(vehicle_id=vehicle.id)
    preferred = factory.driver()

    plan = planner.plan(transferRequest(route_id=1, preferred_driver_id=preferred.id))

    assert plan.driver_id == preferred.id


def test_busy_preferred_driver_falls_back_to_pool(planner, factory, transferRequest):
    factory.vehicle()
    free = factory.driver()
    preferred = factory.driver()
    factory.entry(ResourceType.DRIVER, preferred.id, at(days=1), at(days=1, hours=3))

    plan = planner.plan(transferRequest(route_id=1, preferred_driver_id=preferred.id))

    assert plan.driver_id == free.id


def test_manual_ids_skip_selection(planner, factory, transferRequest):
    factory.vehicle()
    chosen = factory.vehicle()
    factory.driver()
    driver = factory.driver()

    plan = planner.plan(
        transferRequest(route_id=1, vehicle_id=chosen.id, driver_id=driver.id)
    )

    assert (plan.vehicle_id, plan.driver_id) == (chosen.id, driver.id)


def test_busy_manual_vehicle_is_a_conflict(planner, factory, transferRequest):
    vehicle = factory.vehicle()
    factory.driver()
    factory.entry(ResourceType.VEHICLE, vehicle.id, at(days=1, hours=1), at(days=1, hours=5))

    with pytest.raises(exceptions.ResourceConflict):
        planner.plan(transferRequest(route_id=1, vehicle_id=vehicle.id))


@pytest.mark.parametrize(
    "vehicleArgs, partySize, error",
    [
        ({"status": ResourceStatus.INACTIVE}, 1, exceptions.InactiveResource),
        ({"operator_id": 2}, 1, exceptions.InvalidAssociation),
        ({"capacity": 2}, 3, exceptions.InsufficientCapacity),
    ],
)
def test_unusable_manual_vehicle_is_rejected(
    planner, factory, transferRequest, vehicleArgs, partySize, error
):
    vehicle = factory.vehicle(**vehicleArgs)
    factory.driver()

    with pytest.raises(error) as caught:
        planner.plan(
            transferRequest(route_id=1, vehicle_id=vehicle.id, party_size=partySize)
        )
    assert isinstance(caught.value, exceptions.ValidationError)


def test_unknown_manual_driver_is_rejected(planner, factory, transferRequest):
    factory.vehicle()

    with pytest.raises(exceptions.UnknownValue):
        planner.plan(transferRequest(route_id=1, driver_id=404))


def test_driver_on_leave_is_rejected(planner, factory, transferRequest):
    factory.vehicle()
    driver = factory.driver(status=ResourceStatus.ON_LEAVE)

    with pytest.raises(exceptions.InactiveResource):
        planner.plan(transferRequest(route_id=1, driver_id=driver.id))


def test_rental_preferred_driver_is_honoured(planner, factory, rentalRequest):
    factory.vehicle()
    factory.driver()
    preferred = factory.driver()

    plan = planner.plan(rentalRequest(preferred_driver_id=preferred.id))

    assert plan.driver_id == preferred.id
