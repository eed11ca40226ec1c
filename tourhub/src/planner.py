"""
Vehicle then driver assignment for a booking request.

Planning walks SELECT_VEHICLE -> SELECT_DRIVER -> PLANNED. Nothing is held
while planning, so a failure at any stage leaves no trace behind; the only
success state is an immutable `Plan`.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.session import Session

from tourhub.src import exceptions
from tourhub.src.availability import AvailabilityResolver
from tourhub.src.db import Booking, Driver, Vehicle
from tourhub.src.enums import PlanStage, ResourceStatus, ResourceType
from tourhub.src.intervals import Interval
from tourhub.src.schemas import BookingRequest

logger = logging.getLogger("Planner")


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    vehicle_id: int
    driver_id: Optional[int] = None
    interval: Interval
    stage: PlanStage = PlanStage.PLANNED


class AssignmentPlanner:
    """
    Pick a vehicle and, when the booking needs one, a driver.

    Driver preference for the chosen vehicle: the customer's preferred
    driver, then the drivers normally assigned to that vehicle, then the
    rest of the operator's free drivers in resolver order.

    Explicit `vehicle_id`/`driver_id` on the request skip selection but are
    re-validated against existence, ownership, status, capacity and the
    current schedule.
    """

    def __init__(self, resolver: AvailabilityResolver):
        self.resolver = resolver

    def plan(self, request: BookingRequest, session: Optional[Session] = None) -> Plan:
        """
        Build a plan for the request.

        Raises:
            exceptions.NoVehicleAvailable: If no vehicle can serve the interval.
            exceptions.NoDriverAvailable: If no driver can serve the interval.
            exceptions.ResourceConflict: If a manually chosen resource is busy.
            exceptions.ValidationError: If a manually chosen resource is unusable.
        """
        ownSession = session is None
        session = session or self.resolver.intervalStore.sessionMaker()
        interval = request.interval
        stage = PlanStage.SELECT_VEHICLE
        try:
            if request.vehicle_id is not None:
                vehicleId = self.checkVehicle(request, interval, session)
            else:
                vehicleId = self.selectVehicle(request, interval, session)

            stage = PlanStage.SELECT_DRIVER
            driverId = None
            if request.needsDriver:
                if request.driver_id is not None:
                    driverId = self.checkDriver(request, interval, session)
                else:
                    driverId = self.selectDriver(request, vehicleId, interval, session)

            return Plan(vehicle_id=vehicleId, driver_id=driverId, interval=interval)
        except exceptions.APIException as e:
            logger.info(
                f"Planning {PlanStage.FAILED.name} at {stage.name}: {e.headers['X-Error']}"
            )
            raise
        except SQLAlchemyError as e:
            exceptions.handle(e)
        finally:
            if ownSession:
                session.close()

    # ------------------------------------------------------------------
    # Automatic selection
    # ------------------------------------------------------------------
    def selectVehicle(
        self, request: BookingRequest, interval: Interval, session: Session
    ) -> int:
        vehicleIds = self.resolver.resolve(
            ResourceType.VEHICLE,
            request.operator_id,
            interval,
            partySize=request.party_size,
            candidateIds=request.vehicle_ids,
            category=request.vehicle_category,
            session=session,
        )
        if not vehicleIds:
            raise exceptions.NoVehicleAvailable()
        return vehicleIds[0]

    def selectDriver(
        self,
        request: BookingRequest,
        vehicleId: int,
        interval: Interval,
        session: Session,
    ) -> int:
        driverIds = self.resolver.resolve(
            ResourceType.DRIVER,
            request.operator_id,
            interval,
            candidateIds=request.driver_ids,
            session=session,
        )
        if not driverIds:
            raise exceptions.NoDriverAvailable()
        for driverId in self.preferredDrivers(request, vehicleId, session):
            if driverId in driverIds:
                return driverId
        return driverIds[0]

    def preferredDrivers(
        self, request: BookingRequest, vehicleId: int, session: Session
    ) -> List[int]:
        preferred = []
        if request.preferred_driver_id is not None:
            preferred.append(request.preferred_driver_id)
        assigned = session.scalars(
            select(Driver.id)
            .where(Driver.vehicle_id == vehicleId)
            .order_by(Driver.id.asc())
        ).all()
        preferred.extend(assigned)
        return preferred

    # ------------------------------------------------------------------
    # Manual override re-validation
    # ------------------------------------------------------------------
    def checkVehicle(
        self, request: BookingRequest, interval: Interval, session: Session
    ) -> int:
        vehicle = session.get(Vehicle, request.vehicle_id)
        if vehicle is None:
            raise exceptions.UnknownValue(Booking.vehicle_id)
        if vehicle.operator_id != request.operator_id:
            raise exceptions.InvalidAssociation(Booking.vehicle_id, Booking.operator_id)
        if vehicle.status != ResourceStatus.ACTIVE:
            raise exceptions.InactiveResource(Vehicle)
        if vehicle.capacity < request.party_size:
            raise exceptions.InsufficientCapacity()
        store = self.resolver.intervalStore
        if store.isBusy(ResourceType.VEHICLE, vehicle.id, interval, session):
            raise exceptions.ResourceConflict(Vehicle, vehicle.id)
        return vehicle.id

    def checkDriver(
        self, request: BookingRequest, interval: Interval, session: Session
    ) -> int:
        driver = session.get(Driver, request.driver_id)
        if driver is None:
            raise exceptions.UnknownValue(Booking.driver_id)
        if driver.operator_id != request.operator_id:
            raise exceptions.InvalidAssociation(Booking.driver_id, Booking.operator_id)
        if driver.status != ResourceStatus.ACTIVE:
            raise exceptions.InactiveResource(Driver)
        store = self.resolver.intervalStore
        if store.isBusy(ResourceType.DRIVER, driver.id, interval, session):
            raise exceptions.ResourceConflict(Driver, driver.id)
        return driver.id
