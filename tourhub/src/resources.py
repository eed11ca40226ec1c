import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import sessionmaker

from tourhub.src import exceptions
from tourhub.src.db import Booking, Driver, ScheduleEntry, Vehicle
from tourhub.src.enums import BookingStatus, ResourceType, ScheduleType
from tourhub.src.intervals import (
    BUSY_TYPES,
    RESOURCE_MODELS,
    DateRange,
    Interval,
    overlapCondition,
)

logger = logging.getLogger("Resources")

TERMINAL_STATUSES = [BookingStatus.COMPLETED, BookingStatus.CANCELLED]
BLOCK_TYPES = [ScheduleType.AVAILABLE, ScheduleType.MAINTENANCE, ScheduleType.OFF]


class ResourceRegistry:
    """
    Operator side maintenance of vehicles, drivers and their schedule blocks.

    A resource referenced by a non-terminal booking cannot be removed, and a
    busy block is only placed where it does not overlap another busy entry.
    """

    def __init__(self, sessionMaker: sessionmaker):
        self.sessionMaker = sessionMaker

    def removeVehicle(self, vehicleId: int, operatorId: Optional[int] = None) -> None:
        self.remove(ResourceType.VEHICLE, vehicleId, operatorId)

    def removeDriver(self, driverId: int, operatorId: Optional[int] = None) -> None:
        self.remove(ResourceType.DRIVER, driverId, operatorId)

    def remove(
        self,
        resourceType: ResourceType,
        resourceId: int,
        operatorId: Optional[int] = None,
    ) -> None:
        """
        Delete a vehicle or driver together with its schedule.

        Terminal bookings referencing the resource go with it, as a booking
        never outlives the resource it references.

        Raises:
            exceptions.ResourceNotFound: If the resource does not exist.
            exceptions.InvalidAssociation: If it belongs to another operator.
            exceptions.DataInUse: If a non-terminal booking references it.
        """
        model = RESOURCE_MODELS[ResourceType(resourceType)]
        column = Booking.vehicle_id if model is Vehicle else Booking.driver_id
        session = self.sessionMaker()
        try:
            resource = session.get(model, resourceId, with_for_update=True)
            if resource is None:
                raise exceptions.ResourceNotFound(model, resourceId)
            if operatorId is not None and resource.operator_id != operatorId:
                raise exceptions.InvalidAssociation(model.id, model.operator_id)

            activeBookings = session.scalar(
                select(func.count(Booking.id))
                .where(column == resourceId)
                .where(Booking.status.notin_(TERMINAL_STATUSES))
            )
            if activeBookings:
                raise exceptions.DataInUse(model)

            bookingIds = select(Booking.id).where(column == resourceId)
            session.execute(
                update(ScheduleEntry)
                .where(ScheduleEntry.booking_id.in_(bookingIds))
                .values(booking_id=None)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(Booking)
                .where(column == resourceId)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(ScheduleEntry)
                .where(ScheduleEntry.resource_type == resourceType)
                .where(ScheduleEntry.resource_id == resourceId)
                .execution_options(synchronize_session=False)
            )
            if model is Vehicle:
                session.execute(
                    update(Driver)
                    .where(Driver.vehicle_id == resourceId)
                    .values(vehicle_id=None)
                    .execution_options(synchronize_session=False)
                )
            session.delete(resource)
            session.commit()
            logger.info(f"Removed {model.__name__} {resourceId}")
        except Exception as e:
            session.rollback()
            exceptions.handle(e)
        finally:
            session.close()

    def addBlock(
        self,
        resourceType: ResourceType,
        resourceId: int,
        interval: Interval,
        type: ScheduleType,
        notes: Optional[str] = None,
        operatorId: Optional[int] = None,
    ) -> ScheduleEntry:
        """
        Place an AVAILABLE, MAINTENANCE or OFF block on a resource schedule.

        An AVAILABLE entry already holding the same start, such as the slot
        of a cancelled booking, is taken over by the block.

        Raises:
            exceptions.ResourceNotFound: If the resource does not exist.
            exceptions.InvalidAssociation: If it belongs to another operator.
            exceptions.InvalidValue: If `type` is BOOKED.
            exceptions.ResourceConflict: If the block overlaps a busy entry
                or takes the start of a busy entry.
        """
        if type not in BLOCK_TYPES:
            raise exceptions.InvalidValue(ScheduleEntry.type)
        model = RESOURCE_MODELS[ResourceType(resourceType)]
        session = self.sessionMaker()
        try:
            resource = session.get(model, resourceId, with_for_update=True)
            if resource is None:
                raise exceptions.ResourceNotFound(model, resourceId)
            if operatorId is not None and resource.operator_id != operatorId:
                raise exceptions.InvalidAssociation(model.id, model.operator_id)

            sameResource = (ScheduleEntry.resource_type == resourceType) & (
                ScheduleEntry.resource_id == resourceId
            )
            entry = session.scalars(
                select(ScheduleEntry)
                .where(sameResource)
                .where(ScheduleEntry.starting_at == interval.start)
                .with_for_update()
            ).first()
            if entry is not None and entry.type != ScheduleType.AVAILABLE:
                raise exceptions.ResourceConflict(model, resourceId)
            if type in BUSY_TYPES:
                overlapping = session.scalars(
                    select(ScheduleEntry.id)
                    .where(sameResource)
                    .where(ScheduleEntry.type.in_(BUSY_TYPES))
                    .where(overlapCondition(interval))
                ).first()
                if overlapping is not None:
                    raise exceptions.ResourceConflict(model, resourceId)

            if entry is None:
                entry = ScheduleEntry(
                    resource_type=resourceType,
                    resource_id=resourceId,
                    date=interval.start.date(),
                    starting_at=interval.start,
                )
                session.add(entry)
            entry.ending_at = interval.end
            entry.type = type
            entry.booking_id = None
            entry.notes = notes
            session.commit()
            logger.info(f"Added {ScheduleType(type).name} block on {model.__name__} {resourceId}")
            return entry
        except Exception as e:
            session.rollback()
            exceptions.handle(e)
        finally:
            session.close()

    def schedule(
        self,
        resourceType: ResourceType,
        resourceId: int,
        dateRange: DateRange,
        operatorId: Optional[int] = None,
    ) -> List[ScheduleEntry]:
        """List every schedule entry of a resource touching the dates, AVAILABLE included."""
        model = RESOURCE_MODELS[ResourceType(resourceType)]
        session = self.sessionMaker()
        try:
            resource = session.get(model, resourceId)
            if resource is None:
                raise exceptions.ResourceNotFound(model, resourceId)
            if operatorId is not None and resource.operator_id != operatorId:
                raise exceptions.InvalidAssociation(model.id, model.operator_id)
            return session.scalars(
                select(ScheduleEntry)
                .where(ScheduleEntry.resource_type == resourceType)
                .where(ScheduleEntry.resource_id == resourceId)
                .where(overlapCondition(dateRange.toInterval()))
                .order_by(ScheduleEntry.starting_at.asc())
            ).all()
        except Exception as e:
            exceptions.handle(e)
        finally:
            session.close()
