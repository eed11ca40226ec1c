from fastapi import APIRouter, Depends, Response, status, Form
from pydantic import BaseModel, Field

from tourhub.src import exceptions, getters
from tourhub.src.db import Driver, Vehicle
from tourhub.src.loggers import logEvent
from tourhub.src.functions import fuseExceptionResponses
from tourhub.src.resources import ResourceRegistry
from tourhub.src.urls import URL_DRIVER, URL_VEHICLE

route_operator = APIRouter()


## Input Forms
class DeleteForm(BaseModel):
    id: int = Field(Form())
    operator_id: int = Field(Form())


## API endpoints [Operator]
@route_operator.delete(
    URL_VEHICLE,
    tags=["Resource"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.ResourceNotFound(Vehicle, 1), exceptions.DataInUse(Vehicle)]
    ),
    description="""
    Permanently removes a vehicle with its schedule and past bookings.
    Rejected while any pending, assigned, confirmed or running booking uses the vehicle.
    """,
)
async def delete_vehicle(
    fParam: DeleteForm = Depends(),
    registry: ResourceRegistry = Depends(getters.registry),
    request_info=Depends(getters.requestInfo),
):
    try:
        registry.removeVehicle(fParam.id, fParam.operator_id)
        logEvent(request_info, {"vehicle_id": fParam.id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)


@route_operator.delete(
    URL_DRIVER,
    tags=["Resource"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.ResourceNotFound(Driver, 1), exceptions.DataInUse(Driver)]
    ),
    description="""
    Permanently removes a driver with their schedule and past bookings.
    Rejected while any pending, assigned, confirmed or running booking uses the driver.
    """,
)
async def delete_driver(
    fParam: DeleteForm = Depends(),
    registry: ResourceRegistry = Depends(getters.registry),
    request_info=Depends(getters.requestInfo),
):
    try:
        registry.removeDriver(fParam.id, fParam.operator_id)
        logEvent(request_info, {"driver_id": fParam.id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
