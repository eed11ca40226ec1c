from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from tourhub.src import exceptions, getters
from tourhub.src.db import Vehicle
from tourhub.src.loggers import logEvent
from tourhub.src.enums import ResourceType, ScheduleType
from tourhub.src.functions import enumStr, fuseExceptionResponses
from tourhub.src.intervals import DateRange, Interval
from tourhub.src.resources import ResourceRegistry
from tourhub.src.urls import URL_SCHEDULE, URL_SCHEDULE_BLOCK

route_operator = APIRouter()


## Output Schema
class ScheduleEntrySchema(BaseModel):
    id: int
    resource_type: int
    resource_id: int
    date: date
    starting_at: datetime
    ending_at: datetime
    type: int
    booking_id: Optional[int] = None
    notes: Optional[str] = None
    updated_on: Optional[datetime] = None
    created_on: Optional[datetime] = None


## Input Forms
class BlockForm(BaseModel):
    operator_id: int = Field(Form())
    resource_type: ResourceType = Field(Form(description=enumStr(ResourceType)))
    resource_id: int = Field(Form())
    starting_at: datetime = Field(Form())
    ending_at: datetime = Field(Form())
    type: ScheduleType = Field(
        Form(description=enumStr(ScheduleType), default=ScheduleType.MAINTENANCE)
    )
    notes: str | None = Field(Form(max_length=512, default=None))


## Query Parameters
class QueryParams(BaseModel):
    operator_id: int = Field(Query())
    resource_type: ResourceType = Field(Query(description=enumStr(ResourceType)))
    resource_id: int = Field(Query())
    date_from: date = Field(Query())
    date_to: date = Field(Query())


## API endpoints [Operator]
@route_operator.post(
    URL_SCHEDULE_BLOCK,
    tags=["Schedule"],
    response_model=ScheduleEntrySchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [exceptions.ResourceNotFound(Vehicle, 1), exceptions.ResourceConflict(Vehicle, 1)]
    ),
    description="""
    Places a maintenance, off or available block on a vehicle or driver schedule.
    Maintenance and off blocks are rejected where they overlap a booked or blocked window.
    Logs the block creation activity with the request metadata.
    """,
)
async def create_block(
    fParam: BlockForm = Depends(),
    registry: ResourceRegistry = Depends(getters.registry),
    request_info=Depends(getters.requestInfo),
):
    try:
        interval = Interval(start=fParam.starting_at, end=fParam.ending_at)
        entry = registry.addBlock(
            fParam.resource_type,
            fParam.resource_id,
            interval,
            fParam.type,
            fParam.notes,
            fParam.operator_id,
        )

        entryData = jsonable_encoder(entry)
        logEvent(request_info, entryData)
        return entryData
    except Exception as e:
        exceptions.handle(e)


@route_operator.get(
    URL_SCHEDULE,
    tags=["Schedule"],
    response_model=List[ScheduleEntrySchema],
    responses=fuseExceptionResponses([exceptions.ResourceNotFound(Vehicle, 1)]),
    description="""
    Lists the schedule of a vehicle or driver over an inclusive range of UTC dates.
    Available blocks and released slots are included.
    """,
)
async def fetch_schedule(
    qParam: QueryParams = Depends(),
    registry: ResourceRegistry = Depends(getters.registry),
):
    try:
        dateRange = DateRange(first=qParam.date_from, last=qParam.date_to)
        return registry.schedule(
            qParam.resource_type, qParam.resource_id, dateRange, qParam.operator_id
        )
    except Exception as e:
        exceptions.handle(e)
