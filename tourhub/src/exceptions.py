"""
Centralized exception handling for TourHub Scheduling API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- The booking error taxonomy (validation, sold out, conflict, pricing, storage).
- Utility functions for formatting DB errors, logging, and routing exceptions.

Usage:
    - Raise specific exceptions in the scheduling core or route handlers.
    - Use `handle()` to normalize raw exceptions (DB, Redis, Pydantic) into API-friendly responses.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException
from sqlalchemy import Column
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.
    """
    errorMessage: str = e.orig.diag.message_detail
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def sqlState(e: IntegrityError):
    """Return the SQLSTATE of a psycopg2 integrity error, None for other drivers."""
    diag = getattr(e.orig, "diag", None)
    return getattr(diag, "sqlstate", None)


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses.
    """
    if isinstance(e, APIException):
        raise e
    if isinstance(e, IntegrityError):
        if sqlState(e) == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlState(e) == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, SQLAlchemyError):
        logException(e)
        raise StorageError(detail=str(e.__class__.__name__)) from e
    if isinstance(e, PydanticValidationError):
        raise ValidationError(detail=e.errors(include_url=False))
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Validation errors (malformed or impossible request, fix and retry)
# ---------------------------------------------------------------------------
class ValidationError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "ValidationError"}

    def __init__(self, detail):
        super().__init__(detail=detail)


class UnknownValue(ValidationError):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "UnknownValue"}

    def __init__(self, column_name: Column):
        detail = f"Invalid {column_name.name} is provided"
        super().__init__(detail=detail)


class InvalidValue(ValidationError):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidValue"}

    def __init__(self, column_name: Column):
        detail = f"Invalid {column_name.name} is provided"
        super().__init__(detail=detail)


class MissingParameter(ValidationError):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "MissingParameter"}

    def __init__(self, column_name: Column):
        detail = f"The {column_name.name} is missing"
        super().__init__(detail=detail)


class InvalidStateTransition(ValidationError):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidStateTransition"}

    def __init__(self, column_name: Column):
        detail = f"The {column_name.name} cannot be set to the provided value"
        super().__init__(detail=detail)


class InvalidAssociation(ValidationError):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidAssociation"}

    def __init__(self, column_name_1: Column, column_name_2: Column):
        detail = f"The {column_name_1.name} is not associated with {column_name_2.name}"
        super().__init__(detail=detail)


class InactiveResource(ValidationError):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    headers = {"X-Error": "InactiveResource"}

    def __init__(self, orm_class):
        detail = (
            f"The status of {orm_class.__name__} is not in an active or useful state"
        )
        super().__init__(detail=detail)


class InsufficientCapacity(ValidationError):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InsufficientCapacity"}

    def __init__(self):
        super().__init__(detail="The vehicle capacity is less than the party size")


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class ResourceNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "ResourceNotFound"}

    def __init__(self, orm_class, pk: int):
        detail = f"{orm_class.__name__} with id {pk} does not exist"
        super().__init__(detail=detail)


class DataInUse(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "DataInUse"}

    def __init__(self, orm_class):
        detail = f"The {orm_class.__name__} is currently in use"
        super().__init__(detail=detail)


# ---------------------------------------------------------------------------
# Availability errors (legitimate sold out, not a bug)
# ---------------------------------------------------------------------------
class NoResourceAvailable(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "NoResourceAvailable"}
    detail = "No resource is available for the requested interval"


class NoVehicleAvailable(NoResourceAvailable):
    headers = {"X-Error": "NoVehicleAvailable"}
    detail = "No vehicle is available for the requested interval"


class NoDriverAvailable(NoResourceAvailable):
    headers = {"X-Error": "NoDriverAvailable"}
    detail = "No driver is available for the requested interval"


# ---------------------------------------------------------------------------
# Conflict errors (lost a race, retry with a fresh plan)
# ---------------------------------------------------------------------------
class ResourceConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "ResourceConflict"}

    def __init__(self, orm_class, pk: int):
        detail = f"The {orm_class.__name__} {pk} is already booked for the requested interval"
        super().__init__(detail=detail)
        self.resource = orm_class
        self.pk = pk


# ---------------------------------------------------------------------------
# Pricing errors (tariff misconfiguration, operator facing)
# ---------------------------------------------------------------------------
class PriceUnavailable(APIException):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    headers = {"X-Error": "PriceUnavailable"}
    detail = "No tariff applies to the requested booking"


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------
class StorageError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "StorageError"}
    detail = "The booking storage is unavailable"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)
