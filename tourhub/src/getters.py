from fastapi import Request

from tourhub.src import schemas
from tourhub.src.coordinator import BookingTransactionCoordinator
from tourhub.src.db import sessionMaker
from tourhub.src.redis import redisClient
from tourhub.src.resources import ResourceRegistry


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def coordinator() -> BookingTransactionCoordinator:
    """Booking coordinator bound to the configured database and Redis cache."""
    return BookingTransactionCoordinator(sessionMaker, cache=redisClient)


def registry() -> ResourceRegistry:
    return ResourceRegistry(sessionMaker)
