from redis import Redis

from tourhub.src.constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD
from tourhub.src.enums import ResourceType

# Redis client (single connection)
redisClient = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    decode_responses=True,
)


def tripCountKey(resourceType: ResourceType, resourceId: int) -> str:
    """
    Build the cache key holding the recent completed-trip count of a resource.

    Example:
        >>> tripCountKey(ResourceType.VEHICLE, 7)
        'trips:vehicle:7'
    """
    return f"trips:{ResourceType(resourceType).name.lower()}:{resourceId}"
