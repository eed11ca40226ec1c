import logging

from requests import RequestException

from tourhub.src import openobserve
from tourhub.src.schemas import RequestInfo

logger = logging.getLogger("Events")


def logEvent(requestInfo: RequestInfo, data: dict) -> None:
    """
    Log a business event to OpenObserve with request context.

    Args:
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method` and `_path`.
        - An unreachable OpenObserve is logged as a warning and never fails
          the request that produced the event.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }
    logDetails.update(data)
    try:
        openobserve.logEvent(logDetails)
    except RequestException as e:
        logger.warning(f"Event for {requestInfo.method} {requestInfo.path} not delivered: {e}")
