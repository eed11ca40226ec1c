import json, requests
from requests import Response
from requests.auth import HTTPBasicAuth

from tourhub.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_TIMEOUT,
    OPENOBSERVE_USERNAME,
)

auth = HTTPBasicAuth(OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)
headers = {"Content-type": "application/json"}

# Construct OpenObserve ingestion endpoint URL
openobserve_host = f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
openobserve_url = f"{openobserve_host}/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"


def logEvent(eventData: dict) -> Response:
    """
    Send a booking event to the configured OpenObserve stream.

    Values that JSON cannot encode natively (datetimes, enums) are sent
    as strings.

    Args:
        eventData (dict): The event to ingest.
            Example:
                {
                    "_method": "POST",
                    "_path": "/customer/booking",
                    "_app_id": 1,
                    "reference": "TR-260701-9F3A0C1B"
                }

    Returns:
        requests.Response: The HTTP response returned by OpenObserve.
    """
    return requests.post(
        openobserve_url,
        headers=headers,
        auth=auth,
        data=json.dumps([eventData], default=str),
        timeout=OPENOBSERVE_TIMEOUT,
    )
