# iplocate/workflows/activities/geolocation.py
# Geolocation activities
#
# Three capabilities, one HTTP exchange each:
# 1. get_ip - own public address (ipify)
# 2. get_location_info - "City: X, Region: Y, Country: Z" for an address
# 3. get_timezone - IANA timezone for an address
#
# ip-api.com answers 200 with {"status": "fail", "message": "..."} for bad
# input (private range, invalid query). Retrying cannot fix that, so it is
# raised as a non-retryable CapabilityFailure.

from temporalio import activity

from iplocate.core.config import settings
from iplocate.workflows.activities.base import fetch_json, fetch_text
from iplocate.workflows.errors import CapabilityFailure


def _check_provider_status(data: dict) -> None:
    """Raise when ip-api.com reports a logical failure"""
    if not isinstance(data, dict):
        raise CapabilityFailure(f"unexpected response: {data!r}")
    if data.get("status") == "fail":
        raise CapabilityFailure(
            f"API error: {data.get('message', 'unknown error')}",
            non_retryable=True,
        )


@activity.defn(name="get_ip")
async def get_ip() -> str:
    """
    Fetch the worker's own public address

    Returns:
        str: e.g. "203.0.113.5"
    """
    body = await fetch_text(settings.IP_ECHO_URL)
    ip = body.strip()

    if not ip:
        raise CapabilityFailure(f"empty response from {settings.IP_ECHO_URL}")

    activity.logger.info(f"Public IP resolved: {ip}")
    return ip


@activity.defn(name="get_location_info")
async def get_location_info(ip: str) -> str:
    """
    Fetch the location of an address

    Args:
        ip: address to look up

    Returns:
        str: "City: X, Region: Y, Country: Z"
    """
    url = f"{settings.IP_API_BASE_URL}/{ip}"
    activity.logger.info(f"Fetching location: ip={ip}")

    data = await fetch_json(url)
    _check_provider_status(data)

    city = data.get("city", "")
    region = data.get("regionName", "")
    country = data.get("country", "")

    location = f"City: {city}, Region: {region}, Country: {country}"
    activity.logger.info(f"Location resolved: ip={ip}, {location}")
    return location


@activity.defn(name="get_timezone")
async def get_timezone(ip: str) -> str:
    """
    Fetch the timezone of an address

    Args:
        ip: address to look up

    Returns:
        str: e.g. "America/Los_Angeles"
    """
    url = f"{settings.IP_API_BASE_URL}/{ip}"
    activity.logger.info(f"Fetching timezone: ip={ip}")

    # With fields=timezone the API omits "status" on success
    data = await fetch_json(url, params={"fields": "timezone"})
    _check_provider_status(data)

    timezone = data.get("timezone", "")
    activity.logger.info(f"Timezone resolved: ip={ip}, timezone={timezone}")
    return timezone
