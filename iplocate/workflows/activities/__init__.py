# iplocate/workflows/activities/__init__.py
# Temporal activities package

from iplocate.workflows.activities.geolocation import (
    get_ip,
    get_location_info,
    get_timezone,
)
from iplocate.workflows.activities.lookup_record import (
    record_lookup,
    compensate_lookup,
)
from iplocate.workflows.activities.observer import query_workflow

__all__ = [
    "get_ip",
    "get_location_info",
    "get_timezone",
    "record_lookup",
    "compensate_lookup",
    "query_workflow",
]
