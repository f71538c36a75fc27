# iplocate/workflows/definitions/__init__.py
# Workflow definitions

from iplocate.workflows.definitions.geolocation import (
    GEOLOCATION_VARIANTS,
    IPGeolocationWorkflow,
    IPGeolocationV1Workflow,
    IPGeolocationV2Workflow,
    RecordedIPGeolocationWorkflow,
    TimezoneLookupWorkflow,
)
from iplocate.workflows.definitions.monitor import IPMonitorWorkflow
from iplocate.workflows.definitions.observable import (
    IPLookupWorkflow,
    StatusCheckerWorkflow,
)

__all__ = [
    "GEOLOCATION_VARIANTS",
    "IPGeolocationWorkflow",
    "IPGeolocationV1Workflow",
    "IPGeolocationV2Workflow",
    "RecordedIPGeolocationWorkflow",
    "TimezoneLookupWorkflow",
    "IPMonitorWorkflow",
    "IPLookupWorkflow",
    "StatusCheckerWorkflow",
]
