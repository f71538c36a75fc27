# iplocate/workflows/errors.py
# Error taxonomy
#
# - CapabilityFailure: an activity could not produce its value (network,
#   HTTP status, undecodable body, or the provider reporting a failure).
#   It is an ApplicationError so Temporal carries its type and retryability
#   across the wire; workflows see it as the cause of an ActivityError.
# - VersionMismatchError: the version recorded for an instance is older than
#   the oldest version the deployed code still supports. It is NOT an
#   ApplicationError on purpose: Temporal then fails the workflow task instead
#   of the workflow, and the instance resumes once compatible code is deployed.

from temporalio.exceptions import ApplicationError

# Failure type name as seen by clients and in the Web UI
CAPABILITY_FAILURE = "CapabilityFailure"


class CapabilityFailure(ApplicationError):
    """An outbound capability failed"""

    def __init__(self, message: str, *details, non_retryable: bool = False):
        super().__init__(
            message,
            *details,
            type=CAPABILITY_FAILURE,
            non_retryable=non_retryable,
        )


class VersionMismatchError(RuntimeError):
    """Recorded version marker is outside the range supported by this code"""

    def __init__(self, change_id: str, version: int, min_supported: int, max_supported: int):
        self.change_id = change_id
        self.version = version
        self.min_supported = min_supported
        self.max_supported = max_supported
        super().__init__(
            f"version {version} of change '{change_id}' is not supported "
            f"(supported range: {min_supported}..{max_supported})"
        )
