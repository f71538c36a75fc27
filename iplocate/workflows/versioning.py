# iplocate/workflows/versioning.py
# Integer version markers on top of workflow.patched()
#
# The Python SDK records boolean patch markers. get_version() turns a family
# of them into a single integer per change id:
#
#   change id "add-timezone-feature", supported range DEFAULT_VERSION..2
#     version 1 -> marker "add-timezone-feature"
#     version 2 -> marker "add-timezone-feature-v2"
#
# Markers are checked from the newest version down. A fresh instance records
# the newest marker; a replaying instance finds the marker it recorded back
# then, or none at all (DEFAULT_VERSION) if it passed this point before the
# change existed.
#
# Rules for callers:
# - read a change id once, at the exact point where behaviour diverges, and
#   never behind a condition
# - never remove the call, even after the old branch is deleted
# - raise min_supported only after every instance that could still read the
#   old value has finished; never lower max_supported
# - never rename a change id

from temporalio import workflow

from iplocate.workflows.errors import VersionMismatchError

# Version of an instance that passed the marker before the change existed
DEFAULT_VERSION = -1


def marker_id(change_id: str, version: int) -> str:
    """Patch id recorded for one version of a change"""
    if version < 1:
        raise ValueError(f"version markers start at 1, got {version}")
    if version == 1:
        return change_id
    return f"{change_id}-v{version}"


def get_version(change_id: str, min_supported: int, max_supported: int) -> int:
    """
    Read the version of a change for the running workflow instance

    Must be called from workflow code. The value is stable for the lifetime
    of the instance, including every future replay.

    Args:
        change_id: permanent identifier of the change
        min_supported: oldest version this code can still execute
        max_supported: version new instances get

    Returns:
        int: DEFAULT_VERSION or a version in 1..max_supported

    Raises:
        ValueError: invalid bounds
        VersionMismatchError: the instance recorded a version below
            min_supported (fails the workflow task, not the workflow)
    """
    if max_supported < 1:
        raise ValueError(f"max_supported must be at least 1, got {max_supported}")
    if min_supported > max_supported:
        raise ValueError(
            f"min_supported ({min_supported}) is greater than max_supported ({max_supported})"
        )

    version = DEFAULT_VERSION
    for candidate in range(max_supported, 0, -1):
        if workflow.patched(marker_id(change_id, candidate)):
            version = candidate
            break

    if version < min_supported:
        raise VersionMismatchError(change_id, version, min_supported, max_supported)

    return version
