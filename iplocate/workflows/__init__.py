# iplocate/workflows/__init__.py
# Temporal workflow module
#
# Layout:
# workflows/
# ├── __init__.py          # this file
# ├── types.py             # dataclasses shared by workflows, activities, client
# ├── errors.py            # CapabilityFailure, VersionMismatchError
# ├── versioning.py        # get_version() on top of workflow.patched()
# ├── worker.py            # Temporal Worker (runs workflows and activities)
# ├── client.py            # Temporal Client helpers (start, signal, query, cancel)
# ├── activities/          # HTTP capabilities, lookup records, observer query
# └── definitions/         # geolocation variants, monitor, observable lookup
#
# Concepts:
# - Workflow: deterministic orchestration, replayed from history
# - Activity: the actual I/O (HTTP, Redis, client queries)
# - Worker: polls the task queue and runs both
# - Signal: asynchronous, ordered, durable command to a running workflow
# - Query: synchronous read of a running workflow's in-memory state
#
# NOTE: workflow definitions import this package, so only
# deterministic modules are imported here. Import worker and client from
# their own modules:
#   from iplocate.workflows.worker import create_worker, run_worker
#   from iplocate.workflows.client import get_temporal_client, start_workflow

from iplocate.workflows.types import (
    LookupResult,
    MonitorState,
    MonitorConfig,
    HistoryEntry,
    MonitorCommand,
    MonitorStatus,
    LookupRecord,
)

__all__ = [
    "LookupResult",
    "MonitorState",
    "MonitorConfig",
    "HistoryEntry",
    "MonitorCommand",
    "MonitorStatus",
    "LookupRecord",
]
