# iplocate/workflows/worker.py
# Temporal Worker
#
# What it does:
# 1. Creates and configures the Temporal Worker
# 2. Registers every workflow and activity
# 3. Manages the worker lifecycle (graceful shutdown on SIGINT / SIGTERM)
#
# Run:
#   iplocate-worker
#   python -m iplocate.workflows.worker
#
# Notes:
# - Several workers can poll the same task queue; instances resume on any of
#   them after a crash or a deployment
# - Every geolocation variant stays registered so in-flight instances of any
#   variant can finish on new worker code

import asyncio
import signal
import sys
from typing import List, Type

from temporalio.client import Client
from temporalio.worker import Worker, UnsandboxedWorkflowRunner

from iplocate.core.config import settings
from iplocate.core.logging import get_logger, setup_logging
from iplocate.core.redis import redis_client
from iplocate.workflows.client import get_temporal_client, set_temporal_client

from iplocate.workflows.definitions.geolocation import (
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

from iplocate.workflows.activities import (
    get_ip,
    get_location_info,
    get_timezone,
    record_lookup,
    compensate_lookup,
    query_workflow,
)
from iplocate.workflows.activities.base import close_http_client

logger = get_logger(__name__)


# ==================== Registration ====================

WORKFLOWS: List[Type] = [
    IPGeolocationWorkflow,
    IPGeolocationV1Workflow,
    IPGeolocationV2Workflow,
    RecordedIPGeolocationWorkflow,
    TimezoneLookupWorkflow,
    IPMonitorWorkflow,
    IPLookupWorkflow,
    StatusCheckerWorkflow,
]

ACTIVITIES = [
    # Geolocation
    get_ip,
    get_location_info,
    get_timezone,
    # Record / compensate
    record_lookup,
    compensate_lookup,
    # Observation
    query_workflow,
]


def create_worker(client: Client, task_queue: str = "") -> Worker:
    """
    Create a Temporal Worker with every workflow and activity registered

    Args:
        client: connected Temporal Client
        task_queue: defaults to settings.TEMPORAL_TASK_QUEUE

    Returns:
        Worker: use as an async context manager, or call run()
    """
    queue = task_queue or settings.TEMPORAL_TASK_QUEUE

    logger.info(f"Creating worker, task queue: {queue}")
    logger.info(f"Registered workflows: {[w.__name__ for w in WORKFLOWS]}")
    logger.info(f"Registered activities: {[a.__name__ for a in ACTIVITIES]}")

    # Sandbox disabled; workflow modules hold no I/O and no wall clock
    return Worker(
        client,
        task_queue=queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
        workflow_runner=UnsandboxedWorkflowRunner(),
    )


async def run_worker() -> None:
    """
    Run the worker until SIGINT / SIGTERM

    Polling stops on shutdown; shared HTTP and Redis connections are closed.
    """
    logger.info("=" * 60)
    logger.info("Starting Temporal Worker")
    logger.info(f"  Temporal Server: {settings.TEMPORAL_HOST}")
    logger.info(f"  Namespace: {settings.TEMPORAL_NAMESPACE}")
    logger.info(f"  Task Queue: {settings.TEMPORAL_TASK_QUEUE}")
    logger.info("=" * 60)

    client = await get_temporal_client()
    # query_workflow reuses the worker's connection
    set_temporal_client(client)

    worker = create_worker(client)

    shutdown_event = asyncio.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        async with worker:
            logger.info("Worker started, waiting for tasks...")
            await shutdown_event.wait()
    finally:
        await close_http_client()
        if redis_client.is_connected:
            await redis_client.disconnect()

    logger.info("Temporal Worker stopped")


def main() -> None:
    """Entry point of iplocate-worker"""
    setup_logging()

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, exiting...")
    except Exception as e:
        logger.error(f"Worker exited with an error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
