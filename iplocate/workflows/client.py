# iplocate/workflows/client.py
# Temporal Client helpers
#
# What it does:
# 1. Manages the shared Temporal Client connection
# 2. Wraps the common workflow operations (start, signal, query, cancel)
# 3. Builds workflow ids following one of three strategies
#
# Usage:
#   from iplocate.workflows.client import start_geolocation, signal_workflow
#
#   handle = await start_geolocation("versioned")
#   result = await handle.result()
#
# Workflow id strategies:
# - unique:   timestamp plus random suffix, every run is independent
# - constant: the same id every time; a second start while one is running
#             is rejected, which makes starting idempotent
# - entity:   one id per business entity (here: the target address)

import time
import uuid
from datetime import timedelta
from typing import Any, Literal, Optional

from temporalio.client import Client, WorkflowHandle

from iplocate.core.config import settings
from iplocate.core.logging import get_logger
from iplocate.workflows.definitions.geolocation import (
    GEOLOCATION_VARIANTS,
    TimezoneLookupWorkflow,
)
from iplocate.workflows.definitions.monitor import IPMonitorWorkflow
from iplocate.workflows.definitions.observable import (
    IPLookupWorkflow,
    StatusCheckerWorkflow,
)
from iplocate.workflows.types import MonitorConfig

logger = get_logger(__name__)

IdStrategy = Literal["unique", "constant", "entity"]

# Fixed ids used by the observable lookup demo
OBSERVABLE_LOOKUP_ID = "ip-lookup-observable"
STATUS_CHECKER_ID = "status-checker"

# Shared client, created on first use
_client: Optional[Client] = None


async def get_temporal_client() -> Client:
    """
    Return the shared Temporal Client (singleton)

    Returns:
        Client: connected client

    Raises:
        RuntimeError: the server is unreachable
    """
    global _client

    if _client is None:
        logger.info(f"Connecting to Temporal Server: {settings.TEMPORAL_HOST}")
        _client = await Client.connect(
            settings.TEMPORAL_HOST,
            namespace=settings.TEMPORAL_NAMESPACE,
        )
        logger.info("Temporal Client connected")

    return _client


def set_temporal_client(client: Optional[Client]) -> None:
    """Use an existing client (worker bootstrap, tests)"""
    global _client
    _client = client


def build_workflow_id(prefix: str, strategy: IdStrategy = "unique", entity: str = "") -> str:
    """
    Build a workflow id

    Args:
        prefix: e.g. "ip-geolocation-workflow"
        strategy: unique | constant | entity
        entity: business key for the entity strategy

    Returns:
        str: the workflow id

    Raises:
        ValueError: entity strategy without an entity, or unknown strategy
    """
    if strategy == "unique":
        return f"{prefix}-{int(time.time())}-{uuid.uuid4().hex[:8]}"
    if strategy == "constant":
        return prefix
    if strategy == "entity":
        if not entity:
            raise ValueError("the entity id strategy needs an entity")
        return f"{prefix}-{entity}"
    raise ValueError(f"unknown workflow id strategy: {strategy}")


async def start_workflow(
    workflow: Any,
    args: tuple = (),
    id: Optional[str] = None,
    task_queue: Optional[str] = None,
    execution_timeout: Optional[timedelta] = None,
) -> WorkflowHandle:
    """
    Start a workflow

    Args:
        workflow: the workflow's run method, e.g. IPGeolocationWorkflow.run
        args: workflow arguments
        id: workflow id (default: unique, from the workflow name)
        task_queue: defaults to settings.TEMPORAL_TASK_QUEUE
        execution_timeout: overall limit across runs

    Returns:
        WorkflowHandle: handle for result / signal / query / cancel

    Raises:
        WorkflowAlreadyStartedError: an open workflow already has this id
    """
    client = await get_temporal_client()

    workflow_id = id or build_workflow_id(workflow.__qualname__.split(".")[0])
    queue = task_queue or settings.TEMPORAL_TASK_QUEUE

    logger.info(f"Starting workflow: {workflow.__qualname__}")
    logger.info(f"  Workflow ID: {workflow_id}")
    logger.info(f"  Task Queue: {queue}")

    handle = await client.start_workflow(
        workflow,
        args=args,
        id=workflow_id,
        task_queue=queue,
        execution_timeout=execution_timeout,
    )

    logger.info(f"Workflow started: {workflow_id}")
    return handle


async def get_workflow_handle(workflow_id: str) -> WorkflowHandle:
    """Handle of an existing workflow"""
    client = await get_temporal_client()
    return client.get_workflow_handle(workflow_id)


async def signal_workflow(workflow_id: str, signal_name: str, args: tuple = ()) -> None:
    """
    Send a signal to a running workflow

    Signals to one workflow are delivered in the order they are sent.

    Args:
        workflow_id: target workflow
        signal_name: e.g. "pause" or "change-target"
        args: signal arguments
    """
    handle = await get_workflow_handle(workflow_id)

    logger.info(f"Sending signal '{signal_name}' to workflow {workflow_id}, args={args}")
    await handle.signal(signal_name, args=args)
    logger.info("Signal sent")


async def query_workflow_state(workflow_id: str, query_name: str, result_type: Optional[type] = None) -> Any:
    """
    Run a query against a workflow

    Args:
        workflow_id: target workflow
        query_name: e.g. "status"
        result_type: type to decode the answer into (default: plain JSON)

    Returns:
        Any: the query answer
    """
    handle = await get_workflow_handle(workflow_id)

    logger.debug(f"Querying workflow {workflow_id}: {query_name}")
    return await handle.query(query_name, result_type=result_type)


async def cancel_workflow(workflow_id: str) -> None:
    """
    Request cancellation of a running workflow

    The workflow stops issuing activities and finishes as cancelled;
    in-flight activity results are discarded.
    """
    handle = await get_workflow_handle(workflow_id)

    logger.warning(f"Cancelling workflow: {workflow_id}")
    await handle.cancel()
    logger.info("Cancellation requested")


# ==================== Domain helpers ====================

async def start_geolocation(
    variant: str = "versioned",
    target: str = "",
    strategy: IdStrategy = "unique",
) -> WorkflowHandle:
    """
    Start one of the geolocation variants

    Args:
        variant: key of GEOLOCATION_VARIANTS
        target: address to locate; empty for the worker's public address
        strategy: workflow id strategy; entity uses the target address

    Raises:
        ValueError: unknown variant
    """
    if variant not in GEOLOCATION_VARIANTS:
        raise ValueError(
            f"unknown variant '{variant}', choose from {sorted(GEOLOCATION_VARIANTS)}"
        )

    workflow_cls = GEOLOCATION_VARIANTS[variant]
    workflow_id = build_workflow_id(
        "ip-geolocation-workflow",
        strategy,
        entity=target or "self",
    )
    return await start_workflow(workflow_cls.run, args=(target,), id=workflow_id)


async def start_timezone_lookup(ip: str) -> WorkflowHandle:
    """Start TimezoneLookupWorkflow for an address"""
    return await start_workflow(
        TimezoneLookupWorkflow.run,
        args=(ip,),
        id=build_workflow_id("ip-timezone-workflow"),
    )


async def start_monitor(config: MonitorConfig, workflow_id: Optional[str] = None) -> WorkflowHandle:
    """Start IPMonitorWorkflow"""
    return await start_workflow(
        IPMonitorWorkflow.run,
        args=(config,),
        id=workflow_id or build_workflow_id("ip-monitor-demo"),
    )


async def start_observable_lookup(ip: str, workflow_id: str = OBSERVABLE_LOOKUP_ID) -> WorkflowHandle:
    """Start IPLookupWorkflow under a well-known id"""
    return await start_workflow(IPLookupWorkflow.run, args=(ip,), id=workflow_id)


async def run_status_check(target_workflow_id: str = OBSERVABLE_LOOKUP_ID) -> str:
    """Run StatusCheckerWorkflow against a target and wait for its summary"""
    handle = await start_workflow(
        StatusCheckerWorkflow.run,
        args=(target_workflow_id,),
        id=build_workflow_id(STATUS_CHECKER_ID),
    )
    return await handle.result()
