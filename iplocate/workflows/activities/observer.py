# iplocate/workflows/activities/observer.py
# Query another workflow from a workflow
#
# Workflow code in the Python SDK can signal or cancel an external workflow
# but cannot query it. Queries go through the client, so they are wrapped in
# an activity.

from temporalio import activity
from temporalio.client import WorkflowQueryFailedError, WorkflowQueryRejectedError
from temporalio.service import RPCError

from iplocate.workflows.errors import CapabilityFailure


@activity.defn(name="query_workflow")
async def query_workflow(workflow_id: str, query_name: str) -> str:
    """
    Run a query against another workflow

    Args:
        workflow_id: target workflow
        query_name: e.g. "status"

    Returns:
        str: the query answer as text ("" for None)

    Raises:
        CapabilityFailure: non-retryable when the target rejects or fails the
            query, retryable on RPC errors
    """
    # Imported here: the client module reads settings
    from iplocate.workflows.client import get_temporal_client

    client = await get_temporal_client()
    handle = client.get_workflow_handle(workflow_id)

    activity.logger.info(f"Querying workflow: {workflow_id}, query={query_name}")

    try:
        answer = await handle.query(query_name)
    except (WorkflowQueryFailedError, WorkflowQueryRejectedError) as e:
        raise CapabilityFailure(
            f"query '{query_name}' on {workflow_id} failed: {e}",
            non_retryable=True,
        ) from e
    except RPCError as e:
        raise CapabilityFailure(f"query '{query_name}' on {workflow_id} failed: {e}") from e

    return "" if answer is None else str(answer)
