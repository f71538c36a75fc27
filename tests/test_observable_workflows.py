# tests/test_observable_workflows.py
# IPLookupWorkflow / StatusCheckerWorkflow tests
#
# Run:
#   pytest tests/test_observable_workflows.py -v

import pytest
from temporalio import activity
from temporalio.client import WorkflowFailureError
from temporalio.exceptions import ApplicationError
from temporalio.worker import UnsandboxedWorkflowRunner, Worker

from iplocate.workflows import client as client_module
from iplocate.workflows.activities.observer import query_workflow
from iplocate.workflows.definitions.observable import IPLookupWorkflow, StatusCheckerWorkflow

LOCATION = "City: Mountain View, Region: California, Country: United States"


@activity.defn(name="get_location_info")
async def fake_location(ip: str) -> str:
    return LOCATION


@pytest.fixture
def shared_client(workflow_env):
    """query_workflow uses the test environment's client"""
    client_module.set_temporal_client(workflow_env.client)
    yield workflow_env.client
    client_module.set_temporal_client(None)


# ==================== IPLookupWorkflow ====================

@pytest.mark.asyncio
async def test_lookup_reports_progress(workflow_env, task_queue):
    async with Worker(
        workflow_env.client,
        task_queue=task_queue,
        workflows=[IPLookupWorkflow],
        activities=[fake_location],
        workflow_runner=UnsandboxedWorkflowRunner(),
    ):
        handle = await workflow_env.client.start_workflow(
            IPLookupWorkflow.run,
            "8.8.8.8",
            id=f"lookup-{task_queue}",
            task_queue=task_queue,
        )

        before = await handle.query(IPLookupWorkflow.result)
        result = await handle.result()
        status = await handle.query(IPLookupWorkflow.status)
        after = await handle.query(IPLookupWorkflow.result)

    assert before == ""
    assert result == LOCATION
    assert status == "complete"
    assert after == LOCATION


# ==================== StatusCheckerWorkflow ====================

@pytest.mark.asyncio
async def test_status_checker_summary(workflow_env, task_queue):
    answers = {"status": "complete", "result": LOCATION}

    @activity.defn(name="query_workflow")
    async def answer_query(workflow_id: str, query_name: str) -> str:
        return answers[query_name]

    async with Worker(
        workflow_env.client,
        task_queue=task_queue,
        workflows=[StatusCheckerWorkflow],
        activities=[answer_query],
        workflow_runner=UnsandboxedWorkflowRunner(),
    ):
        summary = await workflow_env.client.execute_workflow(
            StatusCheckerWorkflow.run,
            "ip-lookup-observable",
            id=f"checker-{task_queue}",
            task_queue=task_queue,
        )

    assert summary == f"Workflow ip-lookup-observable is 'complete' - Result: {LOCATION}"


@pytest.mark.asyncio
async def test_status_checker_without_result(workflow_env, task_queue):
    @activity.defn(name="query_workflow")
    async def answer_query(workflow_id: str, query_name: str) -> str:
        if query_name == "result":
            raise ApplicationError("no such query", non_retryable=True)
        return "fetching location"

    async with Worker(
        workflow_env.client,
        task_queue=task_queue,
        workflows=[StatusCheckerWorkflow],
        activities=[answer_query],
        workflow_runner=UnsandboxedWorkflowRunner(),
    ):
        summary = await workflow_env.client.execute_workflow(
            StatusCheckerWorkflow.run,
            "ip-lookup-observable",
            id=f"checker-partial-{task_queue}",
            task_queue=task_queue,
        )

    assert summary == "Workflow ip-lookup-observable is 'fetching location'"


@pytest.mark.asyncio
async def test_status_checker_fails_when_status_unavailable(workflow_env, task_queue):
    @activity.defn(name="query_workflow")
    async def answer_query(workflow_id: str, query_name: str) -> str:
        raise ApplicationError("workflow not found", non_retryable=True)

    async with Worker(
        workflow_env.client,
        task_queue=task_queue,
        workflows=[StatusCheckerWorkflow],
        activities=[answer_query],
        workflow_runner=UnsandboxedWorkflowRunner(),
    ):
        with pytest.raises(WorkflowFailureError):
            await workflow_env.client.execute_workflow(
                StatusCheckerWorkflow.run,
                "missing-workflow",
                id=f"checker-missing-{task_queue}",
                task_queue=task_queue,
            )


@pytest.mark.asyncio
async def test_status_checker_observes_running_lookup(workflow_env, task_queue, shared_client):
    """End to end: the real query_workflow activity against a live lookup"""
    async with Worker(
        workflow_env.client,
        task_queue=task_queue,
        workflows=[IPLookupWorkflow, StatusCheckerWorkflow],
        activities=[fake_location, query_workflow],
        workflow_runner=UnsandboxedWorkflowRunner(),
    ):
        lookup_id = f"lookup-observed-{task_queue}"
        lookup = await workflow_env.client.start_workflow(
            IPLookupWorkflow.run,
            "8.8.8.8",
            id=lookup_id,
            task_queue=task_queue,
        )

        summary = await workflow_env.client.execute_workflow(
            StatusCheckerWorkflow.run,
            lookup_id,
            id=f"checker-live-{task_queue}",
            task_queue=task_queue,
        )
        assert await lookup.result() == LOCATION

    assert summary.startswith(f"Workflow {lookup_id} is '")
    assert any(
        f"'{status}'" in summary
        for status in ("starting", "fetching location", "complete")
    )
