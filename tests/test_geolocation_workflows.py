# tests/test_geolocation_workflows.py
# Geolocation workflow tests
#
# Run:
#   pytest tests/test_geolocation_workflows.py -v
#
# Uses the time-skipping test server (the 45 second settle delay completes
# instantly) with mock activities registered under the production names.

import asyncio
from datetime import timedelta

import pytest
from temporalio import activity, workflow
from temporalio.client import WorkflowFailureError
from temporalio.exceptions import ActivityError, ApplicationError, CancelledError
from temporalio.worker import Replayer, UnsandboxedWorkflowRunner, Worker

from iplocate.workflows.definitions.geolocation import (
    GEOLOCATION_VARIANTS,
    SETTLE_DELAY,
    IPGeolocationV1Workflow,
    IPGeolocationV2Workflow,
    IPGeolocationWorkflow,
    RecordedIPGeolocationWorkflow,
    TimezoneLookupWorkflow,
)
from iplocate.workflows.types import LookupResult
from iplocate.workflows.versioning import DEFAULT_VERSION

PUBLIC_IP = "203.0.113.5"
LOCATION = "City: X, Region: Y, Country: Z"


class MockProvider:
    """Mock activities that log every invocation"""

    def __init__(self, location_error: str = "", block_location: bool = False):
        self.calls = []
        self.location_error = location_error
        # get_location_info waits for release when blocking
        self.block_location = block_location
        self.location_started = asyncio.Event()
        self.release = asyncio.Event()

    def activities(self):
        @activity.defn(name="get_ip")
        async def get_ip() -> str:
            self.calls.append(("get_ip",))
            return PUBLIC_IP

        @activity.defn(name="get_location_info")
        async def get_location_info(ip: str) -> str:
            self.calls.append(("get_location_info", ip))
            self.location_started.set()
            if self.block_location:
                await self.release.wait()
            if self.location_error:
                raise ApplicationError(self.location_error, non_retryable=True)
            return LOCATION

        @activity.defn(name="get_timezone")
        async def get_timezone(ip: str) -> str:
            self.calls.append(("get_timezone", ip))
            return "UTC"

        @activity.defn(name="record_lookup")
        async def record_lookup(ip: str) -> str:
            self.calls.append(("record_lookup", ip))
            return f"record-{ip}"

        @activity.defn(name="compensate_lookup")
        async def compensate_lookup(record_id: str) -> bool:
            self.calls.append(("compensate_lookup", record_id))
            return True

        return [get_ip, get_location_info, get_timezone, record_lookup, compensate_lookup]

    def names(self):
        return [call[0] for call in self.calls]


# Same workflow type, as deployed before the timezone feature: no marker
@workflow.defn(name="IPGeolocationWorkflow")
class LocationOnlyGeolocationWorkflow:
    @workflow.run
    async def run(self, target: str = "") -> LookupResult:
        ip = target or await workflow.execute_activity(
            "get_ip",
            start_to_close_timeout=timedelta(minutes=1),
            result_type=str,
        )
        await asyncio.sleep(SETTLE_DELAY.total_seconds())
        location = await workflow.execute_activity(
            "get_location_info",
            ip,
            start_to_close_timeout=timedelta(minutes=1),
            result_type=str,
        )
        return LookupResult(location=location)


def make_worker(env, task_queue, provider, workflows):
    return Worker(
        env.client,
        task_queue=task_queue,
        workflows=workflows,
        activities=provider.activities(),
        workflow_runner=UnsandboxedWorkflowRunner(),
    )


# ==================== Versioned workflow ====================

@pytest.mark.asyncio
async def test_new_instance_fetches_timezone(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            IPGeolocationWorkflow.run,
            "",
            id=f"geo-new-{task_queue}",
            task_queue=task_queue,
        )
        result = await handle.result()
        status = await handle.query(IPGeolocationWorkflow.status)

    assert result == LookupResult(location=LOCATION, timezone="UTC")
    assert provider.calls == [
        ("get_ip",),
        ("get_location_info", PUBLIC_IP),
        ("get_timezone", PUBLIC_IP),
    ]
    assert status["stage"] == "completed"
    assert status["version"] == 1
    assert status["ip"] == PUBLIC_IP


@pytest.mark.asyncio
async def test_timezone_called_exactly_once(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        result = await workflow_env.client.execute_workflow(
            IPGeolocationWorkflow.run,
            "",
            id=f"geo-once-{task_queue}",
            task_queue=task_queue,
        )

    assert result.timezone == "UTC"
    assert provider.names().count("get_timezone") == 1


@pytest.mark.asyncio
async def test_supplied_target_skips_get_ip(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        await workflow_env.client.execute_workflow(
            IPGeolocationWorkflow.run,
            "8.8.8.8",
            id=f"geo-target-{task_queue}",
            task_queue=task_queue,
        )

    assert provider.calls == [
        ("get_location_info", "8.8.8.8"),
        ("get_timezone", "8.8.8.8"),
    ]


@pytest.mark.asyncio
async def test_pre_feature_instance_skips_timezone(workflow_env, task_queue, monkeypatch):
    """An instance that reads no marker runs the old branch"""
    monkeypatch.setattr(workflow, "patched", lambda patch_id: False)
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            IPGeolocationWorkflow.run,
            "",
            id=f"geo-old-{task_queue}",
            task_queue=task_queue,
        )
        result = await handle.result()
        status = await handle.query(IPGeolocationWorkflow.status)

    assert result == LookupResult(location=LOCATION, timezone="")
    assert "get_timezone" not in provider.names()
    assert status["version"] == DEFAULT_VERSION


@pytest.mark.asyncio
async def test_pre_feature_history_replays_on_current_code(workflow_env, task_queue):
    """History written before the marker existed replays without nondeterminism"""
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [LocationOnlyGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            LocationOnlyGeolocationWorkflow.run,
            "",
            id=f"geo-replay-{task_queue}",
            task_queue=task_queue,
        )
        assert await handle.result() == LookupResult(location=LOCATION)

    history = await handle.fetch_history()

    replayer = Replayer(
        workflows=[IPGeolocationWorkflow],
        workflow_runner=UnsandboxedWorkflowRunner(),
    )
    await replayer.replay_workflow(history)


@pytest.mark.asyncio
async def test_location_failure_fails_workflow(workflow_env, task_queue):
    provider = MockProvider(location_error="API error: private range")

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            IPGeolocationWorkflow.run,
            "10.0.0.1",
            id=f"geo-fail-{task_queue}",
            task_queue=task_queue,
        )
        with pytest.raises(WorkflowFailureError) as exc_info:
            await handle.result()
        status = await handle.query(IPGeolocationWorkflow.status)

    assert isinstance(exc_info.value.cause, ActivityError)
    assert status["stage"] == "failed"
    assert "get_timezone" not in provider.names()


# ==================== Frozen variants ====================

@pytest.mark.asyncio
async def test_v1_variant_is_location_only(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationV1Workflow]):
        result = await workflow_env.client.execute_workflow(
            IPGeolocationV1Workflow.run,
            "",
            id=f"geo-v1-{task_queue}",
            task_queue=task_queue,
        )

    assert result == LookupResult(location=LOCATION)
    assert provider.names() == ["get_ip", "get_location_info"]


@pytest.mark.asyncio
async def test_v2_variant_fetches_timezone(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationV2Workflow]):
        result = await workflow_env.client.execute_workflow(
            IPGeolocationV2Workflow.run,
            "",
            id=f"geo-v2-{task_queue}",
            task_queue=task_queue,
        )

    assert result == LookupResult(location=LOCATION, timezone="UTC")
    assert provider.names() == ["get_ip", "get_location_info", "get_timezone"]


@pytest.mark.asyncio
async def test_timezone_lookup_workflow(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [TimezoneLookupWorkflow]):
        result = await workflow_env.client.execute_workflow(
            TimezoneLookupWorkflow.run,
            "8.8.8.8",
            id=f"geo-tz-{task_queue}",
            task_queue=task_queue,
        )

    assert result == LookupResult(location="", timezone="UTC")
    assert provider.calls == [("get_timezone", "8.8.8.8")]


def test_variant_registry():
    assert set(GEOLOCATION_VARIANTS) == {"versioned", "v1", "v2", "recorded"}
    assert GEOLOCATION_VARIANTS["versioned"] is IPGeolocationWorkflow


# ==================== Record / compensate ====================

@pytest.mark.asyncio
async def test_recorded_variant_success(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [RecordedIPGeolocationWorkflow]):
        result = await workflow_env.client.execute_workflow(
            RecordedIPGeolocationWorkflow.run,
            "8.8.8.8",
            id=f"geo-rec-{task_queue}",
            task_queue=task_queue,
        )

    assert result == LookupResult(location=LOCATION, timezone="UTC")
    assert provider.names() == ["record_lookup", "get_location_info", "get_timezone"]


@pytest.mark.asyncio
async def test_recorded_variant_compensates_on_failure(workflow_env, task_queue):
    provider = MockProvider(location_error="API error: invalid query")

    async with make_worker(workflow_env, task_queue, provider, [RecordedIPGeolocationWorkflow]):
        with pytest.raises(WorkflowFailureError) as exc_info:
            await workflow_env.client.execute_workflow(
                RecordedIPGeolocationWorkflow.run,
                "8.8.8.8",
                id=f"geo-comp-{task_queue}",
                task_queue=task_queue,
            )

    # The original failure propagates after compensation
    assert isinstance(exc_info.value.cause, ActivityError)
    assert provider.calls == [
        ("record_lookup", "8.8.8.8"),
        ("get_location_info", "8.8.8.8"),
        ("compensate_lookup", "record-8.8.8.8"),
    ]


# ==================== Cancellation ====================

@pytest.mark.asyncio
async def test_cancel_during_settle_delay_runs_no_more_activities(workflow_env, task_queue):
    provider = MockProvider()

    async with make_worker(workflow_env, task_queue, provider, [IPGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            IPGeolocationWorkflow.run,
            "8.8.8.8",
            id=f"geo-cancel-{task_queue}",
            task_queue=task_queue,
        )
        # The first workflow task has run once the query answers "running"
        status = await handle.query(IPGeolocationWorkflow.status)
        assert status["stage"] == "running"

        await handle.cancel()
        with pytest.raises(WorkflowFailureError) as exc_info:
            await handle.result()

    assert isinstance(exc_info.value.cause, CancelledError)
    assert provider.calls == []


@pytest.mark.asyncio
async def test_recorded_variant_compensates_on_cancel(workflow_env, task_queue):
    provider = MockProvider(block_location=True)

    async with make_worker(workflow_env, task_queue, provider, [RecordedIPGeolocationWorkflow]):
        handle = await workflow_env.client.start_workflow(
            RecordedIPGeolocationWorkflow.run,
            "8.8.8.8",
            id=f"geo-rec-cancel-{task_queue}",
            task_queue=task_queue,
        )
        await asyncio.wait_for(provider.location_started.wait(), timeout=30)

        await handle.cancel()
        try:
            with pytest.raises(WorkflowFailureError) as exc_info:
                await handle.result()
        finally:
            # The abandoned attempt finishes; its result is discarded
            provider.release.set()

    assert isinstance(exc_info.value.cause, CancelledError)
    assert ("compensate_lookup", "record-8.8.8.8") in provider.calls
    assert "get_timezone" not in provider.names()
