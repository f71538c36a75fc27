# iplocate/workflows/definitions/observable.py
# A slow lookup that exposes its progress, and a workflow that observes it
#
# IPLookupWorkflow answers the "status" and "result" queries while it runs.
# StatusCheckerWorkflow asks another workflow for both and summarises them.

import asyncio
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from iplocate.workflows.activities.geolocation import get_location_info
    from iplocate.workflows.activities.observer import query_workflow

from iplocate.workflows.definitions.geolocation import ACTIVITY_OPTIONS

# Plenty of time to query the lookup before and after it resolves
LOOKUP_DELAY = timedelta(seconds=10)
LINGER_DELAY = timedelta(seconds=20)

QUERY_OPTIONS = dict(
    start_to_close_timeout=timedelta(seconds=10),
    retry_policy=RetryPolicy(maximum_attempts=3),
)


@workflow.defn
class IPLookupWorkflow:
    """
    Observable IP lookup

    Queries:
    - status(): starting / fetching location / complete / failed
    - result(): location once known, "" before
    """

    def __init__(self):
        self._status = "starting"
        self._result = ""

    @workflow.run
    async def run(self, ip: str) -> str:
        workflow.logger.info(f"Starting IP lookup: ip={ip}")
        self._status = "fetching location"
        await asyncio.sleep(LOOKUP_DELAY.total_seconds())

        try:
            location = await workflow.execute_activity(
                get_location_info,
                ip,
                **ACTIVITY_OPTIONS,
            )
        except ActivityError:
            self._status = "failed"
            raise

        self._status = "complete"
        self._result = location
        workflow.logger.info(f"Lookup complete: {location}")

        # Stay alive a bit so the result can be queried
        await asyncio.sleep(LINGER_DELAY.total_seconds())
        return location

    @workflow.query(name="status")
    def status(self) -> str:
        return self._status

    @workflow.query(name="result")
    def result(self) -> str:
        return self._result


@workflow.defn
class StatusCheckerWorkflow:
    """Query another workflow's status and result, return a one-line summary"""

    @workflow.run
    async def run(self, target_workflow_id: str) -> str:
        workflow.logger.info(f"Querying target workflow: {target_workflow_id}")

        status = await workflow.execute_activity(
            query_workflow,
            args=[target_workflow_id, "status"],
            **QUERY_OPTIONS,
        )
        workflow.logger.info(f"Received status from target: {status}")

        # The result may legitimately be missing; the summary still stands
        result = ""
        try:
            result = await workflow.execute_activity(
                query_workflow,
                args=[target_workflow_id, "result"],
                **QUERY_OPTIONS,
            )
        except ActivityError as e:
            workflow.logger.warning(f"Result query failed for {target_workflow_id}: {e}")

        summary = f"Workflow {target_workflow_id} is '{status}'"
        if result:
            summary += f" - Result: {result}"
        return summary
