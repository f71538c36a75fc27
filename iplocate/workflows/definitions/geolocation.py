# iplocate/workflows/definitions/geolocation.py
# IP geolocation workflows
#
# One result schema (LookupResult), a small closed set of variants picked
# explicitly by the caller:
#
#   versioned  IPGeolocationWorkflow          identity -> pause -> version marker
#                                              -> location -> [timezone]
#   v1         IPGeolocationV1Workflow        identity -> location
#   v2         IPGeolocationV2Workflow        identity -> location -> timezone
#   recorded   RecordedIPGeolocationWorkflow  identity -> record -> location
#                                              -> timezone, compensates on failure
#
# plus TimezoneLookupWorkflow (timezone only).
#
# Variants v1 / v2 are frozen: a new behaviour means a new workflow type, so
# neither ever needs a marker. IPGeolocationWorkflow evolves in place through
# get_version() instead.
#
# Determinism: no settings, no wall clock, no randomness in this module.
# Inputs are immutable; everything else comes from activity results.

import asyncio
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError
from temporalio.workflow import ActivityCancellationType

with workflow.unsafe.imports_passed_through():
    from iplocate.workflows.activities.geolocation import (
        get_ip,
        get_location_info,
        get_timezone,
    )
    from iplocate.workflows.activities.lookup_record import (
        record_lookup,
        compensate_lookup,
    )

from iplocate.workflows.types import LookupResult
from iplocate.workflows.versioning import DEFAULT_VERSION, get_version


# ==================== Versioning constants ====================
# The change id is permanent. When the timezone branch is eventually the only
# one left, raise TIMEZONE_MIN_VERSION to 1 but keep the get_version() call.

TIMEZONE_CHANGE_ID = "add-timezone-feature"
TIMEZONE_MIN_VERSION = DEFAULT_VERSION
TIMEZONE_MAX_VERSION = 1
# First version that fetches the timezone
TIMEZONE_INTRODUCED_IN = 1

# Durable pause between identity and location. Long enough to deploy new
# worker code while an instance is in flight.
SETTLE_DELAY = timedelta(seconds=45)


# ==================== Activity options ====================

LOOKUP_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    maximum_interval=timedelta(minutes=1),
    backoff_coefficient=2.0,
)

# ABANDON: a cancelled instance stops waiting at once and discards whatever
# the in-flight activity returns later
ACTIVITY_OPTIONS = dict(
    start_to_close_timeout=timedelta(minutes=1),
    retry_policy=LOOKUP_RETRY_POLICY,
    cancellation_type=ActivityCancellationType.ABANDON,
)

COMPENSATION_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    maximum_interval=timedelta(seconds=30),
    backoff_coefficient=2.0,
    maximum_attempts=5,
)


async def resolve_identity(target: str) -> str:
    """Address to look up: the input, or the worker's public address"""
    if target:
        workflow.logger.info(f"Using supplied address: {target}")
        return target

    ip = await workflow.execute_activity(get_ip, **ACTIVITY_OPTIONS)
    workflow.logger.info(f"IP fetched: {ip}")
    return ip


# ==================== Versioned workflow ====================

@workflow.defn
class IPGeolocationWorkflow:
    """
    Geolocation with an in-place, versioned evolution

    Steps:
    1. resolve the address (input, or get_ip when empty)
    2. durable pause (SETTLE_DELAY)
    3. read the "add-timezone-feature" version marker
    4. get_location_info
    5. get_timezone, only for version >= 1
    6. return LookupResult

    Instances that passed step 3 before the timezone feature existed replay
    with DEFAULT_VERSION and finish with an empty timezone.

    Queries:
    - status(): stage, address, version, result
    """

    def __init__(self):
        self._stage = "not_started"
        self._ip = ""
        self._version: Optional[int] = None
        self._result: Optional[LookupResult] = None

    @workflow.run
    async def run(self, target: str = "") -> LookupResult:
        """
        Args:
            target: address to locate; empty means "my public address"

        Returns:
            LookupResult: location, plus timezone for version >= 1
        """
        workflow.logger.info("Starting workflow with versioning support")
        self._stage = "running"

        try:
            self._ip = await resolve_identity(target)

            workflow.logger.info(f"Sleeping for {SETTLE_DELAY.total_seconds():.0f} seconds...")
            await asyncio.sleep(SETTLE_DELAY.total_seconds())
            workflow.logger.info("Awake!")

            # Read once, unconditionally, right where the behaviour diverges
            self._version = get_version(
                TIMEZONE_CHANGE_ID,
                TIMEZONE_MIN_VERSION,
                TIMEZONE_MAX_VERSION,
            )
            workflow.logger.info(f"Version for '{TIMEZONE_CHANGE_ID}': {self._version}")

            location = await workflow.execute_activity(
                get_location_info,
                self._ip,
                **ACTIVITY_OPTIONS,
            )

            timezone = ""
            if self._version >= TIMEZONE_INTRODUCED_IN:
                workflow.logger.info("Fetching timezone")
                timezone = await workflow.execute_activity(
                    get_timezone,
                    self._ip,
                    **ACTIVITY_OPTIONS,
                )
            else:
                workflow.logger.info("DefaultVersion: skipping timezone (old workflow)")

        except ActivityError as e:
            workflow.logger.error(f"Geolocation failed: ip={self._ip}, error={e}")
            self._stage = "failed"
            raise

        self._result = LookupResult(location=location, timezone=timezone)
        self._stage = "completed"
        workflow.logger.info(f"Workflow completed, has_timezone={bool(timezone)}")
        return self._result

    @workflow.query(name="status")
    def status(self) -> dict:
        """Current stage, address and version; never blocks"""
        return {
            "stage": self._stage,
            "ip": self._ip,
            "version": self._version,
            "result": self._result,
        }


# ==================== Frozen variants ====================

@workflow.defn
class IPGeolocationV1Workflow:
    """Location only, as first released; frozen"""

    @workflow.run
    async def run(self, target: str = "") -> LookupResult:
        ip = await resolve_identity(target)

        location = await workflow.execute_activity(
            get_location_info,
            ip,
            **ACTIVITY_OPTIONS,
        )
        return LookupResult(location=location)


@workflow.defn
class IPGeolocationV2Workflow:
    """Location and timezone, frozen; a separate type instead of a marker"""

    @workflow.run
    async def run(self, target: str = "") -> LookupResult:
        ip = await resolve_identity(target)

        location = await workflow.execute_activity(
            get_location_info,
            ip,
            **ACTIVITY_OPTIONS,
        )
        timezone = await workflow.execute_activity(
            get_timezone,
            ip,
            **ACTIVITY_OPTIONS,
        )
        return LookupResult(location=location, timezone=timezone)


@workflow.defn
class RecordedIPGeolocationWorkflow:
    """
    Location and timezone with a compensable record

    record_lookup runs right after the address is known. If any later step
    fails, or the instance is cancelled, compensate_lookup removes the record
    before the failure propagates. Compensation is best effort: its own
    failure is logged and does not replace the lookup error.
    """

    @workflow.run
    async def run(self, target: str = "") -> LookupResult:
        ip = await resolve_identity(target)

        record_id = await workflow.execute_activity(
            record_lookup,
            ip,
            **ACTIVITY_OPTIONS,
        )
        workflow.logger.info(f"Lookup recorded: {record_id}")

        try:
            location = await workflow.execute_activity(
                get_location_info,
                ip,
                **ACTIVITY_OPTIONS,
            )
            timezone = await workflow.execute_activity(
                get_timezone,
                ip,
                **ACTIVITY_OPTIONS,
            )
        except (ActivityError, asyncio.CancelledError) as e:
            workflow.logger.warning(f"Lookup failed, compensating {record_id}: {e!r}")
            await self._compensate(record_id)
            raise

        return LookupResult(location=location, timezone=timezone)

    async def _compensate(self, record_id: str) -> None:
        try:
            await workflow.execute_activity(
                compensate_lookup,
                record_id,
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=COMPENSATION_RETRY_POLICY,
            )
            workflow.logger.info(f"Compensated lookup record: {record_id}")
        except ActivityError as e:
            workflow.logger.warning(f"Compensation failed for {record_id}: {e}")


@workflow.defn
class TimezoneLookupWorkflow:
    """Timezone of a given address; location stays empty"""

    @workflow.run
    async def run(self, ip: str) -> LookupResult:
        workflow.logger.info(f"Fetching timezone for IP: {ip}")

        timezone = await workflow.execute_activity(
            get_timezone,
            ip,
            **ACTIVITY_OPTIONS,
        )
        return LookupResult(location="", timezone=timezone)


# ==================== Variant registry ====================
# Callers choose a variant by name; worker registers all of them so
# instances of every variant keep running across deployments.

GEOLOCATION_VARIANTS = {
    "versioned": IPGeolocationWorkflow,
    "v1": IPGeolocationV1Workflow,
    "v2": IPGeolocationV2Workflow,
    "recorded": RecordedIPGeolocationWorkflow,
}
