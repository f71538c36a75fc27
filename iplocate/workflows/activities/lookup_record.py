# iplocate/workflows/activities/lookup_record.py
# Record / compensate activities
#
# record_lookup writes a durable LookupRecord and hands the workflow a
# correlation token; compensate_lookup removes it again when a later step of
# the same instance fails. The record lives in Redis, not in worker memory:
# the worker that compensates is usually not the one that recorded.
#
# Idempotency:
# - the token is derived from the workflow run and the address, so a retried
#   record_lookup returns the token of the first attempt (SET NX)
# - compensating a missing record is a no-op

import json
from dataclasses import asdict
from datetime import datetime, timezone

from temporalio import activity

from iplocate.core.config import settings
from iplocate.core.redis import redis_client
from iplocate.workflows.errors import CapabilityFailure
from iplocate.workflows.types import LookupRecord

# Redis key prefix
LOOKUP_RECORD_KEY_PREFIX = "lookup-record:"


def record_key(record_id: str) -> str:
    """Redis key of a lookup record"""
    return f"{LOOKUP_RECORD_KEY_PREFIX}{record_id}"


@activity.defn(name="record_lookup")
async def record_lookup(ip: str) -> str:
    """
    Record that this instance looked up an address

    Args:
        ip: the address

    Returns:
        str: correlation token for compensate_lookup
    """
    info = activity.info()
    record_id = f"{info.workflow_run_id}-{ip}"

    record = LookupRecord(
        record_id=record_id,
        ip=ip,
        workflow_id=info.workflow_id,
        recorded_at=datetime.now(timezone.utc).isoformat(),
    )

    try:
        await redis_client.ensure_connected()
        created = await redis_client.set(
            record_key(record_id),
            json.dumps(asdict(record)),
            ex=settings.LOOKUP_RECORD_TTL_SECONDS,
            nx=True,
        )
    except Exception as e:
        raise CapabilityFailure(f"failed to write lookup record: {e}") from e

    if created:
        activity.logger.info(f"Recorded lookup: {record_id} -> {ip}")
    else:
        activity.logger.info(f"Lookup already recorded: {record_id}")

    return record_id


@activity.defn(name="compensate_lookup")
async def compensate_lookup(record_id: str) -> bool:
    """
    Undo record_lookup

    Args:
        record_id: token returned by record_lookup

    Returns:
        bool: True if a record was removed
    """
    try:
        await redis_client.ensure_connected()
        removed = await redis_client.delete(record_key(record_id))
    except Exception as e:
        raise CapabilityFailure(f"failed to remove lookup record: {e}") from e

    if removed:
        activity.logger.info(f"Compensated lookup, removed record: {record_id}")
    else:
        activity.logger.info(f"No lookup record to compensate: {record_id}")

    return bool(removed)
