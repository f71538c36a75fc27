# iplocate/workflows/types.py
# Data types shared by workflows, activities and the client
#
# Kept in a module of its own so workflow definitions can import it without
# dragging in anything non-deterministic.
#
# NOTE: do not import settings, logging setup, httpx, redis or anything doing
# I/O here. Everything must serialise through Temporal's default JSON data
# converter, which is why timestamps are ISO-8601 strings.
#
# Schema evolution rule for result types: new fields are added with a default
# (optional), and a field is never removed or made required later. Temporal's
# converter fills missing fields from their defaults and ignores unknown keys,
# so old and new workers can read each other's payloads.

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


# ==================== Geolocation result ====================

@dataclass
class LookupResult:
    """
    Result of every geolocation workflow variant

    Attributes:
        location: "City: X, Region: Y, Country: Z" (required since day one)
        timezone: IANA timezone, e.g. "Europe/Berlin"; empty when the
                  instance predates the timezone feature
    """
    location: str
    timezone: str = ""


# ==================== Monitor ====================

class MonitorState(str, Enum):
    """Monitor lifecycle as reported by the status query"""
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class MonitorConfig:
    """
    Monitor workflow input

    Attributes:
        initial_ip: address checked first
        check_interval_seconds: pause between two checks
        max_checks: stop after this many checks; 0 means unlimited
    """
    initial_ip: str
    check_interval_seconds: float = 5.0
    max_checks: int = 0


@dataclass
class HistoryEntry:
    """One monitor check; exactly one of location / error is set"""
    timestamp: str
    ip: str
    location: str = ""
    error: str = ""


@dataclass
class MonitorCommand:
    """
    A signal queued by a signal handler, applied later by the main loop

    Attributes:
        name: signal name (pause, resume, change-target, change-interval, stop)
        value: payload for change-target (str) and change-interval (float)
    """
    name: str
    value: Optional[Union[str, float]] = None


@dataclass
class MonitorStatus:
    """
    Snapshot returned by the status query and as the workflow result

    state holds a MonitorState value; plain str keeps the payload readable
    by any client
    """
    state: str
    current_ip: str
    check_interval_seconds: float
    total_checks: int = 0
    last_check_time: str = ""
    last_result: str = ""
    history: List[HistoryEntry] = field(default_factory=list)
    applied_signals: List[str] = field(default_factory=list)


# ==================== Lookup record ====================

@dataclass
class LookupRecord:
    """
    Durable bookkeeping written by record_lookup, removed by compensate_lookup

    Attributes:
        record_id: correlation token handed back to the workflow
        ip: recorded address
        workflow_id: instance that owns the record
        recorded_at: ISO-8601 time of the first write
    """
    record_id: str
    ip: str
    workflow_id: str
    recorded_at: str
