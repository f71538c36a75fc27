# iplocate/workflows/definitions/monitor.py
# IP monitor workflow, controlled with signals and inspected with queries
#
# Periodically looks up the location of an address. While it runs it can be:
#
# Signals:
#   - pause / resume
#   - change-target(ip): monitor another address
#   - change-interval(seconds): new pause between checks
#   - stop: finish after applying the signals already received
#
# Queries (read-only, answered from memory, never call activities):
#   - status() -> MonitorStatus
#   - history() -> list[HistoryEntry]
#   - stats() -> dict
#
# Signal handlers only queue a MonitorCommand. The main loop waits on one
# wait_condition (command queued, or the next check is due) and applies
# queued commands strictly in arrival order. The next check has a fixed
# deadline: only a check, resume or change-interval moves it, so a stream of
# other signals cannot postpone checks.

import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError
from temporalio.workflow import ActivityCancellationType

with workflow.unsafe.imports_passed_through():
    from iplocate.workflows.activities.geolocation import get_location_info

from iplocate.workflows.types import (
    HistoryEntry,
    MonitorCommand,
    MonitorConfig,
    MonitorState,
    MonitorStatus,
)

# Signal names
SIGNAL_PAUSE = "pause"
SIGNAL_RESUME = "resume"
SIGNAL_CHANGE_TARGET = "change-target"
SIGNAL_CHANGE_INTERVAL = "change-interval"
SIGNAL_STOP = "stop"

# Only the most recent checks / signals are kept in workflow state
MAX_HISTORY = 50

CHECK_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    maximum_interval=timedelta(seconds=10),
    backoff_coefficient=2.0,
    maximum_attempts=3,
)


def _failure_message(error: ActivityError) -> str:
    """Message of the root cause of an activity failure"""
    cause = error.cause
    while cause is not None and getattr(cause, "cause", None) is not None:
        cause = cause.cause
    return str(cause or error)


def _format_interval(seconds: float) -> str:
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{seconds}s"


@workflow.defn
class IPMonitorWorkflow:
    """
    Long-running IP monitor

    Stops on the stop signal or after config.max_checks checks (when > 0),
    returning the final status snapshot.
    """

    def __init__(self):
        self._current_ip = ""
        self._interval = 0.0
        self._paused = False
        self._stop_requested = False
        self._finished = False
        self._commands: List[MonitorCommand] = []
        self._applied_signals: List[str] = []
        self._history: List[HistoryEntry] = []
        self._total_checks = 0
        self._last_check_time = ""
        self._last_result = ""
        self._next_check_at: Optional[datetime] = None

    # ==================== Main loop ====================

    @workflow.run
    async def run(self, config: MonitorConfig) -> MonitorStatus:
        self._current_ip = config.initial_ip
        self._interval = float(config.check_interval_seconds)
        self._schedule_next_check()

        workflow.logger.info(
            f"IP Monitor started: ip={self._current_ip}, "
            f"interval={_format_interval(self._interval)}, max_checks={config.max_checks}"
        )

        while True:
            if self._stop_requested:
                workflow.logger.info(f"Monitor stopped by signal, total_checks={self._total_checks}")
                break

            if config.max_checks > 0 and self._total_checks >= config.max_checks:
                workflow.logger.info(f"Max checks reached, stopping, total_checks={self._total_checks}")
                break

            # Paused: nothing to time, wait for the next command only
            timeout: Optional[timedelta] = None
            if not self._paused:
                timeout = self._next_check_at - workflow.now()
                if timeout <= timedelta(0):
                    await self._check()
                    continue

            try:
                await workflow.wait_condition(lambda: bool(self._commands), timeout=timeout)
            except asyncio.TimeoutError:
                await self._check()
                continue

            self._apply_commands()

        self._finished = True
        return self._snapshot()

    async def _check(self) -> None:
        ip = self._current_ip
        check_time = workflow.now().isoformat()
        workflow.logger.info(f"Performing IP check: ip={ip}, check_number={self._total_checks + 1}")

        entry = HistoryEntry(timestamp=check_time, ip=ip)
        try:
            location = await workflow.execute_activity(
                get_location_info,
                ip,
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=CHECK_RETRY_POLICY,
                cancellation_type=ActivityCancellationType.ABANDON,
            )
            workflow.logger.info(f"Location retrieved: {location}")
            entry.location = location
            self._last_result = location
        except ActivityError as e:
            message = _failure_message(e)
            workflow.logger.error(f"Failed to get location: {message}")
            entry.error = message
            self._last_result = f"ERROR: {message}"

        self._history.append(entry)
        self._history = self._history[-MAX_HISTORY:]
        self._total_checks += 1
        self._last_check_time = check_time
        self._schedule_next_check()

    def _schedule_next_check(self) -> None:
        self._next_check_at = workflow.now() + timedelta(seconds=self._interval)

    def _apply_commands(self) -> None:
        while self._commands:
            command = self._commands.pop(0)

            if command.name == SIGNAL_PAUSE:
                self._paused = True
                workflow.logger.info("Monitor paused")
            elif command.name == SIGNAL_RESUME:
                if self._paused:
                    self._schedule_next_check()
                self._paused = False
                workflow.logger.info("Monitor resumed")
            elif command.name == SIGNAL_CHANGE_TARGET:
                workflow.logger.info(
                    f"Changing monitored IP: old_ip={self._current_ip}, new_ip={command.value}"
                )
                self._current_ip = str(command.value)
            elif command.name == SIGNAL_CHANGE_INTERVAL:
                seconds = float(command.value or 0)
                if seconds <= 0:
                    workflow.logger.warning(f"Ignoring non-positive check interval: {command.value}")
                    continue
                workflow.logger.info(
                    f"Changing check interval: old={_format_interval(self._interval)}, "
                    f"new={_format_interval(seconds)}"
                )
                self._interval = seconds
                self._schedule_next_check()
            elif command.name == SIGNAL_STOP:
                workflow.logger.info("Stop signal received")
                self._stop_requested = True

            self._applied_signals.append(command.name)
            self._applied_signals = self._applied_signals[-MAX_HISTORY:]

    # ==================== Signals ====================

    @workflow.signal(name=SIGNAL_PAUSE)
    def pause(self) -> None:
        self._commands.append(MonitorCommand(name=SIGNAL_PAUSE))

    @workflow.signal(name=SIGNAL_RESUME)
    def resume(self) -> None:
        self._commands.append(MonitorCommand(name=SIGNAL_RESUME))

    @workflow.signal(name=SIGNAL_CHANGE_TARGET)
    def change_target(self, ip: str) -> None:
        self._commands.append(MonitorCommand(name=SIGNAL_CHANGE_TARGET, value=ip))

    @workflow.signal(name=SIGNAL_CHANGE_INTERVAL)
    def change_interval(self, seconds: float) -> None:
        self._commands.append(MonitorCommand(name=SIGNAL_CHANGE_INTERVAL, value=seconds))

    @workflow.signal(name=SIGNAL_STOP)
    def stop(self) -> None:
        self._commands.append(MonitorCommand(name=SIGNAL_STOP))

    # ==================== Queries ====================

    def _state(self) -> str:
        if self._stop_requested or self._finished:
            return MonitorState.STOPPED.value
        if self._paused:
            return MonitorState.PAUSED.value
        return MonitorState.RUNNING.value

    def _snapshot(self) -> MonitorStatus:
        return MonitorStatus(
            state=self._state(),
            current_ip=self._current_ip,
            check_interval_seconds=self._interval,
            total_checks=self._total_checks,
            last_check_time=self._last_check_time,
            last_result=self._last_result,
            history=list(self._history),
            applied_signals=list(self._applied_signals),
        )

    @workflow.query(name="status")
    def status(self) -> MonitorStatus:
        return self._snapshot()

    @workflow.query(name="history")
    def history(self) -> List[HistoryEntry]:
        return list(self._history)

    @workflow.query(name="stats")
    def stats(self) -> dict:
        return {
            "total_checks": self._total_checks,
            "current_ip": self._current_ip,
            "is_paused": self._paused,
            "check_interval": _format_interval(self._interval),
            "last_check_time": self._last_check_time,
        }
