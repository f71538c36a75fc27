#!/usr/bin/env python3
# iplocate/cli.py
# Command line driver
#
# What it does:
# 1. Runs the worker
# 2. Starts the geolocation variants and prints their result
# 3. Drives the monitor workflow with signals and queries
# 4. Runs the observable lookup and the status checker
#
# Usage:
#   iplocate worker
#   iplocate lookup                         # versioned variant, own address
#   iplocate lookup --variant v2 --target 8.8.8.8 --id-strategy entity
#   iplocate timezone 8.8.8.8
#   iplocate observe 8.8.8.8 && iplocate check-status
#   iplocate monitor start 8.8.8.8 --interval 5
#   iplocate monitor signal <workflow-id> change-target 1.1.1.1
#   iplocate monitor query <workflow-id> stats
#   iplocate monitor demo
#   iplocate cancel <workflow-id>
#
# Exit status is 1 whenever the command fails.

import argparse
import asyncio
import json
import sys
from typing import List

from temporalio.client import WorkflowFailureError
from temporalio.exceptions import WorkflowAlreadyStartedError

from iplocate.core.config import settings
from iplocate.core.logging import setup_logging
from iplocate.workflows.client import (
    OBSERVABLE_LOOKUP_ID,
    cancel_workflow,
    query_workflow_state,
    run_status_check,
    signal_workflow,
    start_geolocation,
    start_monitor,
    start_observable_lookup,
    start_timezone_lookup,
)
from iplocate.workflows.definitions.geolocation import GEOLOCATION_VARIANTS
from iplocate.workflows.definitions.monitor import (
    SIGNAL_CHANGE_INTERVAL,
    SIGNAL_CHANGE_TARGET,
    SIGNAL_PAUSE,
    SIGNAL_RESUME,
    SIGNAL_STOP,
)
from iplocate.workflows.types import HistoryEntry, MonitorConfig, MonitorStatus

MONITOR_SIGNALS = [
    SIGNAL_PAUSE,
    SIGNAL_RESUME,
    SIGNAL_CHANGE_TARGET,
    SIGNAL_CHANGE_INTERVAL,
    SIGNAL_STOP,
]
MONITOR_QUERIES = ["status", "history", "stats"]


def print_banner(title: str) -> None:
    print("=" * 60)
    print(f"   {title}")
    print("=" * 60)


def print_started(handle) -> None:
    print("✅ Workflow started")
    print(f"   Workflow ID: {handle.id}")
    print(f"   Run ID: {handle.result_run_id}")
    print(f"   View in UI: {settings.TEMPORAL_UI_URL}")
    print("")


def print_status(status: MonitorStatus) -> None:
    print(f"   State: {status.state}")
    print(f"   Current IP: {status.current_ip}")
    print(f"   Check Interval: {status.check_interval_seconds}s")
    print(f"   Total Checks: {status.total_checks}")
    if status.last_check_time:
        print(f"   Last Check: {status.last_check_time}")
        print(f"   Last Result: {status.last_result}")


def print_history(history: List[HistoryEntry], last: int = 3) -> None:
    print(f"   Total entries: {len(history)}")
    if not history:
        return

    print("   Recent checks:")
    for entry in history[-last:]:
        mark, result = ("✓", entry.location) if not entry.error else ("✗", entry.error)
        print(f"     {mark} [{entry.timestamp}] IP: {entry.ip} -> {result}")


# ==================== Commands ====================

async def cmd_lookup(args: argparse.Namespace) -> bool:
    print_banner(f"IP geolocation ({args.variant})")

    try:
        handle = await start_geolocation(args.variant, args.target, args.id_strategy)
    except WorkflowAlreadyStartedError as e:
        print(f"⚠️  Workflow already running: {e.workflow_id}")
        print("   Same id while open is rejected; wait for it or use --id-strategy unique")
        return False

    print_started(handle)
    if not args.wait:
        return True

    print("⏳ Waiting for result...")
    result = await handle.result()
    print(f"   Location: {result.location}")
    print(f"   Timezone: {result.timezone or '(not fetched)'}")
    return True


async def cmd_timezone(args: argparse.Namespace) -> bool:
    print_banner(f"Timezone lookup for {args.ip}")

    handle = await start_timezone_lookup(args.ip)
    print_started(handle)

    result = await handle.result()
    print(f"   Timezone: {result.timezone}")
    return True


async def cmd_observe(args: argparse.Namespace) -> bool:
    print_banner(f"Observable lookup for {args.ip}")

    try:
        handle = await start_observable_lookup(args.ip, args.workflow_id)
    except WorkflowAlreadyStartedError as e:
        print(f"⚠️  Workflow already running: {e.workflow_id}")
        return False

    print_started(handle)
    print("Check on it while it runs:")
    print(f"   iplocate check-status --target {handle.id}")
    return True


async def cmd_check_status(args: argparse.Namespace) -> bool:
    print_banner(f"Status of {args.target}")

    summary = await run_status_check(args.target)
    print(f"   {summary}")
    return True


async def cmd_monitor_start(args: argparse.Namespace) -> bool:
    config = MonitorConfig(
        initial_ip=args.ip,
        check_interval_seconds=args.interval,
        max_checks=args.max_checks,
    )
    print_banner(f"IP monitor for {config.initial_ip}")

    handle = await start_monitor(config, args.workflow_id)
    print_started(handle)
    return True


async def cmd_monitor_signal(args: argparse.Namespace) -> bool:
    signal_args: tuple = ()
    if args.signal == SIGNAL_CHANGE_TARGET:
        if not args.value:
            print("❌ change-target needs an address")
            return False
        signal_args = (args.value,)
    elif args.signal == SIGNAL_CHANGE_INTERVAL:
        try:
            signal_args = (float(args.value),)
        except (TypeError, ValueError):
            print("❌ change-interval needs a number of seconds")
            return False

    await signal_workflow(args.workflow_id, args.signal, signal_args)
    print(f"✅ Signal '{args.signal}' sent to {args.workflow_id}")
    return True


async def run_monitor_query(workflow_id: str, query: str) -> None:
    if query == "status":
        print_status(await query_workflow_state(workflow_id, "status", MonitorStatus))
    elif query == "history":
        print_history(await query_workflow_state(workflow_id, "history", List[HistoryEntry]))
    else:
        stats = await query_workflow_state(workflow_id, "stats", dict)
        print("   " + json.dumps(stats, indent=2).replace("\n", "\n   "))


async def cmd_monitor_query(args: argparse.Namespace) -> bool:
    print(f"📊 QUERY '{args.query}' on {args.workflow_id}")
    await run_monitor_query(args.workflow_id, args.query)
    return True


async def cmd_monitor_demo(args: argparse.Namespace) -> bool:
    """Scripted walk through every monitor signal and query"""
    config = MonitorConfig(initial_ip=args.ip, check_interval_seconds=5.0)
    print_banner("Signals & Queries demo - IP monitor")

    handle = await start_monitor(config)
    print_started(handle)
    workflow_id = handle.id

    async def step(title: str, seconds: float = 0) -> None:
        print(f"\n{title}")
        if seconds:
            await asyncio.sleep(seconds)

    await step("⏳ Waiting 6 seconds for the first check...", 6)
    print("\n📊 QUERY: initial status")
    await run_monitor_query(workflow_id, "status")

    await step("⏳ Letting it run for 6 seconds...", 6)
    print("\n📊 QUERY: history")
    await run_monitor_query(workflow_id, "history")

    print("\n⚡ SIGNAL: pause")
    await signal_workflow(workflow_id, SIGNAL_PAUSE)
    await step("⏳ Waiting 6 seconds, no checks while paused...", 6)
    print("\n📊 QUERY: stats")
    await run_monitor_query(workflow_id, "stats")

    print(f"\n⚡ SIGNAL: change-target {args.next_ip}")
    await signal_workflow(workflow_id, SIGNAL_CHANGE_TARGET, (args.next_ip,))
    print("\n⚡ SIGNAL: resume")
    await signal_workflow(workflow_id, SIGNAL_RESUME)
    await step("⏳ Waiting 7 seconds for checks of the new address...", 7)
    print("\n📊 QUERY: history")
    await run_monitor_query(workflow_id, "history")

    print("\n⚡ SIGNAL: change-interval 3")
    await signal_workflow(workflow_id, SIGNAL_CHANGE_INTERVAL, (3.0,))
    await step("⏳ Waiting 10 seconds for faster checks...", 10)
    print("\n📊 QUERY: stats")
    await run_monitor_query(workflow_id, "stats")

    print("\n⚡ SIGNAL: stop")
    await signal_workflow(workflow_id, SIGNAL_STOP)
    final = await handle.result()

    print("\n✅ Monitor finished")
    print_status(final)
    print(f"   Applied signals: {', '.join(final.applied_signals)}")
    return True


async def cmd_cancel(args: argparse.Namespace) -> bool:
    await cancel_workflow(args.workflow_id)
    print(f"✅ Cancellation requested for {args.workflow_id}")
    return True


def cmd_worker(args: argparse.Namespace) -> bool:
    from iplocate.workflows.worker import run_worker

    asyncio.run(run_worker())
    return True


# ==================== Parser ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iplocate",
        description="IP geolocation workflows on Temporal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  iplocate lookup --variant versioned
  iplocate lookup --variant v2 --target 8.8.8.8 --id-strategy entity
  iplocate monitor demo
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    worker = commands.add_parser("worker", help="run the Temporal worker")
    worker.set_defaults(handler=cmd_worker)

    lookup = commands.add_parser("lookup", help="start a geolocation workflow")
    lookup.add_argument(
        "--variant",
        choices=sorted(GEOLOCATION_VARIANTS),
        default="versioned",
        help="workflow variant (default: versioned)",
    )
    lookup.add_argument(
        "-t", "--target",
        default="",
        help="address to locate (default: the worker's public address)",
    )
    lookup.add_argument(
        "--id-strategy",
        choices=["unique", "constant", "entity"],
        default="unique",
        help="workflow id strategy (default: unique)",
    )
    lookup.add_argument(
        "--no-wait",
        dest="wait",
        action="store_false",
        help="return once started instead of waiting for the result",
    )
    lookup.set_defaults(handler=cmd_lookup)

    tz = commands.add_parser("timezone", help="timezone of an address")
    tz.add_argument("ip")
    tz.set_defaults(handler=cmd_timezone)

    observe = commands.add_parser("observe", help="start the observable lookup")
    observe.add_argument("ip", nargs="?", default="8.8.8.8")
    observe.add_argument("--workflow-id", default=OBSERVABLE_LOOKUP_ID)
    observe.set_defaults(handler=cmd_observe)

    check = commands.add_parser("check-status", help="run the status checker")
    check.add_argument("--target", default=OBSERVABLE_LOOKUP_ID)
    check.set_defaults(handler=cmd_check_status)

    monitor = commands.add_parser("monitor", help="IP monitor workflow")
    monitor_commands = monitor.add_subparsers(dest="monitor_command", required=True)

    m_start = monitor_commands.add_parser("start", help="start a monitor")
    m_start.add_argument("ip")
    m_start.add_argument("--interval", type=float, default=5.0, help="seconds between checks")
    m_start.add_argument("--max-checks", type=int, default=0, help="0 means unlimited")
    m_start.add_argument("--workflow-id", default=None)
    m_start.set_defaults(handler=cmd_monitor_start)

    m_signal = monitor_commands.add_parser("signal", help="signal a monitor")
    m_signal.add_argument("workflow_id")
    m_signal.add_argument("signal", choices=MONITOR_SIGNALS)
    m_signal.add_argument("value", nargs="?", default=None)
    m_signal.set_defaults(handler=cmd_monitor_signal)

    m_query = monitor_commands.add_parser("query", help="query a monitor")
    m_query.add_argument("workflow_id")
    m_query.add_argument("query", choices=MONITOR_QUERIES)
    m_query.set_defaults(handler=cmd_monitor_query)

    m_demo = monitor_commands.add_parser("demo", help="scripted signals and queries walk-through")
    m_demo.add_argument("--ip", default="8.8.8.8")
    m_demo.add_argument("--next-ip", default="1.1.1.1")
    m_demo.set_defaults(handler=cmd_monitor_demo)

    cancel = commands.add_parser("cancel", help="cancel a running workflow")
    cancel.add_argument("workflow_id")
    cancel.set_defaults(handler=cmd_cancel)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging()

    try:
        if asyncio.iscoroutinefunction(args.handler):
            success = asyncio.run(args.handler(args))
        else:
            success = args.handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted")
        success = False
    except WorkflowFailureError as e:
        print(f"❌ Workflow failed: {e.cause or e}")
        success = False
    except Exception as e:
        print(f"❌ {type(e).__name__}: {e}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
