# tests/test_cli.py
# Command line parsing tests (no Temporal server needed)

import pytest

from iplocate import cli


def test_lookup_defaults():
    args = cli.build_parser().parse_args(["lookup"])

    assert args.variant == "versioned"
    assert args.target == ""
    assert args.id_strategy == "unique"
    assert args.wait is True
    assert args.handler is cli.cmd_lookup


def test_lookup_options():
    args = cli.build_parser().parse_args([
        "lookup", "--variant", "recorded", "-t", "8.8.8.8", "--id-strategy", "entity", "--no-wait",
    ])

    assert args.variant == "recorded"
    assert args.target == "8.8.8.8"
    assert args.id_strategy == "entity"
    assert args.wait is False


def test_lookup_rejects_unknown_variant():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["lookup", "--variant", "v3"])


def test_monitor_signal_arguments():
    args = cli.build_parser().parse_args([
        "monitor", "signal", "ip-monitor-demo-1", "change-target", "1.1.1.1",
    ])

    assert args.workflow_id == "ip-monitor-demo-1"
    assert args.signal == "change-target"
    assert args.value == "1.1.1.1"
    assert args.handler is cli.cmd_monitor_signal


def test_monitor_start_arguments():
    args = cli.build_parser().parse_args([
        "monitor", "start", "8.8.8.8", "--interval", "2.5", "--max-checks", "4",
    ])

    assert args.ip == "8.8.8.8"
    assert args.interval == 2.5
    assert args.max_checks == 4


@pytest.mark.asyncio
async def test_change_interval_needs_number(capsys):
    args = cli.build_parser().parse_args([
        "monitor", "signal", "ip-monitor-demo-1", "change-interval", "soon",
    ])

    assert await cli.cmd_monitor_signal(args) is False
    assert "number of seconds" in capsys.readouterr().out


def test_main_exits_with_failure(monkeypatch):
    async def failing(args):
        raise RuntimeError("server unreachable")

    monkeypatch.setattr(cli, "cmd_cancel", failing)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["cancel", "some-workflow"])

    assert exc_info.value.code == 1
