import asyncio

import pytest

from kproc.batch import DISCOVERY_CONCURRENCY, BatchCoordinator
from kproc.cache import LookupCache
from kproc.errors import CommandExecutionError, InvalidInputError, ProcessNotFoundError
from kproc.kill import KillOrchestrator
from kproc.lookup import ProcessLookup
from kproc.models import KillConfiguration
from kproc.probes import PosixProbe, posix


def make(probe, sleeper, **kwargs):
    orchestrator = KillOrchestrator(probe, sleep=sleeper)
    lookup = ProcessLookup(probe, LookupCache())
    return BatchCoordinator(orchestrator, lookup, **kwargs)


async def test_kill_many_aligns_with_deduplicated_input(probe, sleeper):
    for pid in (5, 6, 7):
        probe.spawn(pid)
    probe.fail_signal[6] = 1

    results = await make(probe, sleeper).kill_many([7, 5, 7, 6, 5])

    assert [r.pid for r in results] == [7, 5, 6]
    assert [r.success for r in results] == [True, True, False]
    assert probe.alive == {6}


async def test_kill_many_isolates_raised_errors(probe, sleeper):
    probe.spawn(5)

    results = await make(probe, sleeper).kill_many([5, -3])

    assert results[0].success is True
    assert results[1].pid == -3
    assert results[1].success is False
    assert "Invalid PID" in results[1].error


async def test_kill_many_rejects_empty(probe, sleeper):
    with pytest.raises(InvalidInputError, match="PIDs array must be non-empty"):
        await make(probe, sleeper).kill_many([])


async def test_kill_many_respects_concurrency_limit(probe, sleeper):
    for pid in range(1, 7):
        probe.spawn(pid)
    running = 0
    peak = 0
    real_signal = probe.send_signal

    async def slow_signal(pid, sig, *, tree=False, timeout=None):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        await real_signal(pid, sig, tree=tree, timeout=timeout)

    probe.send_signal = slow_signal
    results = await make(probe, sleeper, max_concurrency=2).kill_many(range(1, 7))

    assert all(r.success for r in results)
    assert peak == 2


async def test_kill_by_port_takes_first_pid(probe, sleeper):
    probe.spawn(100, ports=[8080])
    probe.spawn(101, ports=[8080])

    result = await make(probe, sleeper).kill_by_port(8080)

    assert result.pid == 100
    assert probe.alive == {101}


async def test_kill_by_port_not_found(probe, sleeper):
    with pytest.raises(ProcessNotFoundError, match="No process found on port 9000"):
        await make(probe, sleeper).kill_by_port(9000)


async def test_port_vs_ports(probe, sleeper):
    probe.spawn(100, ports=[8080])
    probe.spawn(101, ports=[8080])

    single = await make(probe, sleeper).kill_by_port(8080, KillConfiguration(dry_run=True))
    multi = await make(probe, sleeper).kill_by_ports([8080], KillConfiguration(dry_run=True))

    assert single.pid == 100
    assert {r.pid for r in multi} == {100, 101}


async def test_kill_by_ports_unions_pids(probe, sleeper):
    probe.spawn(100, ports=[3000, 3001])
    probe.spawn(200, ports=[3001])

    results = await make(probe, sleeper).kill_by_ports([3000, 3001, 3002])

    assert [r.pid for r in results] == [100, 200]
    assert probe.alive == set()


async def test_kill_by_ports_tolerates_failing_lookup(probe, sleeper):
    probe.spawn(100, ports=[3000])
    probe.port_errors[3001] = RuntimeError("lsof crashed")

    results = await make(probe, sleeper).kill_by_ports([3000, 3001])

    assert [r.pid for r in results] == [100]


async def test_kill_by_ports_nothing_found_lists_errors(probe, sleeper):
    probe.port_errors[3001] = RuntimeError("lsof crashed")

    with pytest.raises(ProcessNotFoundError) as info:
        await make(probe, sleeper).kill_by_ports([3000, 3001])

    message = str(info.value)
    assert message.startswith("No processes found on ports: 3000, 3001")
    assert "Port 3001: lsof crashed" in message


async def test_kill_by_ports_rejects_empty(probe, sleeper):
    with pytest.raises(InvalidInputError, match="Ports array must be non-empty"):
        await make(probe, sleeper).kill_by_ports([])
    assert probe.port_calls == []


async def test_kill_by_ports_invalid_port_does_not_abort_others(probe, sleeper):
    probe.spawn(100, ports=[80])

    results = await make(probe, sleeper).kill_by_ports([0, 80, 70000, "81"])

    assert [r.pid for r in results] == [100]
    assert probe.port_calls == [80]


async def test_kill_by_ports_only_invalid_ports_lists_errors(probe, sleeper):
    with pytest.raises(ProcessNotFoundError) as info:
        await make(probe, sleeper).kill_by_ports([0, 70000])

    message = str(info.value)
    assert "Port 0: Invalid port number: 0" in message
    assert "Port 70000: Invalid port number: 70000" in message


async def track_port_lookups(probe):
    state = {"running": 0, "peak": 0}
    real_lookup = probe.list_pids_by_port

    async def slow_lookup(port, *, timeout=None):
        state["running"] += 1
        state["peak"] = max(state["peak"], state["running"])
        await asyncio.sleep(0.001)
        state["running"] -= 1
        return await real_lookup(port, timeout=timeout)

    probe.list_pids_by_port = slow_lookup
    return state


async def test_port_discovery_is_bounded_by_default(probe, sleeper):
    probe.spawn(100, ports=[5999])
    state = await track_port_lookups(probe)

    results = await make(probe, sleeper).kill_by_port_range(5000, 6000, KillConfiguration(dry_run=True))

    assert [r.pid for r in results] == [100]
    assert state["peak"] == DISCOVERY_CONCURRENCY


async def test_port_discovery_follows_max_concurrency(probe, sleeper):
    state = await track_port_lookups(probe)

    with pytest.raises(ProcessNotFoundError):
        await make(probe, sleeper, max_concurrency=3).kill_by_ports(range(7000, 7020))

    assert state["peak"] == 3


async def test_unstartable_port_lookup_is_reported(monkeypatch, sleeper):
    async def cannot_spawn(cmd, timeout=None, *, env=None):
        command = " ".join(cmd)
        raise CommandExecutionError(f"Failed to execute command: {command}", command)

    monkeypatch.setattr(posix, "exec_text", cannot_spawn)

    with pytest.raises(ProcessNotFoundError) as info:
        await make(PosixProbe(), sleeper).kill_by_ports([3000, 3001])

    message = str(info.value)
    assert "Port 3000: Failed to execute command: lsof -t -i :3000" in message
    assert "Port 3001: Failed to execute command" in message


async def test_port_range_equals_explicit_ports(probe, sleeper):
    probe.spawn(100, ports=[5001])
    probe.spawn(101, ports=[5003])
    config = KillConfiguration(dry_run=True)

    ranged = await make(probe, sleeper).kill_by_port_range(5000, 5003, config)
    probe.port_calls.clear()
    listed = await make(probe, sleeper).kill_by_ports([5000, 5001, 5002, 5003], config)

    assert [r.pid for r in ranged] == [r.pid for r in listed] == [100, 101]


async def test_port_range_single_port(probe, sleeper):
    probe.spawn(100, ports=[5000])
    results = await make(probe, sleeper).kill_by_port_range(5000, 5000)
    assert [r.pid for r in results] == [100]
    assert probe.port_calls == [5000]


@pytest.mark.parametrize(
    "start, end, message",
    [
        (10, 5, "end < start"),
        (0, 5, "between 1 and 65535"),
        (65530, 65536, "between 1 and 65535"),
        (1.5, 5, "integers"),
        (True, 5, "integers"),
    ],
)
async def test_port_range_validation(probe, sleeper, start, end, message):
    with pytest.raises(InvalidInputError, match=message):
        await make(probe, sleeper).kill_by_port_range(start, end)


async def test_kill_by_name(probe, sleeper):
    probe.spawn(10, "node", "node server.js")
    probe.spawn(11, "python", "python manage.py runserver")
    probe.spawn(12, "bash", "bash -c 'NODE_ENV=dev npm start'")

    results = await make(probe, sleeper).kill_by_name("node")

    assert sorted(r.pid for r in results) == [10, 12]
    assert probe.alive == {11}


async def test_kill_by_name_no_match(probe, sleeper):
    probe.spawn(10, "python")
    with pytest.raises(ProcessNotFoundError, match="No process matched pattern: ruby"):
        await make(probe, sleeper).kill_by_name("ruby")
