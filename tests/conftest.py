import asyncio
import inspect

import pytest

from kproc.errors import CommandExecutionError
from kproc.models import ProcessInfo, is_hard_kill
from kproc.probes import ProcessProbe


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        sig = inspect.signature(pyfuncitem.obj)
        kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in sig.parameters
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**kwargs))
        return True
    return None


class FakeProbe(ProcessProbe):
    """In-memory process table driven by the tests."""

    name = "fake"

    def __init__(self, *, supports_signals=True, native_tree_kill=False):
        self.supports_signals = supports_signals
        self.native_tree_kill = native_tree_kill
        self.alive = set()
        self.ports = {}
        self.procs = {}
        self.children = {}
        self.child_errors = set()
        self.port_errors = {}
        self.name_error = None
        # pid -> number of send_signal calls that should fail
        self.fail_signal = {}
        # pids that ignore everything but SIGKILL
        self.stubborn = set()
        self.signals = []
        self.port_calls = []
        self.name_calls = 0

    def spawn(self, pid, name="proc", command=None, *, ports=(), parent=None):
        self.alive.add(pid)
        self.procs[pid] = (name, command or name)
        for port in ports:
            self.ports.setdefault(port, []).append(pid)
        if parent is not None:
            self.children.setdefault(parent, []).append(pid)
        return pid

    async def list_pids_by_port(self, port, *, timeout=None):
        self.port_calls.append(port)
        if port in self.port_errors:
            raise self.port_errors[port]
        return list(self.ports.get(port, []))

    async def list_pids_by_name_or_command(self, matcher, *, timeout=None):
        self.name_calls += 1
        if self.name_error is not None:
            raise self.name_error
        return [pid for pid, (name, cmd) in self.procs.items() if matcher(name) or matcher(cmd)]

    async def list_direct_children(self, ppid, *, timeout=None):
        if ppid in self.child_errors:
            raise CommandExecutionError(f"children of {ppid} unavailable", "ps")
        return list(self.children.get(ppid, []))

    async def list_ports_for_pid(self, pid, *, timeout=None):
        return [port for port, pids in self.ports.items() if pid in pids]

    async def is_alive(self, pid):
        return pid in self.alive

    async def send_signal(self, pid, sig, *, tree=False, timeout=None):
        self.signals.append((pid, sig, tree))
        if self.fail_signal.get(pid, 0) > 0:
            self.fail_signal[pid] -= 1
            raise CommandExecutionError(f"Command failed: cannot signal {pid}", "kill")
        if pid not in self.alive:
            raise CommandExecutionError(f"Command failed: no such process {pid}", "kill")
        if pid in self.stubborn and not is_hard_kill(sig):
            return
        self.alive.discard(pid)
        if tree:
            stack = list(self.children.get(pid, []))
            while stack:
                child = stack.pop()
                self.alive.discard(child)
                stack.extend(self.children.get(child, []))

    async def get_snapshot(self, pid, *, timeout=None):
        if pid not in self.procs:
            raise CommandExecutionError(f"Command failed: no such process {pid}", "ps")
        name, command = self.procs[pid]
        parent = next((p for p, kids in self.children.items() if pid in kids), None)
        return ProcessInfo(pid=pid, name=name, command=command, parent_pid=parent)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def sleeper():
    return FakeSleep()
