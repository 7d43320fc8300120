"""Probe backed by ``lsof``, ``ps`` and ``kill`` on Linux, macOS and BSD."""
from __future__ import annotations

import logging
import os

from ..errors import CommandExecutionError, KprocError
from ..models import HARD_KILL_SIGNAL, ProcessInfo, SignalSpec
from ..utils.commands import exec_text
from .base import ProcessProbe
from .parsing import (
    Matcher,
    dedupe,
    parse_lsof_ports,
    parse_pid_lines,
    parse_ps_listing,
    parse_ps_snapshot,
)

logger = logging.getLogger(__name__)

__all__ = ["PosixProbe"]


def _ps_env() -> dict[str, str]:
    # procps cuts args to $COLUMNS when it is set
    env = dict(os.environ)
    env.pop("COLUMNS", None)
    return env


def _signal_arg(sig: SignalSpec) -> str:
    if isinstance(sig, int):
        return str(sig)
    # every kill(1) accepts the bare name after -s
    return sig[3:] if sig.startswith("SIG") else sig


class PosixProbe(ProcessProbe):
    name = "posix"

    async def list_pids_by_port(self, port: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(["lsof", "-t", "-i", f":{port}"], timeout)
        except CommandExecutionError as exc:
            if not exc.exited:
                raise
            # lsof exits 1 when nothing holds the port
            logger.debug("No processes found on port %s", port)
            return []
        return parse_pid_lines(out)

    async def list_pids_by_name_or_command(
        self, matcher: Matcher, *, timeout: float | None = None
    ) -> list[int]:
        out = await exec_text(["ps", "-A", "-o", "pid=,comm=,args="], timeout, env=_ps_env())
        return dedupe(
            row.pid for row in parse_ps_listing(out) if matcher(row.comm) or matcher(row.args)
        )

    async def list_direct_children(self, ppid: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(["ps", "-o", "pid=", "--ppid", str(ppid)], timeout, env=_ps_env())
        except CommandExecutionError as exc:
            logger.debug("Failed to find child processes of PID %s: %s", ppid, exc)
            return []
        return parse_pid_lines(out)

    async def list_ports_for_pid(self, pid: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(["lsof", "-Pan", "-p", str(pid), "-i"], timeout)
        except CommandExecutionError:
            logger.debug("No ports found for PID %s", pid)
            return []
        return parse_lsof_ports(out)

    async def is_alive(self, pid: int) -> bool:
        try:
            await exec_text(["kill", "-0", str(pid)], 1.0)
        except KprocError:
            return False
        return True

    async def send_signal(
        self,
        pid: int,
        sig: SignalSpec,
        *,
        tree: bool = False,
        timeout: float | None = None,
    ) -> None:
        if sig == HARD_KILL_SIGNAL:
            cmd = ["kill", "-9", str(pid)]
        else:
            cmd = ["kill", "-s", _signal_arg(sig), str(pid)]
        await exec_text(cmd, timeout)

    async def get_snapshot(self, pid: int, *, timeout: float | None = None) -> ProcessInfo:
        out = await exec_text(
            ["ps", "-p", str(pid), "-o", "pid=,comm=,args=,ppid=,%cpu=,%mem="],
            timeout,
            env=_ps_env(),
        )
        info = ProcessInfo(pid=pid)
        row = parse_ps_snapshot(out)
        if row is not None:
            info.name = row.comm
            info.command = row.args
            info.parent_pid = row.ppid
            info.cpu_usage = f"{row.cpu}%"
            info.memory_usage = f"{row.mem}%"
        return info
