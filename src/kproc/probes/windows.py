"""Probe backed by ``netstat``, ``tasklist``, ``taskkill`` and PowerShell."""
from __future__ import annotations

import logging
from typing import Any

from ..errors import CommandExecutionError, KprocError
from ..models import ProcessInfo, SignalSpec
from ..utils.commands import exec_text
from .base import ProcessProbe
from .parsing import (
    Matcher,
    dedupe,
    parse_netstat_pids,
    parse_netstat_ports,
    parse_windows_ps_json,
)

logger = logging.getLogger(__name__)

__all__ = ["WindowsProbe", "powershell"]


def powershell(script: str) -> list[str]:
    return ["powershell", "-NoProfile", "-Command", script]


_LIST_ALL = (
    "Get-CimInstance Win32_Process | "
    "Select-Object ProcessId,Name,CommandLine | ConvertTo-Json -Compress"
)
_LIST_CHILDREN = (
    "Get-CimInstance Win32_Process | "
    "Where-Object {{ $_.ParentProcessId -eq {ppid} }} | "
    "Select-Object ProcessId | ConvertTo-Json -Compress"
)
_SNAPSHOT = (
    'Get-CimInstance Win32_Process -Filter "ProcessId = {pid}" | '
    "Select-Object ProcessId,Name,CommandLine,ParentProcessId,"
    "@{{Name='CPU';Expression={{$_.UserModeTime}}}},"
    "@{{Name='Memory';Expression={{$_.WorkingSetSize}}}} | ConvertTo-Json -Compress"
)


def _pid_of(obj: dict[str, Any]) -> int | None:
    value = obj.get("ProcessId")
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


class WindowsProbe(ProcessProbe):
    """Windows has no signals: every termination is ``taskkill /F``."""

    name = "windows"
    supports_signals = False
    native_tree_kill = True

    async def list_pids_by_port(self, port: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(["netstat", "-ano"], timeout)
        except CommandExecutionError as exc:
            if not exc.exited:
                raise
            logger.debug("No processes found on port %s", port)
            return []
        return parse_netstat_pids(out, port)

    async def list_pids_by_name_or_command(
        self, matcher: Matcher, *, timeout: float | None = None
    ) -> list[int]:
        out = await exec_text(powershell(_LIST_ALL), timeout)
        pids = []
        for proc in parse_windows_ps_json(out):
            pid = _pid_of(proc)
            if pid is None:
                continue
            if matcher(proc.get("Name") or "") or matcher(proc.get("CommandLine") or ""):
                pids.append(pid)
        return dedupe(pids)

    async def list_direct_children(self, ppid: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(powershell(_LIST_CHILDREN.format(ppid=ppid)), timeout)
            children = parse_windows_ps_json(out)
        except CommandExecutionError as exc:
            logger.debug("Failed to find child processes of PID %s: %s", ppid, exc)
            return []
        return dedupe(pid for pid in map(_pid_of, children) if pid is not None)

    async def list_ports_for_pid(self, pid: int, *, timeout: float | None = None) -> list[int]:
        try:
            out = await exec_text(["netstat", "-ano"], timeout)
        except CommandExecutionError:
            logger.debug("No ports found for PID %s", pid)
            return []
        return parse_netstat_ports(out, pid)

    async def is_alive(self, pid: int) -> bool:
        try:
            out = await exec_text(["tasklist", "/FI", f"PID eq {pid}", "/NH"], 1.0)
        except KprocError:
            return False
        return str(pid) in out

    async def send_signal(
        self,
        pid: int,
        sig: SignalSpec,
        *,
        tree: bool = False,
        timeout: float | None = None,
    ) -> None:
        cmd = ["taskkill", "/PID", str(pid)]
        if tree:
            cmd.append("/T")
        cmd.append("/F")
        await exec_text(cmd, timeout)

    async def get_snapshot(self, pid: int, *, timeout: float | None = None) -> ProcessInfo:
        out = await exec_text(powershell(_SNAPSHOT.format(pid=pid)), timeout)
        info = ProcessInfo(pid=pid)
        rows = parse_windows_ps_json(out)
        if not rows:
            return info
        data = rows[0]
        info.name = data.get("Name") or None
        info.command = data.get("CommandLine") or None
        info.parent_pid = data.get("ParentProcessId") or None
        memory = data.get("Memory")
        if memory:
            info.memory_usage = f"{round(memory / 1024 / 1024)} MB"
        return info
