"""In-process probe built on :mod:`psutil`.

Useful on hosts that lack ``lsof`` or a ``ps`` supporting ``--ppid``. Blocking
``psutil`` calls run in a worker thread so the event loop keeps servicing
other kills.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Callable, TypeVar

import psutil

from ..errors import CommandExecutionError, CommandTimeoutError
from ..models import ProcessInfo, SignalSpec
from .base import ProcessProbe
from .parsing import Matcher, dedupe

logger = logging.getLogger(__name__)

__all__ = ["PsutilProbe"]

T = TypeVar("T")

_GONE = {psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD}


async def _call(func: Callable[[], T], timeout: float | None, label: str = "psutil") -> T:
    if timeout is None:
        return await asyncio.to_thread(func)
    try:
        return await asyncio.wait_for(asyncio.to_thread(func), timeout)
    except asyncio.TimeoutError:
        raise CommandTimeoutError(
            f"Operation timed out after {timeout} s", label, timeout
        ) from None


def _resolve(sig: SignalSpec) -> int:
    if isinstance(sig, int):
        return sig
    try:
        return int(signal.Signals[sig])
    except KeyError as exc:
        raise CommandExecutionError(f"Unknown signal on this platform: {sig}", f"kill {sig}") from exc


class PsutilProbe(ProcessProbe):
    name = "psutil"
    supports_signals = os.name != "nt"

    async def list_pids_by_port(self, port: int, *, timeout: float | None = None) -> list[int]:
        def scan() -> list[int]:
            try:
                conns = psutil.net_connections(kind="inet")
            except (psutil.AccessDenied, OSError) as exc:
                logger.debug("Connection table unavailable: %s", exc)
                return []
            pids = []
            for conn in conns:
                if conn.pid is None:
                    continue
                local = conn.laddr.port if conn.laddr else None
                remote = conn.raddr.port if conn.raddr else None
                if port in (local, remote):
                    pids.append(conn.pid)
            return dedupe(pids)

        return await _call(scan, timeout)

    async def list_pids_by_name_or_command(
        self, matcher: Matcher, *, timeout: float | None = None
    ) -> list[int]:
        def scan() -> list[int]:
            pids = []
            for proc in psutil.process_iter(["pid", "name", "cmdline"]):
                name = proc.info.get("name") or ""
                command = " ".join(proc.info.get("cmdline") or [])
                if matcher(name) or matcher(command):
                    pids.append(proc.info["pid"])
            return dedupe(pids)

        return await _call(scan, timeout)

    async def list_direct_children(self, ppid: int, *, timeout: float | None = None) -> list[int]:
        def scan() -> list[int]:
            try:
                return [child.pid for child in psutil.Process(ppid).children()]
            except psutil.Error as exc:
                logger.debug("Failed to find child processes of PID %s: %s", ppid, exc)
                return []

        return await _call(scan, timeout)

    async def list_ports_for_pid(self, pid: int, *, timeout: float | None = None) -> list[int]:
        def scan() -> list[int]:
            try:
                conns = psutil.Process(pid).net_connections(kind="inet")
            except psutil.Error:
                logger.debug("No ports found for PID %s", pid)
                return []
            return dedupe(conn.laddr.port for conn in conns if conn.laddr)

        return await _call(scan, timeout)

    async def is_alive(self, pid: int) -> bool:
        def check() -> bool:
            try:
                return psutil.Process(pid).status() not in _GONE
            except psutil.NoSuchProcess:
                return False
            except psutil.AccessDenied:
                return True

        try:
            return await _call(check, 1.0)
        except CommandTimeoutError:
            return False

    async def send_signal(
        self,
        pid: int,
        sig: SignalSpec,
        *,
        tree: bool = False,
        timeout: float | None = None,
    ) -> None:
        command = f"kill -s {sig} {pid}"

        def deliver() -> None:
            try:
                proc = psutil.Process(pid)
                if self.supports_signals:
                    proc.send_signal(_resolve(sig))
                else:
                    proc.kill()
            except psutil.Error as exc:
                raise CommandExecutionError(f"Command failed: {exc}", command) from exc

        await _call(deliver, timeout)

    async def get_snapshot(self, pid: int, *, timeout: float | None = None) -> ProcessInfo:
        def read() -> ProcessInfo:
            try:
                proc = psutil.Process(pid)
                with proc.oneshot():
                    return ProcessInfo(
                        pid=pid,
                        name=proc.name(),
                        command=" ".join(proc.cmdline()) or None,
                        parent_pid=proc.ppid(),
                        cpu_usage=f"{proc.cpu_percent(interval=None):.1f}%",
                        memory_usage=f"{proc.memory_percent():.1f}%",
                    )
            except psutil.Error as exc:
                raise CommandExecutionError(f"Command failed: {exc}", f"ps -p {pid}") from exc

        return await _call(read, timeout)
