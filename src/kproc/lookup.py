"""Validated, cached process discovery."""
from __future__ import annotations

import logging
import os

from .cache import LookupCache, name_key, port_key
from .errors import CommandExecutionError, InvalidInputError, ProcessNotFoundError
from .models import ProcessInfo, validate_pid, validate_port
from .probes import ProcessProbe
from .probes.parsing import build_matcher

logger = logging.getLogger(__name__)

__all__ = ["ProcessLookup"]


class ProcessLookup:
    """Front the probe's enumeration calls with input checks and the cache.

    Port and name scans are cached; per-PID queries are cheap enough to run
    every time.
    """

    def __init__(self, probe: ProcessProbe, cache: LookupCache | None = None) -> None:
        self.probe = probe
        self.cache = cache if cache is not None else LookupCache()

    async def find_pids_by_port(self, port: int, timeout: float | None = None) -> list[int]:
        """Return every PID bound to *port*; empty when none are."""

        validate_port(port)
        pids = await self.cache.get_cached(
            port_key(port),
            lambda: self.probe.list_pids_by_port(port, timeout=timeout),
        )
        return list(pids)

    async def find_pid_by_port(self, port: int, timeout: float | None = None) -> int:
        """Return the first PID discovered on *port*."""

        pids = await self.find_pids_by_port(port, timeout)
        if not pids:
            raise ProcessNotFoundError(f"No process found on port {port}")
        return pids[0]

    async def find_pids_by_name(
        self,
        pattern: str,
        *,
        use_regex: bool = False,
        timeout: float | None = None,
    ) -> list[int]:
        """Return PIDs whose name or command line matches *pattern*.

        Matching is case-insensitive: a substring test by default, a regular
        expression search with ``use_regex``. The calling process is never
        part of the result.
        """

        if not isinstance(pattern, str) or not pattern:
            raise InvalidInputError("Name or pattern must be a non-empty string")
        matcher = build_matcher(pattern, use_regex)

        async def fetch() -> list[int]:
            try:
                return await self.probe.list_pids_by_name_or_command(matcher, timeout=timeout)
            except CommandExecutionError as exc:
                raise ProcessNotFoundError(f"Failed to find processes by name: {exc}") from exc

        pids = await self.cache.get_cached(name_key(pattern, use_regex), fetch)
        own = os.getpid()
        return [pid for pid in pids if pid != own]

    async def find_ports_for_pid(self, pid: int, timeout: float | None = None) -> list[int]:
        validate_pid(pid)
        return await self.probe.list_ports_for_pid(pid, timeout=timeout)

    async def get_process_info(self, pid: int, timeout: float | None = None) -> ProcessInfo:
        """Return a snapshot of *pid* including the ports it uses."""

        validate_pid(pid)
        logger.debug("Getting info for PID %s", pid)
        try:
            info = await self.probe.get_snapshot(pid, timeout=timeout)
        except CommandExecutionError as exc:
            raise ProcessNotFoundError(
                f"Process {pid} not found or inaccessible: {exc}"
            ) from exc
        info.ports = await self.probe.list_ports_for_pid(pid, timeout=timeout)
        logger.debug("Retrieved info for PID %s: %s", pid, info.name)
        return info

    async def is_alive(self, pid: int) -> bool:
        validate_pid(pid)
        return await self.probe.is_alive(pid)
