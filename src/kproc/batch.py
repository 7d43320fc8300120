"""Concurrent multi-target kills with per-target failure isolation."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from .errors import InvalidInputError, ProcessNotFoundError
from .kill import KillOrchestrator
from .lookup import ProcessLookup
from .models import KillConfiguration, KillResult
from .probes.parsing import dedupe

logger = logging.getLogger(__name__)

__all__ = ["BatchCoordinator", "DISCOVERY_CONCURRENCY"]

#: Port lookups in flight at once when no ``max_concurrency`` is set.
DISCOVERY_CONCURRENCY = 32


class BatchCoordinator:
    """Fan kills out across PIDs, ports, port ranges and name patterns.

    One target's failure never aborts the others; it becomes a failed
    :class:`KillResult` in the output, which lines up with the
    de-duplicated target order. A whole call fails only when discovery finds
    nothing to kill.
    """

    def __init__(
        self,
        orchestrator: KillOrchestrator,
        lookup: ProcessLookup,
        *,
        max_concurrency: int = 0,
    ) -> None:
        self.orchestrator = orchestrator
        self.lookup = lookup
        self.max_concurrency = max_concurrency

    async def kill_many(
        self, pids: Iterable[int], config: KillConfiguration | None = None
    ) -> list[KillResult]:
        targets = dedupe(pids)
        if not targets:
            raise InvalidInputError("PIDs array must be non-empty")
        config = config or KillConfiguration()

        logger.debug("Killing %d processes in parallel", len(targets))
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None

        async def run(pid: int) -> KillResult:
            if semaphore is None:
                return await self.orchestrator.kill_one(pid, config)
            async with semaphore:
                return await self.orchestrator.kill_one(pid, config)

        outcomes = await asyncio.gather(*(run(pid) for pid in targets), return_exceptions=True)

        results: list[KillResult] = []
        for pid, outcome in zip(targets, outcomes):
            if isinstance(outcome, KillResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                results.append(KillResult(pid, False, error=str(outcome) or type(outcome).__name__))
            else:
                # CancelledError, KeyboardInterrupt
                raise outcome

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning("Failed to kill %d/%d processes", failed, len(results))
        else:
            logger.debug("Successfully killed all %d processes", len(results))
        return results

    async def kill_by_pids(
        self, pids: Iterable[int], config: KillConfiguration | None = None
    ) -> list[KillResult]:
        return await self.kill_many(pids, config)

    async def kill_by_port(self, port: int, config: KillConfiguration | None = None) -> KillResult:
        """Kill the first process discovered on *port*."""

        config = config or KillConfiguration()
        logger.debug("Finding process on port %s", port)
        pid = await self.lookup.find_pid_by_port(port, config.timeout)
        logger.debug("Found PID %s on port %s", pid, port)
        return await self.orchestrator.kill_one(pid, config)

    async def kill_by_ports(
        self, ports: Sequence[int], config: KillConfiguration | None = None
    ) -> list[KillResult]:
        """Kill every process bound to any of *ports*.

        A port that is invalid or whose lookup fails is reported in the
        :class:`ProcessNotFoundError` message only when no port yields a PID.
        """

        ports = list(ports)
        if not ports:
            raise InvalidInputError("Ports array must be non-empty")
        config = config or KillConfiguration()

        logger.debug("Searching for processes on %d ports", len(ports))
        semaphore = asyncio.Semaphore(self.max_concurrency or DISCOVERY_CONCURRENCY)

        async def discover(port: int) -> list[int]:
            async with semaphore:
                return await self.lookup.find_pids_by_port(port, config.timeout)

        found = await asyncio.gather(*(discover(port) for port in ports), return_exceptions=True)

        unique: list[int] = []
        errors: list[str] = []
        for port, outcome in zip(ports, found):
            if isinstance(outcome, list):
                unique.extend(outcome)
            elif isinstance(outcome, Exception):
                errors.append(f"Port {port}: {outcome}")
            else:
                raise outcome
        unique = dedupe(unique)

        if not unique:
            detail = f". Errors: {'; '.join(errors)}" if errors else ""
            raise ProcessNotFoundError(
                f"No processes found on ports: {', '.join(map(str, ports))}{detail}"
            )

        if errors:
            logger.warning("Skipped %d ports: %s", len(errors), "; ".join(errors))
        logger.debug("Found %d unique PIDs across %d ports", len(unique), len(ports))
        return await self.kill_many(unique, config)

    async def kill_by_port_range(
        self, start: int, end: int, config: KillConfiguration | None = None
    ) -> list[KillResult]:
        """Kill every process bound to a port in ``start..end`` inclusive."""

        if any(isinstance(v, bool) or not isinstance(v, int) for v in (start, end)):
            raise InvalidInputError("Start and end must be integers")
        if end < start:
            raise InvalidInputError("Invalid port range: end < start")
        if start < 1 or end > 65535:
            raise InvalidInputError("Port range must be between 1 and 65535")

        logger.debug("Scanning port range %s-%s (%d ports)", start, end, end - start + 1)
        return await self.kill_by_ports(range(start, end + 1), config)

    async def kill_by_name(
        self,
        pattern: str,
        config: KillConfiguration | None = None,
        *,
        use_regex: bool = False,
    ) -> list[KillResult]:
        """Kill every process whose name or command line matches *pattern*."""

        config = config or KillConfiguration()
        logger.debug("Searching for processes matching pattern: %s", pattern)
        pids = await self.lookup.find_pids_by_name(
            pattern, use_regex=use_regex, timeout=config.timeout
        )
        if not pids:
            raise ProcessNotFoundError(f"No process matched pattern: {pattern}")

        logger.debug("Found %d processes matching pattern: %s", len(pids), pattern)
        return await self.kill_many(pids, config)
