"""Kill orchestration: attempt, escalate, verify, retry.

:class:`KillOrchestrator` drives one PID through::

    IDLE -> ATTEMPTING -> (ESCALATING) -> (VERIFYING) -> SUCCEEDED
                  ^                                  |
                  +------------- RETRYING <----------+--> FAILED

Attempts are strictly sequential. Command failures, timeouts and failed
verifications are absorbed by the retry loop and only surface as the final
:class:`~kproc.models.KillResult`'s ``error``; invalid input is raised
immediately and never retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .errors import KprocError, ProcessStillAliveError
from .logging_config import is_debug_enabled, set_debug
from .models import (
    HARD_KILL_SIGNAL,
    KillConfiguration,
    KillResult,
    KillState,
    SignalSpec,
    is_hard_kill,
    validate_pid,
)
from .probes import ProcessProbe
from .tree import ProcessTreeResolver

logger = logging.getLogger(__name__)

__all__ = ["KillOrchestrator", "SETTLE_DELAY", "RETRY_DELAY"]

#: Seconds given to the OS to reap a process before verification.
SETTLE_DELAY = 0.1
#: Seconds between failed attempts.
RETRY_DELAY = 0.5

Sleeper = Callable[[float], Awaitable[None]]


class KillOrchestrator:
    """Terminate single PIDs (optionally with their descendants)."""

    def __init__(
        self,
        probe: ProcessProbe,
        resolver: ProcessTreeResolver | None = None,
        *,
        sleep: Sleeper = asyncio.sleep,
        settle_delay: float = SETTLE_DELAY,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self.probe = probe
        self.resolver = resolver or ProcessTreeResolver(probe)
        self._sleep = sleep
        self.settle_delay = settle_delay
        self.retry_delay = retry_delay

    async def kill_one(self, pid: int, config: KillConfiguration | None = None) -> KillResult:
        """Kill *pid* according to *config* and describe what happened.

        Raises :class:`~kproc.errors.InvalidInputError` for a malformed PID.
        Every other failure is reported through the returned result.
        """

        config = config or KillConfiguration()
        validate_pid(pid)
        if config.debug and not is_debug_enabled():
            set_debug(True)

        sig: SignalSpec = config.signal
        self._enter(pid, KillState.IDLE)
        if config.dry_run:
            logger.info(
                "[DRY RUN] Would kill process %s with signal %s%s",
                pid,
                sig,
                " (tree)" if config.tree else "",
            )
            return KillResult(pid, True, sig)

        if not await self.probe.is_alive(pid):
            logger.debug("Process %s is already dead", pid)
            return KillResult(pid, True, verified=True)

        last_error: Exception | None = None
        for attempt in range(1, config.max_attempts + 1):
            self._enter(pid, KillState.ATTEMPTING, f"{attempt}/{config.max_attempts} with {sig}")
            try:
                if config.tree:
                    await self._kill_descendants(pid, sig, config.timeout)

                await self.probe.send_signal(
                    pid,
                    sig,
                    tree=config.tree and self.probe.native_tree_kill,
                    timeout=config.timeout,
                )
                logger.debug("Kill command succeeded for PID %s", pid)

                if self._should_escalate(sig, config):
                    self._enter(pid, KillState.ESCALATING, f"waiting {config.escalation_delay}s")
                    await self._sleep(config.escalation_delay)
                    if await self.probe.is_alive(pid):
                        logger.debug(
                            "Process %s still alive after %ss, escalating to %s",
                            pid,
                            config.escalation_delay,
                            HARD_KILL_SIGNAL,
                        )
                        sig = HARD_KILL_SIGNAL
                        await self.probe.send_signal(pid, sig, timeout=config.timeout)

                if config.verify:
                    self._enter(pid, KillState.VERIFYING)
                    await self._sleep(self.settle_delay)
                    if await self.probe.is_alive(pid):
                        raise ProcessStillAliveError(pid)
                    logger.debug("Verified process %s is dead", pid)
                    self._enter(pid, KillState.SUCCEEDED)
                    return KillResult(pid, True, sig, verified=True)

                self._enter(pid, KillState.SUCCEEDED)
                return KillResult(pid, True, sig)
            except KprocError as exc:
                last_error = exc
                logger.debug("Kill attempt %d for PID %s failed: %s", attempt, pid, exc)
                if attempt < config.max_attempts:
                    self._enter(pid, KillState.RETRYING, f"in {self.retry_delay}s")
                    await self._sleep(self.retry_delay)

        message = str(last_error) if last_error else "Unknown error"
        self._enter(pid, KillState.FAILED)
        logger.error(
            "Failed to kill process %s after %d attempts: %s", pid, config.max_attempts, message
        )
        return KillResult(pid, False, sig, error=message, verified=False)

    # -- internal helpers -----------------------------------------------
    def _should_escalate(self, sig: SignalSpec, config: KillConfiguration) -> bool:
        return (
            config.force_after_timeout
            and self.probe.supports_signals
            and not is_hard_kill(sig)
        )

    async def _kill_descendants(self, pid: int, sig: SignalSpec, timeout: float | None) -> None:
        descendants = await self.resolver.find_descendants(pid, timeout)
        logger.debug("Found %d descendant processes for PID %s", len(descendants), pid)
        for child in descendants:
            try:
                await self.probe.send_signal(child, sig, timeout=timeout)
                logger.debug("Killed child process %s", child)
            except KprocError as exc:
                logger.warning("Failed to kill child process %s: %s", child, exc)

    @staticmethod
    def _enter(pid: int, state: KillState, detail: str = "") -> None:
        if detail:
            logger.debug("PID %s -> %s (%s)", pid, state.value, detail)
        else:
            logger.debug("PID %s -> %s", pid, state.value)
