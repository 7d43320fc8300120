"""Asynchronous wrappers for the external commands kproc depends on.

:func:`run_command_async` executes a command without a console window and
returns a :class:`CommandOutcome` carrying either the captured output or the
error that stopped it. :func:`exec_text` is the raising variant used by the
probes: it returns stdout or raises :class:`~kproc.errors.CommandExecutionError`
/ :class:`~kproc.errors.CommandTimeoutError`.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import shlex
import subprocess
from dataclasses import dataclass
from typing import Sequence

from ..errors import CommandExecutionError, CommandTimeoutError, KprocError

logger = logging.getLogger(__name__)

__all__ = [
    "CommandOutcome",
    "hidden_creation_flags",
    "run_command_async",
    "exec_text",
]


def hidden_creation_flags() -> int:
    """Return Windows creation flags that suppress a console window."""
    if platform.system() != "Windows":
        return 0
    return getattr(subprocess, "CREATE_NO_WINDOW", 0)


def _render(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in cmd)


@dataclass(slots=True)
class CommandOutcome:
    """Result of one command invocation.

    Exactly one of ``stdout`` and ``error`` is meaningful: ``error`` is set
    when the command could not start, exited non-zero (with ``check``) or
    timed out.
    """

    command: str
    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    error: KprocError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.stdout


async def run_command_async(
    cmd: Sequence[str],
    *,
    timeout: float | None = None,
    check: bool = True,
    env: dict[str, str] | None = None,
) -> CommandOutcome:
    """Run *cmd* and capture its output.

    Parameters
    ----------
    cmd:
        Command and arguments. No shell is involved.
    timeout:
        Seconds to wait before the child is killed and a
        :class:`CommandTimeoutError` is reported. ``None`` waits forever.
    check:
        When ``True`` a non-zero exit status is reported as a
        :class:`CommandExecutionError`.
    """

    command = _render(cmd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            creationflags=hidden_creation_flags(),
            env=env,
        )
    except OSError as exc:
        logger.debug("Command %s failed to start: %s", command, exc)
        return CommandOutcome(
            command,
            error=CommandExecutionError(f"Failed to execute command: {command}", command),
        )

    try:
        if timeout is not None:
            out, err = await asyncio.wait_for(proc.communicate(), timeout)
        else:
            out, err = await proc.communicate()
    except asyncio.TimeoutError:
        logger.debug("Command %s timed out after %ss", command, timeout)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        return CommandOutcome(
            command,
            error=CommandTimeoutError(
                f"Operation timed out after {timeout} s", command, timeout or 0.0
            ),
        )

    stdout = out.decode(errors="replace") if out else ""
    stderr = err.decode(errors="replace") if err else ""
    outcome = CommandOutcome(command, stdout, stderr, proc.returncode)
    if check and proc.returncode != 0:
        detail = stderr.strip() or f"exit code {proc.returncode}"
        outcome.error = CommandExecutionError(
            f"Command failed: {detail}",
            command,
            returncode=proc.returncode,
            stderr=stderr,
        )
    return outcome


async def exec_text(
    cmd: Sequence[str],
    timeout: float | None = None,
    *,
    env: dict[str, str] | None = None,
) -> str:
    """Return stdout of *cmd*, raising on failure or timeout."""

    outcome = await run_command_async(cmd, timeout=timeout, env=env)
    return outcome.unwrap()
