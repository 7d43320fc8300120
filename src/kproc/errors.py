"""Exception hierarchy shared by every kproc layer."""
from __future__ import annotations

__all__ = [
    "KprocError",
    "InvalidInputError",
    "ProcessNotFoundError",
    "ProcessStillAliveError",
    "CommandExecutionError",
    "CommandTimeoutError",
]


class KprocError(RuntimeError):
    """Base class for kproc failures."""


class InvalidInputError(KprocError, ValueError):
    """Raised for malformed PIDs, ports, ranges, patterns or options."""


class ProcessNotFoundError(KprocError):
    """Raised when a lookup matched nothing or a required process is gone."""


class ProcessStillAliveError(KprocError):
    """Raised when a process survives a verified kill attempt."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Process {pid} is still alive after kill attempt")
        self.pid = pid


class CommandExecutionError(KprocError):
    """Raised when an external command exits non-zero or cannot start."""

    def __init__(
        self,
        message: str,
        command: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    @property
    def exited(self) -> bool:
        """``True`` when the command ran and returned a non-zero status."""
        return self.returncode is not None


class CommandTimeoutError(KprocError):
    """Raised when an external command exceeds its deadline."""

    def __init__(self, message: str, command: str, timeout: float) -> None:
        super().__init__(message)
        self.command = command
        self.timeout = timeout
