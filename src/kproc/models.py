"""Value types passed between the kproc layers."""
from __future__ import annotations

import re
import signal as _signal
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Union

from .errors import InvalidInputError

__all__ = [
    "HARD_KILL_SIGNAL",
    "DEFAULT_SIGNAL",
    "SignalSpec",
    "KillConfiguration",
    "KillResult",
    "KillState",
    "ProcessInfo",
    "CacheStats",
    "normalize_signal",
    "is_hard_kill",
    "validate_pid",
    "validate_port",
]

SignalSpec = Union[str, int]

DEFAULT_SIGNAL = "SIGTERM"
HARD_KILL_SIGNAL = "SIGKILL"

_SIGNAL_NAME = re.compile(r"^SIG[A-Z0-9+\-]+$")


def normalize_signal(value: Any) -> SignalSpec:
    """Return *value* as a canonical ``SIGNAME`` string or signal number.

    ``"term"``, ``"TERM"`` and ``"SIGTERM"`` all map to ``"SIGTERM"``;
    :class:`signal.Signals` members map to their name.
    """

    if isinstance(value, _signal.Signals):
        return value.name
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid signal: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidInputError(f"Invalid signal number: {value}")
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            return int(name)
        if not name.startswith("SIG"):
            name = "SIG" + name
        if _SIGNAL_NAME.match(name):
            return name
    raise InvalidInputError(f"Invalid signal: {value!r}")


def is_hard_kill(sig: SignalSpec) -> bool:
    """Return ``True`` when *sig* is already the non-ignorable kill signal."""

    return sig == HARD_KILL_SIGNAL or sig == 9


def validate_pid(pid: Any, *, label: str = "PID") -> int:
    """Return *pid* unchanged if it is a positive integer."""

    if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
        raise InvalidInputError(f"Invalid {label}: {pid}. Must be a positive integer.")
    return pid


def validate_port(port: Any) -> int:
    """Return *port* unchanged if it lies within 1-65535."""

    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise InvalidInputError(f"Invalid port number: {port}. Must be between 1 and 65535.")
    return port


class KillState(str, Enum):
    """States visited by a single :meth:`KillOrchestrator.kill_one` call."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    ESCALATING = "escalating"
    VERIFYING = "verifying"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class KillConfiguration:
    """Options for one kill operation.

    Durations are in seconds. ``signal`` is ignored on Windows, where
    termination is always forceful.
    """

    signal: SignalSpec = DEFAULT_SIGNAL
    dry_run: bool = False
    tree: bool = False
    timeout: float | None = None
    force_after_timeout: bool = False
    escalation_delay: float = 3.0
    verify: bool = False
    retries: int = 0
    debug: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "signal", normalize_signal(self.signal))
        if isinstance(self.retries, bool) or not isinstance(self.retries, int) or self.retries < 0:
            raise InvalidInputError(f"retries must be a non-negative integer, got {self.retries!r}")
        if self.escalation_delay < 0:
            raise InvalidInputError("escalation_delay must not be negative")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidInputError("timeout must be positive when given")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def replace(self, **changes: Any) -> "KillConfiguration":
        """Return a copy with *changes* applied."""

        return replace(self, **changes)


@dataclass(slots=True)
class KillResult:
    """Outcome of one kill request for one PID.

    ``verified`` is ``None`` when no post-check ran, ``True`` when a liveness
    probe confirmed the process is gone.
    """

    pid: int
    success: bool
    signal: SignalSpec | None = None
    error: str | None = None
    verified: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}


@dataclass(slots=True)
class ProcessInfo:
    """Point-in-time description of a process."""

    pid: int
    name: str | None = None
    command: str | None = None
    ports: list[int] | None = None
    parent_pid: int | None = None
    cpu_usage: str | None = None
    memory_usage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}


@dataclass(slots=True)
class CacheStats:
    size: int
    oldest_age: float | None
    hits: int = 0
    misses: int = 0
    keys: list[str] = field(default_factory=list)
