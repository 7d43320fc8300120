"""Platform-neutral contract for querying and signalling processes."""
from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import ProcessInfo, SignalSpec
from .parsing import Matcher

__all__ = ["ProcessProbe"]


class ProcessProbe(ABC):
    """Capability set every platform variant provides.

    Discovery methods treat "nothing found" and a lookup command that exits
    non-zero the same way: they return an empty list. Port discovery still
    raises when its command cannot be started. :meth:`send_signal` always
    raises :class:`~kproc.errors.CommandExecutionError` or
    :class:`~kproc.errors.CommandTimeoutError` so the orchestrator can count
    the attempt as failed.
    """

    #: Short identifier used in logs and settings.
    name: str = "abstract"
    #: ``False`` where termination has a single, forceful strength.
    supports_signals: bool = True
    #: ``True`` when :meth:`send_signal` can take down a whole tree itself.
    native_tree_kill: bool = False

    @abstractmethod
    async def list_pids_by_port(self, port: int, *, timeout: float | None = None) -> list[int]:
        """Return PIDs bound to *port* in discovery order."""

    @abstractmethod
    async def list_pids_by_name_or_command(
        self, matcher: Matcher, *, timeout: float | None = None
    ) -> list[int]:
        """Return PIDs whose name or full command line satisfies *matcher*."""

    @abstractmethod
    async def list_direct_children(self, ppid: int, *, timeout: float | None = None) -> list[int]:
        """Return the immediate children of *ppid*."""

    @abstractmethod
    async def list_ports_for_pid(self, pid: int, *, timeout: float | None = None) -> list[int]:
        """Return ports *pid* is listening on or connected through."""

    @abstractmethod
    async def is_alive(self, pid: int) -> bool:
        """Return whether *pid* exists, without affecting it."""

    @abstractmethod
    async def send_signal(
        self,
        pid: int,
        sig: SignalSpec,
        *,
        tree: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Deliver *sig* to *pid*.

        ``tree`` is honoured only by probes with :attr:`native_tree_kill`.
        """

    @abstractmethod
    async def get_snapshot(self, pid: int, *, timeout: float | None = None) -> ProcessInfo:
        """Return name, command, parent and resource usage for *pid*."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<{type(self).__name__} name={self.name!r}>"
