"""High-level entry points wiring probe, cache, resolver and orchestrator.

:class:`ProcessManager` owns one of each collaborator so independent managers
(and tests) never share state. The module-level coroutines delegate to a
lazily created default manager for callers that just want to free a port.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Sequence

from .batch import BatchCoordinator
from .cache import LookupCache
from .config import Settings
from .kill import KillOrchestrator
from .logging_config import set_debug
from .lookup import ProcessLookup
from .models import CacheStats, KillConfiguration, KillResult, ProcessInfo
from .probes import ProcessProbe, select_probe
from .tree import ProcessTreeResolver

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessManager",
    "get_default_manager",
    "set_default_manager",
    "kill_one",
    "kill_many",
    "kill_by_pids",
    "kill_by_port",
    "kill_by_ports",
    "kill_by_port_range",
    "kill_by_name",
    "find_pids_by_port",
    "find_pid_by_port",
    "find_pids_by_name",
    "find_ports_for_pid",
    "find_descendants",
    "get_process_info",
    "is_alive",
    "clear_cache",
    "invalidate_cache",
    "get_cache_stats",
]


def _options(config: KillConfiguration | None, overrides: dict[str, Any]) -> KillConfiguration:
    config = config or KillConfiguration()
    return config.replace(**overrides) if overrides else config


class ProcessManager:
    """Facade over the kproc engine.

    Keyword overrides accepted by the kill methods are applied on top of
    ``config``, so ``kill_by_port(3000, tree=True)`` and
    ``kill_by_port(3000, KillConfiguration(tree=True))`` are equivalent.
    """

    def __init__(
        self,
        probe: ProcessProbe | None = None,
        cache: LookupCache | None = None,
        *,
        settings: Settings | None = None,
        orchestrator: KillOrchestrator | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.probe = probe or select_probe(self.settings.probe)
        self.cache = cache if cache is not None else LookupCache(self.settings.cache_ttl)
        self.resolver = ProcessTreeResolver(self.probe)
        self.orchestrator = orchestrator or KillOrchestrator(self.probe, self.resolver)
        self.lookup = ProcessLookup(self.probe, self.cache)
        self.batch = BatchCoordinator(
            self.orchestrator,
            self.lookup,
            max_concurrency=self.settings.max_concurrency,
        )
        if self.settings.debug:
            set_debug(True)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProcessManager":
        return cls(settings=settings or Settings.from_env())

    # -- killing --------------------------------------------------------
    async def kill_one(
        self, pid: int, config: KillConfiguration | None = None, **overrides: Any
    ) -> KillResult:
        return await self.orchestrator.kill_one(pid, _options(config, overrides))

    async def kill_many(
        self, pids: Iterable[int], config: KillConfiguration | None = None, **overrides: Any
    ) -> list[KillResult]:
        return await self.batch.kill_many(pids, _options(config, overrides))

    kill_by_pids = kill_many

    async def kill_by_port(
        self, port: int, config: KillConfiguration | None = None, **overrides: Any
    ) -> KillResult:
        return await self.batch.kill_by_port(port, _options(config, overrides))

    async def kill_by_ports(
        self, ports: Sequence[int], config: KillConfiguration | None = None, **overrides: Any
    ) -> list[KillResult]:
        return await self.batch.kill_by_ports(ports, _options(config, overrides))

    async def kill_by_port_range(
        self,
        start: int,
        end: int,
        config: KillConfiguration | None = None,
        **overrides: Any,
    ) -> list[KillResult]:
        return await self.batch.kill_by_port_range(start, end, _options(config, overrides))

    async def kill_by_name(
        self,
        pattern: str,
        config: KillConfiguration | None = None,
        *,
        use_regex: bool = False,
        **overrides: Any,
    ) -> list[KillResult]:
        return await self.batch.kill_by_name(
            pattern, _options(config, overrides), use_regex=use_regex
        )

    # -- discovery ------------------------------------------------------
    async def find_pids_by_port(self, port: int, timeout: float | None = None) -> list[int]:
        return await self.lookup.find_pids_by_port(port, timeout)

    async def find_pid_by_port(self, port: int, timeout: float | None = None) -> int:
        return await self.lookup.find_pid_by_port(port, timeout)

    async def find_pids_by_name(
        self, pattern: str, *, use_regex: bool = False, timeout: float | None = None
    ) -> list[int]:
        return await self.lookup.find_pids_by_name(pattern, use_regex=use_regex, timeout=timeout)

    async def find_ports_for_pid(self, pid: int, timeout: float | None = None) -> list[int]:
        return await self.lookup.find_ports_for_pid(pid, timeout)

    async def find_descendants(self, pid: int, timeout: float | None = None) -> list[int]:
        return await self.resolver.find_descendants(pid, timeout)

    async def get_process_info(self, pid: int, timeout: float | None = None) -> ProcessInfo:
        return await self.lookup.get_process_info(pid, timeout)

    async def is_alive(self, pid: int) -> bool:
        return await self.lookup.is_alive(pid)

    # -- cache ----------------------------------------------------------
    def clear_cache(self) -> None:
        self.cache.clear()

    def invalidate_cache(self, key: str) -> bool:
        return self.cache.invalidate(key)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()


_default_lock = threading.Lock()
_default_manager: ProcessManager | None = None


def get_default_manager() -> ProcessManager:
    """Return the shared manager, building it from the environment once."""

    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = ProcessManager.from_settings()
        return _default_manager


def set_default_manager(manager: ProcessManager | None) -> None:
    """Replace the shared manager; ``None`` rebuilds it on next use."""

    global _default_manager
    with _default_lock:
        _default_manager = manager


async def kill_one(pid: int, config: KillConfiguration | None = None, **overrides: Any) -> KillResult:
    return await get_default_manager().kill_one(pid, config, **overrides)


async def kill_many(
    pids: Iterable[int], config: KillConfiguration | None = None, **overrides: Any
) -> list[KillResult]:
    return await get_default_manager().kill_many(pids, config, **overrides)


kill_by_pids = kill_many


async def kill_by_port(port: int, config: KillConfiguration | None = None, **overrides: Any) -> KillResult:
    return await get_default_manager().kill_by_port(port, config, **overrides)


async def kill_by_ports(
    ports: Sequence[int], config: KillConfiguration | None = None, **overrides: Any
) -> list[KillResult]:
    return await get_default_manager().kill_by_ports(ports, config, **overrides)


async def kill_by_port_range(
    start: int, end: int, config: KillConfiguration | None = None, **overrides: Any
) -> list[KillResult]:
    return await get_default_manager().kill_by_port_range(start, end, config, **overrides)


async def kill_by_name(
    pattern: str,
    config: KillConfiguration | None = None,
    *,
    use_regex: bool = False,
    **overrides: Any,
) -> list[KillResult]:
    return await get_default_manager().kill_by_name(
        pattern, config, use_regex=use_regex, **overrides
    )


async def find_pids_by_port(port: int, timeout: float | None = None) -> list[int]:
    return await get_default_manager().find_pids_by_port(port, timeout)


async def find_pid_by_port(port: int, timeout: float | None = None) -> int:
    return await get_default_manager().find_pid_by_port(port, timeout)


async def find_pids_by_name(
    pattern: str, *, use_regex: bool = False, timeout: float | None = None
) -> list[int]:
    return await get_default_manager().find_pids_by_name(
        pattern, use_regex=use_regex, timeout=timeout
    )


async def find_ports_for_pid(pid: int, timeout: float | None = None) -> list[int]:
    return await get_default_manager().find_ports_for_pid(pid, timeout)


async def find_descendants(pid: int, timeout: float | None = None) -> list[int]:
    return await get_default_manager().find_descendants(pid, timeout)


async def get_process_info(pid: int, timeout: float | None = None) -> ProcessInfo:
    return await get_default_manager().get_process_info(pid, timeout)


async def is_alive(pid: int) -> bool:
    return await get_default_manager().is_alive(pid)


def clear_cache() -> None:
    get_default_manager().clear_cache()


def invalidate_cache(key: str) -> bool:
    return get_default_manager().invalidate_cache(key)


def get_cache_stats() -> CacheStats:
    return get_default_manager().cache_stats()
