"""Find and terminate processes by PID, port or name, on Windows and POSIX."""

__version__ = "1.0.0"

from .cache import LookupCache, name_key, port_key
from .config import Settings
from .errors import (
    CommandExecutionError,
    CommandTimeoutError,
    InvalidInputError,
    KprocError,
    ProcessNotFoundError,
    ProcessStillAliveError,
)
from .kill import KillOrchestrator
from .logging_config import is_debug_enabled, set_debug, setup_logging
from .manager import (
    ProcessManager,
    clear_cache,
    find_descendants,
    find_pid_by_port,
    find_pids_by_name,
    find_pids_by_port,
    find_ports_for_pid,
    get_cache_stats,
    get_default_manager,
    get_process_info,
    invalidate_cache,
    is_alive,
    kill_by_name,
    kill_by_pids,
    kill_by_port,
    kill_by_port_range,
    kill_by_ports,
    kill_many,
    kill_one,
    set_default_manager,
)
from .models import CacheStats, KillConfiguration, KillResult, KillState, ProcessInfo
from .probes import PosixProbe, ProcessProbe, WindowsProbe, select_probe
from .tree import ProcessTreeResolver
from .batch import BatchCoordinator
from .lookup import ProcessLookup

__all__ = [
    "__version__",
    "BatchCoordinator",
    "CacheStats",
    "CommandExecutionError",
    "CommandTimeoutError",
    "InvalidInputError",
    "KillConfiguration",
    "KillOrchestrator",
    "KillResult",
    "KillState",
    "KprocError",
    "LookupCache",
    "PosixProbe",
    "ProcessInfo",
    "ProcessLookup",
    "ProcessManager",
    "ProcessNotFoundError",
    "ProcessProbe",
    "ProcessStillAliveError",
    "ProcessTreeResolver",
    "Settings",
    "WindowsProbe",
    "clear_cache",
    "find_descendants",
    "find_pid_by_port",
    "find_pids_by_name",
    "find_pids_by_port",
    "find_ports_for_pid",
    "get_cache_stats",
    "get_default_manager",
    "get_process_info",
    "invalidate_cache",
    "is_alive",
    "is_debug_enabled",
    "kill_by_name",
    "kill_by_pids",
    "kill_by_port",
    "kill_by_port_range",
    "kill_by_ports",
    "kill_many",
    "kill_one",
    "name_key",
    "port_key",
    "select_probe",
    "set_debug",
    "set_default_manager",
    "setup_logging",
]
