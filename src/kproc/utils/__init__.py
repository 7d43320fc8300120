"""Subprocess helpers used by the platform probes."""
from __future__ import annotations

from .commands import CommandOutcome, exec_text, hidden_creation_flags, run_command_async

__all__ = [
    "CommandOutcome",
    "exec_text",
    "hidden_creation_flags",
    "run_command_async",
]
