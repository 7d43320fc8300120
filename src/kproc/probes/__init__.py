"""Platform probes: the only code in kproc that talks to the operating system."""
from __future__ import annotations

import logging
import os

from ..errors import InvalidInputError
from .base import ProcessProbe
from .posix import PosixProbe
from .windows import WindowsProbe

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessProbe",
    "PosixProbe",
    "WindowsProbe",
    "PROBE_KINDS",
    "select_probe",
]

PROBE_KINDS = ("auto", "posix", "windows", "psutil")


def select_probe(kind: str = "auto") -> ProcessProbe:
    """Return a probe for *kind*.

    ``auto`` picks :class:`WindowsProbe` on Windows and :class:`PosixProbe`
    everywhere else.
    """

    kind = (kind or "auto").strip().lower()
    if kind not in PROBE_KINDS:
        raise InvalidInputError(
            f"Unknown probe {kind!r}; expected one of {', '.join(PROBE_KINDS)}"
        )
    if kind == "auto":
        kind = "windows" if os.name == "nt" else "posix"
    if kind == "psutil":
        from .native import PsutilProbe

        probe: ProcessProbe = PsutilProbe()
    elif kind == "windows":
        probe = WindowsProbe()
    else:
        probe = PosixProbe()
    logger.debug("Using %s process probe", probe.name)
    return probe
