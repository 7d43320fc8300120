"""Parsers for the text emitted by ``lsof``, ``netstat``, ``ps`` and PowerShell.

Everything here is pure so the probes can be exercised against captured
output. Nothing outside :mod:`kproc.probes` sees raw command text.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterable, NamedTuple

from ..errors import CommandExecutionError, InvalidInputError

__all__ = [
    "Matcher",
    "PsRow",
    "SnapshotRow",
    "build_matcher",
    "dedupe",
    "parse_pid_lines",
    "parse_netstat_pids",
    "parse_netstat_ports",
    "parse_ps_listing",
    "parse_ps_snapshot",
    "parse_windows_ps_json",
    "parse_port_from_address",
    "parse_port_from_lsof",
    "parse_lsof_ports",
]

Matcher = Callable[[str], bool]

_PS_ROW = re.compile(r"^\s*(\d+)\s+(\S+)\s+(.+)$")
_PS_SNAPSHOT = re.compile(
    r"^\s*(\d+)\s+(\S+)\s+(.+?)\s+(\d+)\s+([\d.]+)\s+([\d.]+)$"
)
_IPV6_ADDR = re.compile(r"\[(.*)\]:(\d+)")
_IPV4_ADDR = re.compile(r":(\d+)$")
_LSOF_PORT = re.compile(r":(\d+)(?:->|\s)")


class PsRow(NamedTuple):
    pid: int
    comm: str
    args: str


class SnapshotRow(NamedTuple):
    pid: int
    comm: str
    args: str
    ppid: int
    cpu: str
    mem: str


def dedupe(values: Iterable[int]) -> list[int]:
    """Return *values* without duplicates, keeping first-seen order."""
    return list(dict.fromkeys(values))


def _positive_int(token: str) -> int | None:
    try:
        value = int(token)
    except ValueError:
        return None
    return value if value > 0 else None


def _lines(text: str) -> list[str]:
    return [line for line in text.strip().splitlines() if line.strip()]


def build_matcher(pattern: str, use_regex: bool) -> Matcher:
    """Return a case-insensitive predicate for *pattern*.

    With ``use_regex`` the pattern is searched anywhere in the candidate;
    otherwise it is a plain substring test.
    """

    if use_regex:
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise InvalidInputError(f"Invalid regex pattern: {exc}") from exc
        return lambda s: bool(regex.search(s or ""))

    lowered = pattern.lower()
    return lambda s: lowered in (s or "").lower()


def parse_pid_lines(text: str) -> list[int]:
    """Parse one PID per line (``lsof -t``, ``ps -o pid=``)."""
    pids = (_positive_int(line.strip()) for line in _lines(text))
    return dedupe(pid for pid in pids if pid is not None)


def parse_netstat_pids(text: str, port: int) -> list[int]:
    """Return PIDs from ``netstat -ano`` rows mentioning ``:<port>``.

    Mirrors ``findstr :<port>``: a substring filter, with the PID taken from
    the last column.
    """

    needle = f":{port}"
    pids: list[int] = []
    for line in _lines(text):
        if needle not in line:
            continue
        parts = line.split()
        pid = _positive_int(parts[-1])
        if pid is not None:
            pids.append(pid)
    return dedupe(pids)


def parse_netstat_ports(text: str, pid: int) -> list[int]:
    """Return local ports of ``netstat -ano`` rows owned by *pid*."""
    ports: list[int] = []
    for line in _lines(text):
        parts = line.split()
        if len(parts) < 2 or _positive_int(parts[-1]) != pid:
            continue
        port = parse_port_from_address(parts[1])
        if port:
            ports.append(port)
    return dedupe(ports)


def parse_ps_listing(text: str) -> list[PsRow]:
    """Parse ``ps -A -o pid=,comm=,args=`` output."""
    rows: list[PsRow] = []
    for line in text.splitlines():
        match = _PS_ROW.match(line)
        if match:
            rows.append(PsRow(int(match.group(1)), match.group(2), match.group(3)))
    return rows


def parse_ps_snapshot(text: str) -> SnapshotRow | None:
    """Parse ``ps -p <pid> -o pid=,comm=,args=,ppid=,%cpu=,%mem=`` output."""
    match = _PS_SNAPSHOT.match(text.strip())
    if not match:
        return None
    return SnapshotRow(
        int(match.group(1)),
        match.group(2),
        match.group(3),
        int(match.group(4)),
        match.group(5),
        match.group(6),
    )


def parse_windows_ps_json(text: str) -> list[dict[str, Any]]:
    """Parse ``ConvertTo-Json`` output into a list of objects.

    PowerShell emits a bare object when exactly one process matches; that
    case is normalised to a one-element list.
    """

    text = text.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CommandExecutionError(
            f"Failed to parse PowerShell JSON output: {exc}", "PowerShell"
        ) from exc
    if data is None:
        return []
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        return [data]
    raise CommandExecutionError(
        f"Unexpected PowerShell JSON payload: {type(data).__name__}", "PowerShell"
    )


def parse_port_from_address(addr: str) -> int | None:
    """Extract the port from ``host:port`` or ``[v6addr]:port``."""
    match = _IPV6_ADDR.search(addr)
    if match:
        return int(match.group(2))
    match = _IPV4_ADDR.search(addr)
    return int(match.group(1)) if match else None


def parse_port_from_lsof(line: str) -> int | None:
    """Extract the local port from an ``lsof -i`` row.

    ``node 1234 me 21u IPv4 0t0 TCP *:3000 (LISTEN)`` -> ``3000``
    """

    match = _LSOF_PORT.search(line)
    return int(match.group(1)) if match else None


def parse_lsof_ports(text: str) -> list[int]:
    ports = (parse_port_from_lsof(line) for line in text.splitlines())
    return dedupe(port for port in ports if port)
