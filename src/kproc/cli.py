from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import Settings
from .errors import InvalidInputError, KprocError, ProcessNotFoundError
from .logging_config import setup_logging
from .manager import ProcessManager
from .models import KillConfiguration, KillResult, ProcessInfo

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_NOT_FOUND = 3


def _kill_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--signal", default="SIGTERM", help="Signal to send (POSIX only)")
    parser.add_argument("--tree", action="store_true", help="Also kill all descendants")
    parser.add_argument("--dry-run", action="store_true", help="Report without killing")
    parser.add_argument("--verify", action="store_true", help="Confirm the process is gone")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Escalate to SIGKILL if the process survives the escalation delay",
    )
    parser.add_argument(
        "--escalation-delay",
        type=float,
        default=3.0,
        help="Seconds to wait before escalating",
    )
    parser.add_argument("--retries", type=int, default=0, help="Additional attempts on failure")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    settings = Settings.from_env()
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--timeout", type=float, default=None, help="Per-command timeout in seconds")
    common.add_argument("--debug", action="store_true", default=settings.debug, help="Debug logging")
    common.add_argument("--json", action="store_true", help="Print machine-readable output")
    common.add_argument(
        "--probe",
        default=settings.probe,
        choices=("auto", "posix", "windows", "psutil"),
        help="Process probe implementation",
    )

    parser = argparse.ArgumentParser(
        prog="kproc", description="Find and terminate processes by PID, port or name"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("pid", parents=[common], help="Kill processes by PID")
    p.add_argument("pids", type=int, nargs="+")
    _kill_options(p)

    p = sub.add_parser("port", parents=[common], help="Kill the main process on a port")
    p.add_argument("port", type=int)
    _kill_options(p)

    p = sub.add_parser("ports", parents=[common], help="Kill every process on the given ports")
    p.add_argument("ports", type=int, nargs="+")
    _kill_options(p)

    p = sub.add_parser("range", parents=[common], help="Kill every process on a port range")
    p.add_argument("start", type=int)
    p.add_argument("end", type=int)
    _kill_options(p)

    p = sub.add_parser("name", parents=[common], help="Kill processes matching a name or command")
    p.add_argument("pattern")
    p.add_argument("--regex", action="store_true", help="Treat the pattern as a regex")
    _kill_options(p)

    p = sub.add_parser("find-port", parents=[common], help="List PIDs bound to a port")
    p.add_argument("port", type=int)

    p = sub.add_parser("find-name", parents=[common], help="List PIDs matching a pattern")
    p.add_argument("pattern")
    p.add_argument("--regex", action="store_true", help="Treat the pattern as a regex")

    p = sub.add_parser("info", parents=[common], help="Show details about a PID")
    p.add_argument("pid", type=int)

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> KillConfiguration:
    return KillConfiguration(
        signal=args.signal,
        dry_run=args.dry_run,
        tree=args.tree,
        timeout=args.timeout,
        force_after_timeout=args.force,
        escalation_delay=args.escalation_delay,
        verify=args.verify,
        retries=args.retries,
        debug=args.debug,
    )


def make_results_table(results: Sequence[KillResult]) -> Table:
    table = Table(title="Kill results", expand=False)
    table.add_column("PID", justify="right")
    table.add_column("Result")
    table.add_column("Signal")
    table.add_column("Verified")
    table.add_column("Error")
    for result in results:
        table.add_row(
            str(result.pid),
            "[green]killed[/]" if result.success else "[red]failed[/]",
            "" if result.signal is None else str(result.signal),
            {True: "yes", False: "no", None: "-"}[result.verified],
            escape(result.error or ""),
        )
    return table


def make_info_table(info: ProcessInfo) -> Table:
    table = Table(title=f"Process {info.pid}", show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    for label, value in (
        ("Name", info.name),
        ("Command", info.command),
        ("Parent PID", info.parent_pid),
        ("Ports", ", ".join(map(str, info.ports or [])) or None),
        ("CPU", info.cpu_usage),
        ("Memory", info.memory_usage),
    ):
        table.add_row(label, "-" if value is None else escape(str(value)))
    return table


async def _dispatch(manager: ProcessManager, args: argparse.Namespace, console: Console) -> int:
    command = args.command
    if command in {"find-port", "find-name"}:
        if command == "find-port":
            pids = await manager.find_pids_by_port(args.port, args.timeout)
        else:
            pids = await manager.find_pids_by_name(
                args.pattern, use_regex=args.regex, timeout=args.timeout
            )
        if args.json:
            console.print_json(json.dumps(pids))
        elif pids:
            console.print(" ".join(map(str, pids)))
        else:
            console.print("[yellow]No matching processes[/]")
        return EXIT_OK if pids else EXIT_NOT_FOUND

    if command == "info":
        info = await manager.get_process_info(args.pid, args.timeout)
        if args.json:
            console.print_json(json.dumps(info.to_dict()))
        else:
            console.print(make_info_table(info))
        return EXIT_OK

    config = build_config(args)
    if command == "pid":
        results = await manager.kill_many(args.pids, config)
    elif command == "port":
        results = [await manager.kill_by_port(args.port, config)]
    elif command == "ports":
        results = await manager.kill_by_ports(args.ports, config)
    elif command == "range":
        results = await manager.kill_by_port_range(args.start, args.end, config)
    else:
        results = await manager.kill_by_name(args.pattern, config, use_regex=args.regex)

    if args.json:
        console.print_json(json.dumps([r.to_dict() for r in results]))
    else:
        console.print(make_results_table(results))
    return EXIT_OK if all(r.success for r in results) else EXIT_FAILED


def run_cli(args: argparse.Namespace, console: Console | None = None) -> int:
    console = console or Console()
    settings = Settings.from_env()
    setup_logging(logging.WARNING, settings.log_file, debug=args.debug or None)
    try:
        manager = ProcessManager(settings=Settings(
            probe=args.probe,
            cache_ttl=settings.cache_ttl,
            debug=args.debug,
            log_file=settings.log_file,
            max_concurrency=settings.max_concurrency,
        ))
        return asyncio.run(_dispatch(manager, args, console))
    except InvalidInputError as exc:
        console.print(f"[red]Invalid input:[/] {escape(str(exc))}")
        return EXIT_INVALID
    except ProcessNotFoundError as exc:
        console.print(f"[yellow]{escape(str(exc))}[/]")
        return EXIT_NOT_FOUND
    except KprocError as exc:
        logger.error("%s", exc)
        return EXIT_FAILED


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
