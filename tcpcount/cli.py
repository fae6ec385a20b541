"""Command-line options that form the initial connection filter."""

from __future__ import annotations

import argparse
import re
import sys
from collections.abc import Sequence

from .filters import ConnectionFilter

_VERSION = "0.1.0"
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_unsigned(text: str, bits: int) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise ValueError(f"not an unsigned integer: {text!r}")
    value = int(text)
    if value >= 1 << bits:
        raise ValueError(f"out of range: {text!r}")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcpcount", description="Monitor and count TCP connections"
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    parser.add_argument("-p", "--pid", metavar="PID", help="Filter by process ID")
    parser.add_argument(
        "-n",
        "--process-name",
        dest="process",
        metavar="NAME",
        help="Filter by process name (case-sensitive substring match)",
    )
    parser.add_argument(
        "-H",
        "--host",
        metavar="HOST",
        help="Filter by remote host (case-sensitive substring match)",
    )
    parser.add_argument("-P", "--port", metavar="PORT", help="Filter by remote port")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> ConnectionFilter:
    """Parse the command line into the filter the monitor starts with."""
    args = _build_parser().parse_args(argv)
    flt = ConnectionFilter()

    if args.pid is not None:
        try:
            flt.pid = _parse_unsigned(args.pid, 32)
        except ValueError:
            print(f"Warning: Invalid PID '{args.pid}', ignoring", file=sys.stderr)

    if args.process is not None:
        flt.process_name = args.process

    if args.host is not None:
        flt.remote_host = args.host

    if args.port is not None:
        try:
            flt.remote_port = _parse_unsigned(args.port, 16)
        except ValueError:
            print(f"Warning: Invalid port '{args.port}', ignoring", file=sys.stderr)

    return flt