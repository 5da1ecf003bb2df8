"""CLI application entry point and command routing for bucketq.

This module is the **sole error boundary** for the entire application.
It catches :class:`~bucketq.exceptions.BucketqError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, printing a one-line message on stderr
and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here: all work is delegated to the core
  service and the infrastructure layer.
* Store output is written to the binary stdout stream by
  :mod:`bucketq.cli.render`; diagnostics go through the stderr console.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import BinaryIO, NoReturn

from bucketq.cli import exit_codes
from bucketq.cli.console import console
from bucketq.core.resolver import DEFAULT_SEPARATOR
from bucketq.exceptions import BucketqError
from bucketq.utils.log import configure_logging
from bucketq.version import __version__

USAGE = "%(prog)s [options] <db-path> [bucket-path] [key] [value]"


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Flags shared by every store operation."""

    separator: str = DEFAULT_SEPARATOR
    verbose: bool = False
    tree: bool = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

class _ArgumentParser(argparse.ArgumentParser):
    """Parser whose usage errors exit with :data:`exit_codes.GENERAL_ERROR`."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(exit_codes.GENERAL_ERROR, f"error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    The number of positional arguments selects the operation:

    * ``bucketq <db>``                        list top-level buckets
    * ``bucketq <db> <bucket>``               list keys in a bucket
    * ``bucketq <db> <bucket> <key>``         print a value
    * ``bucketq <db> <bucket> <key> <val>``   store a value

    Flags are only recognised before ``<db>``; every later argument is
    positional, so keys and values may start with a dash.
    """
    parser = _ArgumentParser(
        prog="bucketq",
        usage=USAGE,
        description="Inspect and edit nested buckets of an embedded key-value store.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-sep",
        "--sep",
        dest="separator",
        default=DEFAULT_SEPARATOR,
        metavar="STRING",
        help="bucket separator (default: %(default)r)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="verbose output",
    )
    parser.add_argument(
        "-tree",
        "--tree",
        action="store_true",
        help="dump bucket tree",
    )
    parser.add_argument(
        "--doctor",
        action="store_true",
        help="print environment diagnostics and exit",
    )
    parser.add_argument(
        "args",
        nargs=argparse.REMAINDER,
        metavar="ARG",
        help="<db-path> [bucket-path] [key] [value]",
    )
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _run_store_command(
    positionals: list[str],
    options: CliOptions,
    out: BinaryIO,
) -> int:
    """Open the store named by the first positional and run one operation."""
    from bucketq.cli.render import render_buckets, render_keys, render_tree, write_value
    from bucketq.config import StoreConfig
    from bucketq.core.query_service import QueryService
    from bucketq.infra.lmdb_store import open_store

    db_path, *rest = positionals

    with open_store(db_path, StoreConfig.from_env()) as store:
        service = QueryService(store, separator=options.separator)

        if options.tree:
            render_tree(service.dump_tree(), out)
        elif len(rest) == 0:
            render_buckets(service.list_buckets(with_stats=options.verbose), out)
        elif len(rest) == 1:
            bucket, = rest
            render_keys(service.list_keys(bucket), out, verbose=options.verbose)
        elif len(rest) == 2:
            bucket, key = rest
            write_value(service.get_key(bucket, key), out, verbose=options.verbose)
        else:
            bucket, key, value = rest
            service.set_key(bucket, key, value)

    out.flush()
    return exit_codes.SUCCESS


def _handle_doctor() -> int:
    """Dispatch the ``--doctor`` diagnostics command."""
    from bucketq.cli.doctor import run_doctor

    return run_doctor()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None, stdout: BinaryIO | None = None) -> int:
    """Run the bucketq CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.
    stdout:
        Binary stream receiving store output.  Defaults to the buffer
        behind ``sys.stdout``.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    if args.doctor:
        return _handle_doctor()

    positionals: list[str] = args.args
    if not positionals or (not args.tree and len(positionals) > 4):
        parser.print_help(sys.stderr)
        return exit_codes.GENERAL_ERROR

    options = CliOptions(
        separator=args.separator,
        verbose=args.verbose,
        tree=args.tree,
    )
    out = stdout if stdout is not None else sys.stdout.buffer
    return _run_store_command(positionals, options, out)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli(argv: list[str] | None = None) -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main(argv)
        sys.exit(code)
    except BucketqError as exc:
        console.print(f"{exc.prefix}{exc}", style="bold red")
        if exc.hint:
            console.print(f"hint: {exc.hint}", style="yellow")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\nAborted by user.", style="yellow")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            f"error: unexpected {type(exc).__name__}: {exc}\n"
            "  Please report this issue.",
            style="bold red",
        )
        sys.exit(exit_codes.GENERAL_ERROR)
