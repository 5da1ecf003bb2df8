"""``bucketq --doctor``: environment diagnostics command.

Gathers system information and renders a Rich table summarising
whether the runtime environment satisfies bucketq's requirements.

This module lives in the CLI layer and renders via Rich when it is
installed.  No business logic resides here; it purely collects and
displays diagnostic data.
"""

from __future__ import annotations

import platform
import sys

from bucketq.cli import exit_codes
from bucketq.cli.console import console, rich_available
from bucketq.version import __version__


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = "OK" if ok else "FAIL (>=3.10 required)"
    return "Python", version, status


def _lmdb_binding_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the py-lmdb binding row."""
    try:
        import lmdb
    except ImportError:
        return "lmdb", "NOT INSTALLED", "FAIL"
    return "lmdb", getattr(lmdb, "__version__", "unknown"), "OK"


def _lmdb_library_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the linked LMDB C library row."""
    try:
        import lmdb
    except ImportError:
        return "LMDB library", "unavailable", "FAIL"
    major, minor, patch = lmdb.version()[:3]
    return "LMDB library", f"{major}.{minor}.{patch}", "OK"


def _rich_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the optional Rich row."""
    if rich_available():
        from importlib.metadata import PackageNotFoundError, version

        try:
            return "rich", version("rich"), "OK"
        except PackageNotFoundError:
            return "rich", "unknown", "OK"
    return "rich", "not installed", "WARN"


def _os_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    system_display = {
        "Windows": "Windows",
        "Linux": "Linux",
        "Darwin": "macOS",
    }.get(system_raw, system_raw)
    value = f"{system_display} {platform.release()} ({platform.machine()})"
    return "OS", value, "OK"


def _bucketq_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the bucketq version row."""
    return "bucketq", __version__, "OK"


def collect_checks() -> list[tuple[str, str, str]]:
    return [
        _bucketq_version_check(),
        _python_version_check(),
        _lmdb_binding_check(),
        _lmdb_library_check(),
        _rich_check(),
        _os_check(),
    ]


def _print_plain_doctor_table(checks: list[tuple[str, str, str]]) -> None:
    """Render doctor output without Rich."""
    print("\nbucketq doctor", file=sys.stderr)
    print("=" * 56, file=sys.stderr)
    print(f"{'Component':<14} {'Value':<30} {'Status':<8}", file=sys.stderr)
    print("-" * 56, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<14} {value:<30} {status:<8}", file=sys.stderr)
    print(file=sys.stderr)


def _status_markup(status: str) -> str:
    if status.startswith("FAIL"):
        return f"[red]{status}[/red]"
    if status.startswith("WARN"):
        return f"[yellow]{status}[/yellow]"
    return f"[green]{status}[/green]"


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor() -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when all critical checks pass,
        :data:`exit_codes.GENERAL_ERROR` if a critical check fails.
    """
    checks = collect_checks()
    has_failure = any(status.startswith("FAIL") for _, _, status in checks)

    if rich_available():
        from rich.table import Table

        from bucketq.cli.console import get_rich_console

        table = Table(
            title="bucketq doctor",
            show_header=True,
            header_style="bold cyan",
            border_style="dim",
        )
        table.add_column("Component", style="bold", min_width=14)
        table.add_column("Value", min_width=20)
        table.add_column("Status", justify="center", min_width=8)

        for label, value, status in checks:
            table.add_row(label, value, _status_markup(status))

        rich_console = get_rich_console()
        rich_console.print()
        rich_console.print(table)
        rich_console.print()
    else:
        _print_plain_doctor_table(checks)

    if has_failure:
        console.print("Some checks failed.", style="bold red")
        return exit_codes.GENERAL_ERROR

    console.print("All checks passed.", style="bold green")
    return exit_codes.SUCCESS
