"""
Centralized console output for cbuild.

All output is prefixed with the elapsed time since launch in MM:SS.cc format
(minutes:seconds.centiseconds), so a slow compile or link step stands out in
the build log.

Example output:
    00:00.01 cbuild v0.1.0
    00:00.02 [1/5] Resolving dependencies...
    00:00.35 [compiling] -> clang -c src/main.c -o src/main.o -O2
    00:00.61 [linking] -> clang -o ./app src/main.o

Usage:
    from cbuild.output import log, log_phase, log_detail, log_command

    log_phase(1, 5, "Resolving dependencies...")
    log_command("compiling", "clang -c src/main.c -o src/main.o")
    log_detail("Sources: 3")

Messages passed with verbose_only=True are dropped unless verbose mode is on
(``--verbose`` or CBUILD_VERBOSE=1). Errors and warnings are always printed.
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = True


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Start the launch clock, optionally redirecting output.

    Called automatically by the first log call if the CLI did not call it.
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Seconds since init_timer()."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    elapsed = get_elapsed()
    return f"{int(elapsed // 60):02d}:{elapsed % 60:05.2f}"


def _suppressed(verbose_only: bool) -> bool:
    return verbose_only and not _verbose


def _print(message: str) -> None:
    _output_stream.write(f"{format_timestamp()} {message}\n")
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """Print a timestamped line."""
    if not _suppressed(verbose_only):
        _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """Print a build phase header as ``[phase/total] message``."""
    if not _suppressed(verbose_only):
        _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Print an indented line belonging to the current phase."""
    if not _suppressed(verbose_only):
        _print(" " * indent + message)


def log_command(action: str, command: str, verbose_only: bool = False) -> None:
    """
    Echo a command before it is executed.

    Args:
        action: Step name: compiling, linking, running or clean
        command: Display form of the command
        verbose_only: Drop the line unless verbose mode is on
    """
    if not _suppressed(verbose_only):
        _print(f"[{action}] -> {command}")


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")


def log_build_complete(build_time: float, verbose_only: bool = False) -> None:
    if not _suppressed(verbose_only):
        _print(f"Build time: {build_time:.2f}s")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


def log_success(message: str) -> None:
    _print(message)


class TimedLogger:
    """
    Context manager that brackets a step with its start line and duration.

    Usage:
        with TimedLogger("Compiling sources", phase=(3, 5)) as timed:
            timed.detail("Compiled 10 of 12 files")

    "Done (x.xxs)" is printed only when the block exits without an exception.
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase is None:
            log(f"{self.operation}...", self.verbose_only)
        else:
            current, total = self.phase
            log_phase(current, total, f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            log_detail(f"Done ({time.time() - self.start_time:.2f}s)", verbose_only=self.verbose_only)

    def detail(self, message: str) -> None:
        log_detail(message, verbose_only=self.verbose_only)
