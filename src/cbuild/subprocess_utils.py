"""Process execution for the build steps and for `cbuild run`.

Every compiler, archiver and linker invocation goes through run_tool, and the
built program goes through run_program. Both take an argument vector and the
project root; orchestrator tests substitute their own ProcessRunner.
"""

import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

# Build steps only look at returncode, stdout and stderr of the result.
ProcessRunner = Callable[[Sequence[str], Path], subprocess.CompletedProcess]


def get_subprocess_creation_flags() -> int:
    """CREATE_NO_WINDOW on Windows so compiler runs do not flash a console; 0 elsewhere."""
    return subprocess.CREATE_NO_WINDOW if sys.platform == "win32" else 0


def safe_run(cmd: Sequence[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """subprocess.run with the platform creation flags and a closed stdin.

    A caller's own creationflags are combined with the platform flags, and a
    caller's own stdin is left alone. Tools never read from the terminal.
    """
    platform_flags = get_subprocess_creation_flags()
    if "creationflags" in kwargs:
        kwargs["creationflags"] |= platform_flags
    elif platform_flags:
        kwargs["creationflags"] = platform_flags
    kwargs.setdefault("stdin", subprocess.DEVNULL)
    return subprocess.run(list(cmd), **kwargs)


def run_tool(cmd: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run a compiler, archiver or linker and capture its output.

    No timeout is applied; the call blocks until the tool exits. A missing
    executable is reported as exit status 127 instead of raising, so callers
    treat it like any other failed step.

    Args:
        cmd: Argument vector
        cwd: Working directory (the project root)

    Returns:
        CompletedProcess with text stdout/stderr
    """
    try:
        return safe_run(cmd, cwd=cwd, capture_output=True, text=True)
    except FileNotFoundError as e:
        return subprocess.CompletedProcess(list(cmd), 127, stdout="", stderr=str(e))


def run_program(cmd: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run a built program attached to the current terminal.

    Unlike run_tool, stdin/stdout/stderr are inherited so the program can
    interact with the user.
    """
    try:
        return subprocess.run(list(cmd), cwd=cwd)
    except FileNotFoundError as e:
        return subprocess.CompletedProcess(list(cmd), 127, stdout=None, stderr=str(e))


def format_command(cmd: Sequence[str]) -> str:
    """Display form of an argument vector, as echoed in the build log."""
    return " ".join(cmd)


def format_failure(cmd: Sequence[str], result: subprocess.CompletedProcess, header: str) -> str:
    """Build the diagnostic for a failed command."""
    error_msg = f"{header}\n"
    error_msg += f"Command: {format_command(cmd)}\n"
    error_msg += f"Exit status: {result.returncode}"
    stderr: Optional[str] = result.stderr
    stdout: Optional[str] = result.stdout
    if stderr:
        error_msg += f"\nstderr: {stderr}"
    if stdout:
        error_msg += f"\nstdout: {stdout}"
    return error_msg
