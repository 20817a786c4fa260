"""Pytest configuration and fixtures for cbuild tests.

Provides a recording process runner so that build tests never need a real
compiler, and a helper that lays out projects on disk.
"""

import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from cbuild import MANIFEST_NAME, output

# Sources are back-dated so that anything written during a test is newer.
SOURCE_AGE_SECONDS = 1000


class RecordingRunner:
    """Process runner that records commands and fakes their outputs.

    Compile and link commands create the file named after -o; archive
    commands (``ar -rcs <output> ...``) create their output argument.
    """

    def __init__(self, fail_on: Optional[str] = None, returncode: int = 1):
        self.commands: List[List[str]] = []
        self.cwds: List[Path] = []
        self.fail_on = fail_on
        self.returncode = returncode

    def __call__(self, cmd: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        self.commands.append(cmd)
        self.cwds.append(Path(cwd))

        if self.fail_on is not None and self.fail_on in " ".join(cmd):
            return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr="error: simulated failure")

        produced = self._output_of(cmd)
        if produced is not None:
            path = Path(cwd) / produced
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(" ".join(cmd))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    @staticmethod
    def _output_of(cmd: List[str]) -> Optional[str]:
        if cmd[:2] == ["ar", "-rcs"]:
            return cmd[2]
        if "-o" in cmd:
            return cmd[cmd.index("-o") + 1]
        return None

    def rendered(self) -> List[str]:
        return [" ".join(cmd) for cmd in self.commands]

    def compile_commands(self) -> List[List[str]]:
        return [cmd for cmd in self.commands if "-c" in cmd]


def backdate(path: Path, seconds: float = SOURCE_AGE_SECONDS) -> None:
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def runner_factory() -> Callable[..., RecordingRunner]:
    """Return the RecordingRunner class for tests that need a failing runner."""
    return RecordingRunner


@pytest.fixture
def set_mtime() -> Callable[[Path, float], None]:
    """Return a function setting a file's mtime to now + offset seconds."""

    def _set(path: Path, offset: float) -> None:
        stamp = time.time() + offset
        os.utime(path, (stamp, stamp))

    return _set


@pytest.fixture
def make_project() -> Callable[..., Path]:
    """Return a function that writes a project (manifest plus files) to disk."""

    def _make(root: Path, manifest: str, files: Optional[Dict[str, str]] = None) -> Path:
        root.mkdir(parents=True, exist_ok=True)
        (root / MANIFEST_NAME).write_text(manifest)
        for relative, content in (files or {}).items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            backdate(path)
        return root

    return _make


@pytest.fixture(autouse=True)
def _capture_output_stream():
    """Route cbuild.output through the stream pytest is currently capturing."""
    output._output_stream = sys.stdout
    yield
    output._output_stream = sys.stdout
    output.set_verbose(True)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__
