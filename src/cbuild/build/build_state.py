"""Incremental build decisions based on file modification times.

An artifact is stale when it does not exist or when its modification time is
strictly earlier than the file it is derived from. Equal timestamps count as
up to date. There is no header dependency tracking and no content hashing.
"""

from pathlib import Path
from typing import Iterable, Optional


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def is_stale(source: Path, artifact: Path) -> bool:
    """Check whether an artifact must be rebuilt from a source.

    Args:
        source: Input file
        artifact: File derived from source

    Returns:
        True if artifact is missing or older than source
    """
    artifact_time = _mtime(artifact)
    if artifact_time is None:
        return True
    source_time = _mtime(source)
    if source_time is None:
        return False
    return artifact_time < source_time


def target_is_stale(target: Path, inputs: Iterable[Path]) -> bool:
    """Check a build target against every input it is built from.

    Args:
        target: Output artifact (executable, library or archive)
        inputs: Sources or objects the target depends on

    Returns:
        True if target is missing or older than any input
    """
    if _mtime(target) is None:
        return True
    return any(is_stale(path, target) for path in inputs)


class StalenessChecker:
    """Staleness decisions for a project rooted at project_dir.

    Relative paths are resolved against the project root so callers can pass
    the same paths that appear in commands.
    """

    def __init__(self, project_dir: Path):
        self.project_dir = project_dir

    def needs_compile(self, source: Path, object_path: Path) -> bool:
        return is_stale(self.project_dir / source, self.project_dir / object_path)

    def needs_link(self, target: Path, inputs: Iterable[Path]) -> bool:
        return target_is_stale(self.project_dir / target, (self.project_dir / p for p in inputs))
