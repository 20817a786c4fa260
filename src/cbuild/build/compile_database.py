"""Compile database (compile_commands.json) generation.

Editors and language servers read compile_commands.json to learn how each
file is compiled. One record is written per resolved source, whether or not
it was rebuilt in this run:

    [
      {
        "directory": "/abs/project",
        "file": "src/main.c",
        "output": "src/main.o",
        "arguments": ["clang", "-O2", "-Iinclude"]
      }
    ]
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List

from cbuild.config.manifest import ProjectManifest
from cbuild.errors import CbuildError

from .source_scanner import SourceCollection

logger = logging.getLogger(__name__)

COMPILE_DATABASE_NAME = "compile_commands.json"


class CompileDatabaseError(CbuildError):
    """Raised when the compile database cannot be written."""

    pass


@dataclass(frozen=True)
class CompileRecord:
    """One compile_commands.json entry."""

    directory: str
    file: str
    output: str
    arguments: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_records(manifest: ProjectManifest, sources: SourceCollection) -> List[CompileRecord]:
    """Create one record per resolved source.

    arguments is the compiler name followed by every accumulated compiler
    flag (explicit flags, includes, dependency includes).
    """
    directory = manifest.project_dir.resolve().as_posix()
    arguments = [manifest.compiler, *manifest.all_compiler_flags()]
    return [
        CompileRecord(
            directory=directory,
            file=source.path.as_posix(),
            output=source.object_path.as_posix(),
            arguments=list(arguments),
        )
        for source in sources
    ]


def write_compile_database(manifest: ProjectManifest, sources: SourceCollection) -> Path:
    """
    Write compile_commands.json into the project root.

    Args:
        manifest: Resolved project manifest
        sources: Every resolved source of the project

    Returns:
        Path of the written file

    Raises:
        CompileDatabaseError: If the file cannot be written
    """
    path = manifest.project_dir / COMPILE_DATABASE_NAME
    records = [record.to_dict() for record in build_records(manifest, sources)]
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise CompileDatabaseError(f"Could not write {path}: {e}") from e

    logger.debug(f"Wrote {len(records)} compile records to {path}")
    return path
