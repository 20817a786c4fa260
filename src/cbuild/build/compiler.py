"""Compiler.

This module synthesizes and runs compile commands for a project.

Compilation Process:
    1. For each resolved source, compare the source and object mtimes
    2. Compile stale sources one at a time, in resolved order
    3. Abort on the first non-zero exit

Command shape:
    <compiler> -c <source> -o <object> <flags...>

    flags = explicit [compiler] flags, then -I<include> per declared include,
    then the -I flags merged from dependencies.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

from cbuild.config.manifest import ProjectManifest
from cbuild.errors import CbuildError
from cbuild.output import log_command, log_detail
from cbuild.subprocess_utils import ProcessRunner, format_command, format_failure, run_tool

from .build_state import StalenessChecker
from .source_scanner import SourceCollection, SourceFile

logger = logging.getLogger(__name__)


class CompilerError(CbuildError):
    """Raised when a compile command fails."""

    pass


class Compiler:
    """Compiles the sources of one project."""

    def __init__(self, manifest: ProjectManifest, runner: ProcessRunner = run_tool, verbose: bool = False):
        """
        Initialize compiler.

        Args:
            manifest: Project manifest, already augmented by dependency resolution
            runner: Process runner used to execute commands
            verbose: Echo every command and the compiler's warnings
        """
        self.manifest = manifest
        self.runner = runner
        self.verbose = verbose
        self.staleness = StalenessChecker(manifest.project_dir)

    @property
    def flags(self) -> List[str]:
        return self.manifest.all_compiler_flags()

    def compile_command(self, source: SourceFile) -> List[str]:
        """Build the argument vector compiling one source."""
        cmd = [self.manifest.compiler, "-c", str(source.path), "-o", str(source.object_path)]
        cmd.extend(self.flags)
        return cmd

    def needs_compile(self, source: SourceFile) -> bool:
        return self.staleness.needs_compile(source.path, source.object_path)

    def compile_source(self, source: SourceFile) -> Path:
        """
        Compile a single source file.

        Args:
            source: Source to compile

        Returns:
            Object path (relative to the project root)

        Raises:
            CompilerError: If the compiler exits with a non-zero status
        """
        cmd = self.compile_command(source)
        log_command("compiling", format_command(cmd), verbose_only=not self.verbose)

        result = self.runner(cmd, self.manifest.project_dir)
        if result.returncode != 0:
            raise CompilerError(format_failure(cmd, result, f"Compilation failed for {source.path}"))

        if self.verbose and result.stderr:
            # Warnings
            log_detail(result.stderr.rstrip())

        return source.object_path

    def compile_all(self, sources: SourceCollection, progress_bar: Optional[Any] = None) -> List[Path]:
        """
        Compile every stale source in order.

        Args:
            sources: Resolved source collection
            progress_bar: Optional tqdm progress bar advanced once per source

        Returns:
            Object paths that were rebuilt

        Raises:
            CompilerError: On the first failing compile; later sources are not
                attempted
        """
        rebuilt: List[Path] = []
        for source in sources:
            if self.needs_compile(source):
                rebuilt.append(self.compile_source(source))
            else:
                logger.debug(f"Up to date: {source.object_path}")
            if progress_bar is not None:
                progress_bar.update(1)
        return rebuilt
