"""
Build orchestration for cbuild projects.

This module ties the build steps together and exposes the build, run and
clean lifecycle operations used by the CLI.

Build phases:
    1. Resolve dependencies (building stale dependencies first)
    2. Scan sources
    3. Compile stale sources
    4. Link or archive the target
    5. Write compile_commands.json (when gen_config is set)

Every step is synchronous. The first failing step raises a CbuildError
subclass and nothing after it runs.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, assert_never

from tqdm import tqdm

from cbuild.config.manifest import ProjectManifest, TargetKind, load_manifest
from cbuild.errors import CbuildError
from cbuild.output import TimedLogger, log_command, log_detail, log_phase, log_warning
from cbuild.subprocess_utils import ProcessRunner, format_command, run_program, run_tool

from .compile_database import write_compile_database
from .compiler import Compiler
from .dependency_resolver import DependencyResolver
from .linker import Linker
from .source_scanner import SourceScanner

logger = logging.getLogger(__name__)

TOTAL_PHASES = 5


class CleanError(CbuildError):
    """Raised when a build artifact cannot be removed."""

    pass


@dataclass
class BuildResult:
    """
    Result of a successful build.

    Attributes:
        project_dir: Project root
        output_path: Build target (absolute)
        kind: Target kind of the project
        compiled: Objects rebuilt in this run
        linked: Whether the link/archive step ran
        compile_database: Path of compile_commands.json, if written
        build_time: Wall-clock seconds
    """

    project_dir: Path
    output_path: Path
    kind: TargetKind
    compiled: List[Path] = field(default_factory=list)
    linked: bool = False
    compile_database: Optional[Path] = None
    build_time: float = 0.0

    def run_command(self) -> Optional[List[str]]:
        """Command that runs the built program, or None for library targets."""
        kind = self.kind
        match kind:
            case TargetKind.EXECUTABLE:
                return [str(self.output_path)]
            case TargetKind.SHARED_LIBRARY | TargetKind.STATIC_ARCHIVE:
                return None
            case _:
                assert_never(kind)


class BuildOrchestrator:
    """Runs the build, run and clean operations for a project."""

    def __init__(
        self,
        verbose: bool = False,
        runner: ProcessRunner = run_tool,
        program_runner: ProcessRunner = run_program,
        platform: Optional[str] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            verbose: Echo every command and per-file details
            runner: Process runner for compiler, archiver and linker
            program_runner: Process runner for the built program (run)
            platform: sys.platform style identifier; defaults to the host
        """
        self.verbose = verbose
        self.runner = runner
        self.program_runner = program_runner
        self.platform = platform

    def build(self, project_dir: Path, clean: bool = False) -> BuildResult:
        """
        Build the project in project_dir.

        Args:
            project_dir: Directory containing Cargoc.toml
            clean: Remove objects and the build target first

        Returns:
            BuildResult

        Raises:
            CbuildError: If any step fails
        """
        manifest = load_manifest(project_dir)
        if clean:
            self.clean_manifest(manifest)

        log_phase(1, TOTAL_PHASES, "Resolving dependencies...")
        resolver = DependencyResolver(self.build_resolved, platform=self.platform)
        resolved = resolver.resolve(manifest)
        if resolved.dependencies:
            log_detail(f"Dependencies: {len(resolved.dependencies)}", verbose_only=True)

        return self.build_resolved(resolved)

    def build_resolved(self, manifest: ProjectManifest) -> BuildResult:
        """
        Build a project whose dependencies are already resolved.

        Also used by the dependency resolver to build stale dependencies.
        """
        start_time = time.time()
        project_dir = manifest.project_dir

        log_phase(2, TOTAL_PHASES, f"Scanning sources of '{manifest.name}'...")
        scanner = SourceScanner(project_dir, recursive=manifest.collect_rec)
        sources = scanner.scan(manifest.sources)
        log_detail(f"Sources: {len(sources)}", verbose_only=True)

        compiler = Compiler(manifest, runner=self.runner, verbose=self.verbose)
        with TimedLogger("Compiling sources", phase=(3, TOTAL_PHASES)) as timed:
            if self.verbose:
                compiled = compiler.compile_all(sources)
            else:
                with tqdm(total=len(sources), desc="Compiling", unit="file", ncols=80, leave=False) as pbar:
                    compiled = compiler.compile_all(sources, progress_bar=pbar)
            timed.detail(f"Compiled {len(compiled)} of {len(sources)} files")

        log_phase(4, TOTAL_PHASES, "Linking...")
        linker = Linker(manifest, runner=self.runner, verbose=self.verbose, platform=self.platform)
        object_files = sources.object_files
        linked = bool(compiled) or linker.needs_link(object_files)
        if linked:
            linker.link(object_files)
        else:
            log_detail(f"{linker.output_path} is up to date")

        compile_database = None
        if manifest.gen_config:
            log_phase(5, TOTAL_PHASES, "Writing compile database...")
            compile_database = write_compile_database(manifest, sources)

        return BuildResult(
            project_dir=project_dir,
            output_path=project_dir / linker.output_path,
            kind=manifest.kind,
            compiled=compiled,
            linked=linked,
            compile_database=compile_database,
            build_time=time.time() - start_time,
        )

    def run(self, project_dir: Path) -> int:
        """
        Build the project, then run the produced executable.

        Library targets are built but not run.

        Returns:
            Exit status of the program (0 for library targets)
        """
        result = self.build(project_dir)
        cmd = result.run_command()
        if cmd is None:
            log_detail(f"{result.output_path.name} is a {result.kind.value} target; nothing to run")
            return 0

        log_command("running", format_command(cmd))
        completed = self.program_runner(cmd, result.project_dir)
        return completed.returncode

    def clean(self, project_dir: Path) -> List[Path]:
        """
        Remove every object file and the build target of a project.

        Returns:
            Paths that were removed
        """
        return self.clean_manifest(load_manifest(project_dir))

    def clean_manifest(self, manifest: ProjectManifest) -> List[Path]:
        """
        Remove the artifacts of a loaded manifest.

        Missing files are reported and skipped.

        Raises:
            CleanError: If an existing file cannot be removed
        """
        scanner = SourceScanner(manifest.project_dir, recursive=manifest.collect_rec)
        sources = scanner.scan(manifest.sources)
        targets = [*sources.object_files, manifest.output_path(self.platform)]

        removed: List[Path] = []
        for relative in targets:
            path = manifest.project_dir / relative
            try:
                path.unlink()
            except FileNotFoundError:
                log_warning(f"Nothing to clean at '{relative}'")
                continue
            except OSError as e:
                raise CleanError(f"Could not delete file ['{relative}']: {e}") from e
            log_command("clean", str(relative))
            removed.append(path)
        return removed
