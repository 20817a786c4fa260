"""Linker.

This module synthesizes and runs the final link (or archive) step.

Command shape by target kind:
    Executable:    <linker> -o <output> <objects...> <linkerFlags...>
    SharedLibrary: <linker> -shared -o <output> <objects...> <linkerFlags...>
    StaticArchive: ar -rcs <output> <objects...>

    linkerFlags = explicit [linker] flags, libs, dependency artifacts and,
    when default_libs is set, the host's system libraries. Static archives
    take no linker flags.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, assert_never

from cbuild.config.manifest import ProjectManifest, TargetKind
from cbuild.errors import CbuildError
from cbuild.output import log_command, log_detail
from cbuild.subprocess_utils import ProcessRunner, format_command, format_failure, run_tool

from .build_state import StalenessChecker

logger = logging.getLogger(__name__)

ARCHIVER = "ar"
ARCHIVER_FLAGS = "-rcs"
SHARED_FLAG = "-shared"


class LinkerError(CbuildError):
    """Raised when a link or archive command fails."""

    pass


class Linker:
    """Links (or archives) the objects of one project into its build target."""

    def __init__(
        self,
        manifest: ProjectManifest,
        runner: ProcessRunner = run_tool,
        verbose: bool = False,
        platform: Optional[str] = None,
    ):
        """
        Initialize linker.

        Args:
            manifest: Project manifest, already augmented by dependency resolution
            runner: Process runner used to execute commands
            verbose: Echo every command
            platform: sys.platform style identifier selecting the output
                extension and system libraries (defaults to the host)
        """
        self.manifest = manifest
        self.runner = runner
        self.verbose = verbose
        self.platform = platform
        self.staleness = StalenessChecker(manifest.project_dir)

    @property
    def output_path(self) -> Path:
        return self.manifest.output_path(self.platform)

    def link_command(self, object_files: Sequence[Path]) -> List[str]:
        """Build the link or archive argument vector for the target kind."""
        output = str(self.output_path)
        objects = [str(obj) for obj in object_files]
        kind = self.manifest.kind
        match kind:
            case TargetKind.EXECUTABLE:
                return [self.manifest.linker, "-o", output, *objects, *self.manifest.all_linker_flags(self.platform)]
            case TargetKind.SHARED_LIBRARY:
                return [
                    self.manifest.linker,
                    SHARED_FLAG,
                    "-o",
                    output,
                    *objects,
                    *self.manifest.all_linker_flags(self.platform),
                ]
            case TargetKind.STATIC_ARCHIVE:
                return [ARCHIVER, ARCHIVER_FLAGS, output, *objects]
            case _:
                assert_never(kind)

    def needs_link(self, object_files: Sequence[Path]) -> bool:
        """The target is missing or older than an object or a dependency artifact."""
        inputs = [*object_files, *(Path(p) for p in self.manifest.dependency_link_inputs)]
        return self.staleness.needs_link(self.output_path, inputs)

    def link(self, object_files: Sequence[Path]) -> Path:
        """
        Link object files into the build target.

        Args:
            object_files: Objects in resolved source order

        Returns:
            Output path (relative to the project root)

        Raises:
            LinkerError: If the linker or archiver exits with a non-zero status
        """
        (self.manifest.project_dir / self.output_path).parent.mkdir(parents=True, exist_ok=True)

        cmd = self.link_command(object_files)
        log_command("linking", format_command(cmd), verbose_only=not self.verbose)

        result = self.runner(cmd, self.manifest.project_dir)
        if result.returncode != 0:
            raise LinkerError(format_failure(cmd, result, f"Linking failed for {self.output_path}"))

        if self.verbose and result.stderr:
            log_detail(result.stderr.rstrip())

        return self.output_path

