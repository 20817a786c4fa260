"""Dependency Resolver - links a project against other cbuild projects.

Each ``[dependencies]`` entry names another cbuild project by local path.
Resolution runs in two passes so that nothing is compiled until the whole
dependency graph is known to be valid.

Load pass (no commands run):
    1. Validates every declaration of a project (exactly one of path/git).
    2. Loads ``<path>/Cargoc.toml`` of each dependency.
    3. Rejects executables and libraries that export no headers.
    4. Loads the dependency's own dependencies (depth-first), detecting
       cycles.

Build pass (bottom-up):
    5. Builds each dependency when its artifact is missing or stale.
    6. Merges its header roots as -I flags and its artifact as a link input.
       A static archive also forwards the link inputs it was resolved with,
       since archiving does not link them in.
    7. For leaky dependencies, re-exports the merged includes to the
       consumer's own consumers.

Design:
    resolve() returns an augmented copy of the manifest instead of modifying
    it. A stack of projects currently being loaded detects cycles.

    There is no version resolution and no deduplication: a project referenced
    twice is resolved (and possibly built) twice.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from cbuild import MANIFEST_NAME
from cbuild.config.manifest import DependencySpec, ProjectManifest, TargetKind, load_manifest
from cbuild.errors import CbuildError
from cbuild.output import log_detail

from .build_state import target_is_stale
from .source_scanner import SourceScanner

logger = logging.getLogger(__name__)

# Full build of an already-resolved dependency manifest.
BuildCallback = Callable[[ProjectManifest], object]


class DependencyError(CbuildError):
    """Raised when a dependency is malformed, missing or unusable."""

    pass


class DependencyCycleError(DependencyError):
    """Raised when a project depends on itself, directly or transitively."""

    def __init__(self, chain: List[Path]):
        self.chain = chain
        rendered = " -> ".join(str(p) for p in chain)
        super().__init__(f"Dependency cycle detected: {rendered}")


@dataclass(frozen=True)
class DependencyNode:
    """A loaded and validated dependency, with its own loaded dependencies."""

    spec: DependencySpec
    project_dir: Path
    manifest: ProjectManifest
    children: tuple["DependencyNode", ...]


@dataclass(frozen=True)
class ResolvedDependency:
    """
    A dependency ready to be consumed.

    Attributes:
        name: Name of the [dependencies] entry
        project_dir: Absolute root of the dependency project
        includes: Include directories the consumer compiles against (the
            dependency's own header roots, then what it re-exports)
        artifact: Absolute path of the dependency's build target
        link_inputs: What the consumer links: the artifact, followed by the
            link inputs a static archive carries forward
        leaky: Whether the consumer re-exports includes further
    """

    name: str
    project_dir: Path
    includes: tuple[str, ...]
    artifact: Path
    link_inputs: tuple[str, ...]
    leaky: bool

    @property
    def include_flags(self) -> tuple[str, ...]:
        return tuple(f"-I{include}" for include in self.includes)


def validate_dependency(spec: DependencySpec) -> None:
    """
    Check that exactly one of path/git is set.

    Raises:
        DependencyError: If both or neither are set
    """
    if spec.path is not None and spec.git is not None:
        raise DependencyError(f"Dependency '{spec.name}' sets both 'path' and 'git'; exactly one is allowed")
    if spec.path is None and spec.git is None:
        raise DependencyError(f"Dependency '{spec.name}' sets neither 'path' nor 'git'")


def merge_dependencies(manifest: ProjectManifest, resolved: Sequence[ResolvedDependency]) -> ProjectManifest:
    """Return a copy of manifest carrying the flags and inputs of its resolved dependencies."""
    compile_flags: List[str] = []
    link_inputs: List[str] = []
    reexported: List[str] = []
    for dependency in resolved:
        compile_flags.extend(dependency.include_flags)
        link_inputs.extend(dependency.link_inputs)
        if dependency.leaky:
            reexported.extend(dependency.includes)

    return replace(
        manifest,
        dependency_compile_flags=tuple(compile_flags),
        dependency_link_inputs=tuple(link_inputs),
        reexported_includes=tuple(reexported),
    )


class DependencyResolver:
    """Resolves the dependency graph of a project."""

    def __init__(self, build_dependency: BuildCallback, platform: Optional[str] = None):
        """
        Initialize dependency resolver.

        Args:
            build_dependency: Called with a resolved dependency manifest whose
                artifact is missing or stale; must build it fully
            platform: sys.platform style identifier for artifact naming
        """
        self.build_dependency = build_dependency
        self.platform = platform
        self._loading: List[Path] = []

    def resolve(self, manifest: ProjectManifest) -> ProjectManifest:
        """
        Resolve every dependency of a manifest.

        The whole graph is loaded and validated before any dependency is
        built.

        Args:
            manifest: Loaded project manifest

        Returns:
            Copy of manifest with dependency_compile_flags,
            dependency_link_inputs and reexported_includes filled in

        Raises:
            DependencyError: If any dependency cannot be resolved
            DependencyCycleError: If the dependency graph has a cycle
        """
        nodes = self.load_graph(manifest)
        return merge_dependencies(manifest, [self._realize(node) for node in nodes])

    def load_graph(self, manifest: ProjectManifest) -> tuple[DependencyNode, ...]:
        """
        Load and validate the dependencies of a manifest, recursively.

        Runs no commands.

        Raises:
            DependencyError: On the first invalid declaration or dependency
            DependencyCycleError: If the dependency graph has a cycle
        """
        for spec in manifest.dependencies:
            validate_dependency(spec)

        key = manifest.project_dir.resolve()
        if key in self._loading:
            start = self._loading.index(key)
            raise DependencyCycleError([*self._loading[start:], key])

        self._loading.append(key)
        try:
            return tuple(self._load_one(manifest, spec) for spec in manifest.dependencies)
        finally:
            self._loading.pop()

    def _load_one(self, consumer: ProjectManifest, spec: DependencySpec) -> DependencyNode:
        if spec.git is not None:
            raise DependencyError(f"Dependency '{spec.name}' uses git '{spec.git}'; remote dependencies are not supported")
        assert spec.path is not None

        dep_dir = (consumer.project_dir / spec.path).resolve()
        if not dep_dir.is_dir():
            raise DependencyError(f"Could not find the path specified ['{spec.path}'] for dependency '{spec.name}'")
        if not (dep_dir / MANIFEST_NAME).is_file():
            raise DependencyError(f"Cannot resolve dependency '{spec.name}' at {dep_dir}; {MANIFEST_NAME} file not found")

        if spec.version is not None:
            logger.debug(f"Ignoring version '{spec.version}' of dependency '{spec.name}'")

        dep_manifest = load_manifest(dep_dir)
        if dep_manifest.kind is TargetKind.EXECUTABLE:
            raise DependencyError(f"Dependency '{spec.name}' is an executable and not usable as a dependency")
        if not dep_manifest.headers:
            raise DependencyError(f"Dependency '{spec.name}' exports no [lib] header roots and is not usable as a dependency")

        return DependencyNode(
            spec=spec,
            project_dir=dep_dir,
            manifest=dep_manifest,
            children=self.load_graph(dep_manifest),
        )

    def _realize(self, node: DependencyNode) -> ResolvedDependency:
        """Build a loaded dependency if needed and describe how to consume it."""
        spec = node.spec
        dep_manifest = merge_dependencies(node.manifest, [self._realize(child) for child in node.children])
        artifact = node.project_dir / dep_manifest.output_path(self.platform)

        if self.is_stale(dep_manifest):
            log_detail(f"Building dependency '{spec.name}' ({node.project_dir})")
            self.build_dependency(dep_manifest)
        else:
            log_detail(f"Dependency '{spec.name}' is up to date", verbose_only=True)

        link_inputs = [str(artifact)]
        if dep_manifest.kind is TargetKind.STATIC_ARCHIVE:
            link_inputs.extend(dep_manifest.dependency_link_inputs)

        includes = [str(node.project_dir / header) for header in dep_manifest.headers]
        includes.extend(dep_manifest.reexported_includes)
        return ResolvedDependency(
            name=spec.name,
            project_dir=node.project_dir,
            includes=tuple(includes),
            artifact=artifact,
            link_inputs=tuple(link_inputs),
            leaky=spec.leaky,
        )

    def is_stale(self, manifest: ProjectManifest) -> bool:
        """Whether a project's artifact is missing or older than any of its sources."""
        scanner = SourceScanner(manifest.project_dir, recursive=manifest.collect_rec)
        sources = scanner.scan(manifest.sources)
        artifact = manifest.project_dir / manifest.output_path(self.platform)
        return target_is_stale(artifact, (manifest.project_dir / source.path for source in sources))
