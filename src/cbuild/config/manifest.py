"""
Typed project manifest model.

A cbuild project is described by a ``Cargoc.toml`` file:

    [package]
    name = "app"
    outdir = "build"
    src = ["src"]
    typ = "bin"            # bin | dynlib | staticlib
    gen_config = true      # write compile_commands.json
    collect_rec = false    # descend into sub-directories of src entries

    [compiler]
    compiler = "clang"
    flags = ["-O2"]
    includes = ["include"]

    [linker]
    linker = "clang"
    flags = []
    libs = ["-lm"]
    default_libs = false

    [dependencies]
    mylib = { path = "../mylib", leaky = true }

    [lib]
    header = ["include"]

The TOML text is parsed with tomllib and converted into a frozen
ProjectManifest. Missing sections and keys take the defaults below; keys of
the wrong type are rejected with ManifestError.
"""

import logging
import sys
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, assert_never

from cbuild import MANIFEST_NAME
from cbuild.errors import CbuildError

logger = logging.getLogger(__name__)

DEFAULT_COMPILER = "clang"
DEFAULT_LINKER = "clang"
DEFAULT_NAME = "a"
DEFAULT_OUTDIR = "."
DEFAULT_SOURCES = ("src/main.c",)

WINDOWS_SYSTEM_LIBS = (
    "-lshell32",
    "-ladvapi32",
    "-lcfgmgr32",
    "-lcomctl32",
    "-lcomdlg32",
    "-ld2d1",
    "-ldwrite",
    "-ldxgi",
    "-lgdi32",
    "-lkernel32",
    "-lmsimg32",
    "-lole32",
    "-lopengl32",
    "-lshlwapi",
    "-luser32",
    "-lwindowscodecs",
    "-lwinspool",
    "-luserenv",
    "-lws2_32",
    "-lbcrypt",
    "-lmsvcrt",
    "-loleaut32",
    "-luuid",
    "-lodbc32",
    "-lodbccp32",
)
DARWIN_SYSTEM_LIBS = ("-lm", "-lpthread")
POSIX_SYSTEM_LIBS = ("-lm", "-lpthread", "-ldl")


class ManifestError(CbuildError):
    """Raised when a manifest cannot be read or is malformed."""

    pass


class TargetKind(Enum):
    """Output category of a project, keyed by the manifest ``typ`` value."""

    EXECUTABLE = "bin"
    SHARED_LIBRARY = "dynlib"
    STATIC_ARCHIVE = "staticlib"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_typ(cls, typ: str) -> "TargetKind":
        """Parse the manifest ``typ`` value.

        Raises:
            ManifestError: If the value names no known target kind
        """
        for kind in cls:
            if kind.value == typ:
                return kind
        raise ManifestError(f"Unknown project type '{typ}' (expected one of: bin, dynlib, staticlib)")

    @property
    def is_library(self) -> bool:
        return self is not TargetKind.EXECUTABLE

    def extension(self, platform: Optional[str] = None) -> str:
        """Native file extension of this target kind on a host platform.

        Args:
            platform: sys.platform style identifier (defaults to the host)

        Returns:
            Extension without the leading dot; empty for POSIX executables
        """
        platform = platform or sys.platform
        windows = platform == "win32"
        darwin = platform == "darwin"
        match self:
            case TargetKind.EXECUTABLE:
                return "exe" if windows else ""
            case TargetKind.SHARED_LIBRARY:
                return "dll" if windows else "dylib" if darwin else "so"
            case TargetKind.STATIC_ARCHIVE:
                return "lib" if windows else "a"
            case _:
                assert_never(self)


def default_system_libs(platform: Optional[str] = None) -> tuple[str, ...]:
    """System libraries injected when ``[linker] default_libs`` is set."""
    platform = platform or sys.platform
    if platform == "win32":
        return WINDOWS_SYSTEM_LIBS
    if platform == "darwin":
        return DARWIN_SYSTEM_LIBS
    return POSIX_SYSTEM_LIBS


@dataclass(frozen=True)
class DependencySpec:
    """A ``[dependencies]`` entry.

    Exactly one of path/git must be set. The check happens during dependency
    resolution, before anything is compiled.
    """

    name: str
    path: Optional[str] = None
    git: Optional[str] = None
    version: Optional[str] = None
    leaky: bool = False


@dataclass(frozen=True)
class ProjectManifest:
    """
    Typed view of a Cargoc.toml manifest.

    The dependency_* fields and reexported_includes start empty and are filled
    in by the dependency resolver, which returns an augmented copy instead of
    modifying the loaded manifest.

    Attributes:
        project_dir: Directory containing the manifest; every relative path
            resolves against it
        name: Output artifact base name
        outdir: Output directory (relative to project_dir)
        kind: Target kind
        sources: Ordered source entries (files or directories)
        gen_config: Whether to emit compile_commands.json
        collect_rec: Whether directory entries are collected recursively
        compiler: Compiler program name
        compiler_flags: Explicit compiler flags
        includes: Include directories, emitted as -I flags
        linker: Linker program name
        linker_flags: Explicit linker flags
        libs: Explicit libraries
        default_libs: Whether to inject the platform's system libraries
        dependencies: Declared dependencies
        headers: Exported include roots (library targets only)
        dependency_compile_flags: -I flags merged from dependencies
        dependency_link_inputs: Dependency artifacts to link against
        reexported_includes: Include directories re-exported through leaky
            dependencies
    """

    project_dir: Path
    name: str = DEFAULT_NAME
    outdir: str = DEFAULT_OUTDIR
    kind: TargetKind = TargetKind.EXECUTABLE
    sources: tuple[str, ...] = DEFAULT_SOURCES
    gen_config: bool = False
    collect_rec: bool = False

    compiler: str = DEFAULT_COMPILER
    compiler_flags: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()

    linker: str = DEFAULT_LINKER
    linker_flags: tuple[str, ...] = ()
    libs: tuple[str, ...] = ()
    default_libs: bool = False

    dependencies: tuple[DependencySpec, ...] = ()
    headers: tuple[str, ...] = ()

    dependency_compile_flags: tuple[str, ...] = field(default=())
    dependency_link_inputs: tuple[str, ...] = field(default=())
    reexported_includes: tuple[str, ...] = field(default=())

    @property
    def manifest_path(self) -> Path:
        return self.project_dir / MANIFEST_NAME

    def all_compiler_flags(self) -> list[str]:
        """Compiler flags in declaration order.

        Explicit flags first, then one -I per declared include, then the
        flags merged from dependency resolution.
        """
        flags = list(self.compiler_flags)
        flags.extend(f"-I{include}" for include in self.includes)
        flags.extend(self.dependency_compile_flags)
        return flags

    def all_linker_flags(self, platform: Optional[str] = None) -> list[str]:
        """Linker flags: explicit flags, libs, dependency artifacts, system libs."""
        flags = list(self.linker_flags)
        flags.extend(self.libs)
        flags.extend(self.dependency_link_inputs)
        if self.default_libs:
            flags.extend(default_system_libs(platform))
        return flags

    def output_path(self, platform: Optional[str] = None) -> Path:
        """Realized build target, relative to project_dir: <outdir>/<name>[.<ext>]."""
        ext = self.kind.extension(platform)
        filename = f"{self.name}.{ext}" if ext else self.name
        return Path(self.outdir) / filename

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_dir: Path) -> "ProjectManifest":
        """
        Build a manifest from parsed TOML data.

        Args:
            data: Parsed manifest document
            project_dir: Directory the manifest was loaded from

        Returns:
            ProjectManifest instance

        Raises:
            ManifestError: If a section or key has the wrong type
        """
        package = _section(data, "package")
        compiler = _section(data, "compiler")
        linker = _section(data, "linker")
        lib = _section(data, "lib")

        kind = TargetKind.from_typ(_get_str(package, "package", "typ", TargetKind.EXECUTABLE.value))
        sources = _get_str_list(package, "package", "src", list(DEFAULT_SOURCES))

        raw_deps = data.get("dependencies", {})
        if not isinstance(raw_deps, dict):
            raise ManifestError("Section [dependencies] must be a table")
        dependencies = tuple(_parse_dependency(name, value) for name, value in raw_deps.items())

        headers = _get_str_list(lib, "lib", "header", [])
        if headers and not kind.is_library:
            logger.debug(f"Ignoring [lib] header for executable target in {project_dir}")
            headers = []

        return cls(
            project_dir=project_dir,
            name=_get_str(package, "package", "name", DEFAULT_NAME),
            outdir=_get_str(package, "package", "outdir", DEFAULT_OUTDIR),
            kind=kind,
            sources=tuple(sources),
            gen_config=_get_bool(package, "package", "gen_config", False),
            collect_rec=_get_bool(package, "package", "collect_rec", False),
            compiler=_get_str(compiler, "compiler", "compiler", DEFAULT_COMPILER),
            compiler_flags=tuple(_get_str_list(compiler, "compiler", "flags", [])),
            includes=tuple(_get_str_list(compiler, "compiler", "includes", [])),
            linker=_get_str(linker, "linker", "linker", DEFAULT_LINKER),
            linker_flags=tuple(_get_str_list(linker, "linker", "flags", [])),
            libs=tuple(_get_str_list(linker, "linker", "libs", [])),
            default_libs=_get_bool(linker, "linker", "default_libs", False),
            dependencies=dependencies,
            headers=tuple(headers),
        )


def load_manifest(project_dir: Path) -> ProjectManifest:
    """
    Load ``Cargoc.toml`` from a project directory.

    Args:
        project_dir: Project root directory

    Returns:
        Parsed ProjectManifest

    Raises:
        ManifestError: If the file is missing, unreadable or malformed
    """
    project_dir = project_dir.resolve()
    manifest_path = project_dir / MANIFEST_NAME
    if not manifest_path.is_file():
        raise ManifestError(f"{MANIFEST_NAME} not found in {project_dir}")

    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Could not parse {manifest_path}: {e}") from e
    except OSError as e:
        raise ManifestError(f"Could not read {manifest_path}: {e}") from e

    logger.debug(f"Loaded manifest {manifest_path}")
    return ProjectManifest.from_dict(data, project_dir)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ManifestError(f"Section [{name}] must be a table")
    return value


def _get_str(table: Dict[str, Any], section: str, key: str, default: str) -> str:
    value = table.get(key, default)
    if not isinstance(value, str):
        raise ManifestError(f"[{section}] {key} must be a string, got {value!r}")
    return value


def _get_bool(table: Dict[str, Any], section: str, key: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ManifestError(f"[{section}] {key} must be a boolean, got {value!r}")
    return value


def _get_str_list(table: Dict[str, Any], section: str, key: str, default: list[str]) -> list[str]:
    value = table.get(key, default)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ManifestError(f"[{section}] {key} must be a list of strings, got {value!r}")
    return list(value)


def _parse_dependency(name: str, value: Any) -> DependencySpec:
    if not isinstance(value, dict):
        raise ManifestError(f"Dependency '{name}' must be a table like {{ path = \"...\" }}")
    section = f"dependencies.{name}"
    path = value.get("path")
    git = value.get("git")
    version = value.get("version")
    for key, item in (("path", path), ("git", git), ("version", version)):
        if item is not None and not isinstance(item, str):
            raise ManifestError(f"[{section}] {key} must be a string, got {item!r}")
    return DependencySpec(
        name=name,
        path=path,
        git=git,
        version=version,
        leaky=_get_bool(value, section, "leaky", False),
    )
