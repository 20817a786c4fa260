"""
Source file discovery.

Expands the manifest's ``src`` entries into the ordered list of files to
compile. Each entry is a file or a directory relative to the project root:

- Files with a compilable extension (.c, .cpp, .cxx, .c++, .cc) are kept.
- Headers, objects and binaries (.h, .hpp, .o, .exe, ...) are skipped.
- Anything else is rejected, naming the offending extension.
- Directories contribute their immediate children, plus sub-directories
  when recursive collection is enabled.

Entries are expanded in declaration order and duplicates are kept.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cbuild.errors import CbuildError

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = frozenset({"c", "cpp", "cxx", "c++", "cc"})
SKIPPED_EXTENSIONS = frozenset({"h", "hpp", "hxx", "o", "obj", "exe", "out", "a", "so", "dll", "lib", "dylib"})
OBJECT_SUFFIX = ".o"


class SourceResolutionError(CbuildError):
    """Raised when a source entry is missing or has an unknown extension."""

    pass


@dataclass(frozen=True)
class SourceFile:
    """A compilable source and the object file derived from it.

    Both paths are relative to the project root, as written in commands.
    """

    path: Path
    object_path: Path

    @classmethod
    def from_path(cls, path: Path) -> "SourceFile":
        return cls(path=path, object_path=path.with_suffix(OBJECT_SUFFIX))


@dataclass
class SourceCollection:
    """Ordered result of a source scan."""

    sources: list[SourceFile] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sources)

    def __iter__(self):
        return iter(self.sources)

    @property
    def object_files(self) -> list[Path]:
        return [source.object_path for source in self.sources]


class SourceScanner:
    """Resolves manifest source entries against a project root."""

    def __init__(self, project_dir: Path, recursive: bool = False):
        """
        Initialize source scanner.

        Args:
            project_dir: Project root; entries resolve relative to it
            recursive: Descend into sub-directories of directory entries
        """
        self.project_dir = project_dir
        self.recursive = recursive

    def scan(self, entries: "tuple[str, ...] | list[str]") -> SourceCollection:
        """
        Expand source entries into an ordered SourceCollection.

        Args:
            entries: Source entries from the manifest

        Returns:
            SourceCollection in discovery order

        Raises:
            SourceResolutionError: If an entry does not exist or a file has an
                unknown extension
        """
        collection = SourceCollection()
        for entry in entries:
            relative = Path(entry)
            absolute = self.project_dir / relative
            if absolute.is_file():
                self._add_file(relative, collection)
            elif absolute.is_dir():
                self._scan_directory(relative, collection)
            else:
                raise SourceResolutionError(f"Could not find the path specified ['{entry}']")

        logger.debug(f"Resolved {len(collection.sources)} sources, skipped {len(collection.skipped)}")
        return collection

    def _scan_directory(self, relative_dir: Path, collection: SourceCollection) -> None:
        children = sorted((self.project_dir / relative_dir).iterdir(), key=lambda p: p.name)
        for child in children:
            relative = relative_dir / child.name
            if child.is_dir():
                if self.recursive:
                    self._scan_directory(relative, collection)
                continue
            self._add_file(relative, collection)

    def _add_file(self, relative: Path, collection: SourceCollection) -> None:
        extension = relative.suffix[1:].lower()
        if extension in SOURCE_EXTENSIONS:
            collection.sources.append(SourceFile.from_path(relative))
        elif extension in SKIPPED_EXTENSIONS:
            collection.skipped.append(relative)
        else:
            raise SourceResolutionError(f"Unknown file type '{extension}' for source '{relative}'")
