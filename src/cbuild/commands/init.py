"""Init command implementation for creating new cbuild projects.

Creates a project directory containing a Cargoc.toml manifest and a
src/main.c stub. Library projects (--lib) are created as shared libraries
with an include/ directory exported through [lib] header, so they can be
used as dependencies right away.
"""

from pathlib import Path

from cbuild import MANIFEST_NAME
from cbuild.config.manifest import TargetKind
from cbuild.errors import CbuildError
from cbuild.output import log_detail, log_success

MAIN_C = "int main(int argc, char **argv) {\n\treturn 0;\n}\n"


class ScaffoldError(CbuildError):
    """Raised when a project cannot be created."""

    pass


def render_manifest(name: str, kind: TargetKind) -> str:
    """Render the initial Cargoc.toml for a new project."""
    lines = [
        "[package]",
        f'name = "{name}"',
        f'typ = "{kind.value}"',
    ]
    if kind.is_library:
        lines.extend(["", "[lib]", 'header = ["include"]'])
    return "\n".join(lines) + "\n"


def init_project(name: str, parent_dir: Path, lib: bool = False) -> Path:
    """
    Create a new project.

    Args:
        name: Project name, also the directory name
        parent_dir: Directory in which the project directory is created
        lib: Create a shared library project instead of an executable

    Returns:
        Path of the created project directory

    Raises:
        ScaffoldError: If the name is empty or the directory cannot be created
    """
    if not name:
        raise ScaffoldError("A project name is required: cbuild init <name>")

    kind = TargetKind.SHARED_LIBRARY if lib else TargetKind.EXECUTABLE
    project_dir = parent_dir / name

    try:
        project_dir.mkdir()
    except FileExistsError as e:
        raise ScaffoldError(f"Could not create dir ['{project_dir}']: already exists") from e
    except OSError as e:
        raise ScaffoldError(f"Could not create dir ['{project_dir}']: {e}") from e

    try:
        (project_dir / MANIFEST_NAME).write_text(render_manifest(name, kind), encoding="utf-8")
        (project_dir / "src").mkdir()
        (project_dir / "src" / "main.c").write_text(MAIN_C, encoding="utf-8")
        if kind.is_library:
            (project_dir / "include").mkdir()
    except OSError as e:
        raise ScaffoldError(f"Could not create project files in ['{project_dir}']: {e}") from e

    log_success(f"Created {kind.value} project '{name}'")
    log_detail(str(project_dir))
    return project_dir
