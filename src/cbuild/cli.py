"""
Command-line interface for cbuild.

This module provides the `cbuild` CLI tool:

    cbuild build [project_dir] [--clean] [--verbose]
    cbuild run [project_dir] [--verbose]
    cbuild clean [project_dir] [--verbose]
    cbuild init <name> [--bin | --lib] [--dir PARENT]

Every command exits with status 0 on success and 1 on the first error.
Setting CBUILD_VERBOSE=1 in the environment is equivalent to --verbose.
"""

import argparse
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from cbuild import MANIFEST_NAME, __version__
from cbuild.build import BuildOrchestrator
from cbuild.commands import init_project
from cbuild.errors import CbuildError
from cbuild.output import init_timer, log_build_complete, log_detail, log_error, log_header, set_verbose

console = Console(highlight=False)


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    clean: bool = False
    verbose: bool = False


@dataclass
class RunArgs:
    """Arguments for the run command."""

    project_dir: Path
    verbose: bool = False


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    verbose: bool = False


@dataclass
class InitArgs:
    """Arguments for the init command."""

    name: str
    parent_dir: Path
    lib: bool = False


def env_verbose() -> bool:
    """Check whether CBUILD_VERBOSE forces verbose output."""
    return os.environ.get("CBUILD_VERBOSE") == "1"


def _fail(title: str, message: str) -> None:
    console.print(f"[bold red]✗ {title}[/bold red]")
    log_error(message)
    sys.exit(1)


def build_command(args: BuildArgs) -> None:
    """Build the project.

    Examples:
        cbuild build                 # Build the project in the current directory
        cbuild build ../mylib        # Build another project
        cbuild build --clean         # Remove objects and the target first
        cbuild build --verbose       # Echo every command
    """
    log_header("cbuild", __version__)
    try:
        orchestrator = BuildOrchestrator(verbose=args.verbose)
        start_time = time.time()
        result = orchestrator.build(args.project_dir, clean=args.clean)
        build_time = time.time() - start_time

        console.print("[bold green]✓ Build successful![/bold green]")
        log_detail(f"Output: {result.output_path}")
        if result.compile_database is not None:
            log_detail(f"Compile database: {result.compile_database}")
        log_build_complete(build_time)
        sys.exit(0)

    except CbuildError as e:
        _fail("Build failed!", str(e))

    except KeyboardInterrupt:
        console.print("[bold yellow]✗ Build interrupted[/bold yellow]")
        sys.exit(130)  # Standard exit code for SIGINT


def run_command(args: RunArgs) -> None:
    """Build the project and run the executable it produces."""
    log_header("cbuild", __version__)
    try:
        orchestrator = BuildOrchestrator(verbose=args.verbose)
        returncode = orchestrator.run(args.project_dir)
        if returncode != 0:
            _fail("Program failed", f"Program exited with status {returncode}")
        sys.exit(0)

    except CbuildError as e:
        _fail("Run failed!", str(e))

    except KeyboardInterrupt:
        console.print("[bold yellow]✗ Run interrupted[/bold yellow]")
        sys.exit(130)


def clean_command(args: CleanArgs) -> None:
    """Remove object files and the build target."""
    try:
        orchestrator = BuildOrchestrator(verbose=args.verbose)
        removed = orchestrator.clean(args.project_dir)
        console.print(f"[bold green]✓ Cleaned {len(removed)} file(s)[/bold green]")
        sys.exit(0)

    except CbuildError as e:
        _fail("Clean failed!", str(e))


def init_command(args: InitArgs) -> None:
    """Create a new project directory with a manifest and a main.c stub."""
    try:
        init_project(args.name, args.parent_dir, lib=args.lib)
        sys.exit(0)

    except CbuildError as e:
        _fail("Init failed!", str(e))


def _add_project_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help=f"Project directory containing {MANIFEST_NAME} (default: current directory)",
    )


def _add_verbose(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Echo every command and show compiler warnings",
    )


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="cbuild",
        description="Minimal build orchestrator for C/C++ projects",
    )
    parser.add_argument("--version", action="version", version=f"cbuild {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser = subparsers.add_parser("build", help="Compile and link the project")
    _add_project_dir(build_parser)
    build_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Remove build artifacts before building",
    )
    _add_verbose(build_parser)

    # Run command
    run_parser = subparsers.add_parser("run", help="Build the project and run the executable")
    _add_project_dir(run_parser)
    _add_verbose(run_parser)

    # Clean command
    clean_parser = subparsers.add_parser("clean", help="Remove object files and the build target")
    _add_project_dir(clean_parser)
    _add_verbose(clean_parser)

    # Init command
    init_parser = subparsers.add_parser("init", help="Create a new project")
    init_parser.add_argument("name", help="Project name (also the directory name)")
    kind_group = init_parser.add_mutually_exclusive_group()
    kind_group.add_argument("--bin", action="store_true", help="Create an executable project (default)")
    kind_group.add_argument("--lib", action="store_true", help="Create a shared library project")
    init_parser.add_argument(
        "--dir",
        dest="parent_dir",
        type=Path,
        default=Path.cwd(),
        help="Directory in which to create the project (default: current directory)",
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the CLI."""
    init_timer()
    parser = create_parser()
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    verbose = getattr(parsed_args, "verbose", False) or env_verbose()
    set_verbose(verbose)

    # Validate project directory exists
    if hasattr(parsed_args, "project_dir"):
        if not parsed_args.project_dir.is_dir():
            _fail("Error", f"Path is not a directory: {parsed_args.project_dir}")

    if parsed_args.command == "build":
        build_command(BuildArgs(project_dir=parsed_args.project_dir, clean=parsed_args.clean, verbose=verbose))
    elif parsed_args.command == "run":
        run_command(RunArgs(project_dir=parsed_args.project_dir, verbose=verbose))
    elif parsed_args.command == "clean":
        clean_command(CleanArgs(project_dir=parsed_args.project_dir, verbose=verbose))
    elif parsed_args.command == "init":
        init_command(InitArgs(name=parsed_args.name, parent_dir=parsed_args.parent_dir, lib=parsed_args.lib))


if __name__ == "__main__":
    main()
