"""Tests for the build, run and clean lifecycle."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from cbuild.build.compiler import CompilerError
from cbuild.build.dependency_resolver import DependencyError
from cbuild.build.linker import LinkerError
from cbuild.build.orchestrator import BuildOrchestrator, BuildResult, CleanError
from cbuild.build.source_scanner import SourceResolutionError
from cbuild.config.manifest import ManifestError, TargetKind, load_manifest

APP_MANIFEST = """
[package]
name = "app"
outdir = "build"
src = ["src"]
gen_config = true

[compiler]
flags = ["-O2"]
"""

CORE_MANIFEST = """
[package]
name = "core"
src = ["src"]
typ = "staticlib"

[lib]
header = ["include"]
"""

APP_WITH_CORE = """
[package]
name = "app"
src = ["src"]

[dependencies]
core = { path = "../core" }
"""


@pytest.fixture
def app(tmp_path, make_project):
    files = {"src/main.c": "int main(void) { return 0; }", "src/util.c": "int util;", "src/util.h": ""}
    return make_project(tmp_path / "app", APP_MANIFEST, files)


class ProgramRunner:
    """Records the run command and returns a fixed status."""

    def __init__(self, returncode: int = 0):
        self.commands = []
        self.returncode = returncode

    def __call__(self, cmd, cwd):
        self.commands.append(list(cmd))
        return subprocess.CompletedProcess(list(cmd), self.returncode)


class TestBuild:
    """Test full builds."""

    def test_build_compiles_links_and_writes_database(self, app, runner):
        orchestrator = BuildOrchestrator(runner=runner, platform="linux")

        result = orchestrator.build(app)

        assert isinstance(result, BuildResult)
        assert runner.rendered() == [
            "clang -c src/main.c -o src/main.o -O2",
            "clang -c src/util.c -o src/util.o -O2",
            "clang -o build/app src/main.o src/util.o",
        ]
        assert result.linked is True
        assert result.compiled == [Path("src/main.o"), Path("src/util.o")]
        assert result.output_path == app.resolve() / "build" / "app"
        assert result.output_path.exists()

        records = json.loads((app / "compile_commands.json").read_text())
        assert [record["file"] for record in records] == ["src/main.c", "src/util.c"]
        assert all(record["arguments"] == ["clang", "-O2"] for record in records)

    def test_rebuild_without_changes_does_nothing(self, app, runner, runner_factory):
        BuildOrchestrator(runner=runner, platform="linux").build(app)

        second = runner_factory()
        result = BuildOrchestrator(runner=second, platform="linux").build(app)

        assert second.commands == []
        assert result.compiled == []
        assert result.linked is False

    def test_database_lists_every_source_on_incremental_build(self, app, runner, runner_factory, set_mtime):
        BuildOrchestrator(runner=runner, platform="linux").build(app)
        set_mtime(app / "src" / "util.c", 100)

        second = runner_factory()
        result = BuildOrchestrator(runner=second, platform="linux").build(app)

        assert result.compiled == [Path("src/util.o")]
        assert result.linked is True
        records = json.loads((app / "compile_commands.json").read_text())
        assert len(records) == 2

    def test_clean_build_recompiles_everything(self, app, runner, runner_factory):
        BuildOrchestrator(runner=runner, platform="linux").build(app)

        second = runner_factory()
        result = BuildOrchestrator(runner=second, platform="linux").build(app, clean=True)

        assert len(result.compiled) == 2
        assert result.linked is True

    def test_compile_failure_stops_before_link(self, app, runner_factory):
        failing = runner_factory(fail_on="src/main.c")

        with pytest.raises(CompilerError):
            BuildOrchestrator(runner=failing, platform="linux").build(app)

        assert len(failing.commands) == 1
        assert not (app / "compile_commands.json").exists()

    def test_link_failure(self, app, runner_factory):
        failing = runner_factory(fail_on="-o build/app")

        with pytest.raises(LinkerError):
            BuildOrchestrator(runner=failing, platform="linux").build(app)

        assert not (app / "compile_commands.json").exists()

    def test_missing_manifest(self, tmp_path, runner):
        with pytest.raises(ManifestError):
            BuildOrchestrator(runner=runner).build(tmp_path)

    def test_missing_source(self, tmp_path, make_project, runner):
        project = make_project(tmp_path, '[package]\nsrc = ["src/missing.c"]\n')

        with pytest.raises(SourceResolutionError, match="src/missing.c"):
            BuildOrchestrator(runner=runner).build(project)

        assert runner.commands == []


class TestBuildWithDependencies:
    """Test builds that pull in other projects."""

    @pytest.fixture
    def workspace(self, tmp_path, make_project):
        core = make_project(tmp_path / "core", CORE_MANIFEST, {"src/core.c": "int core;", "include/core.h": ""})
        app = make_project(tmp_path / "app", APP_WITH_CORE, {"src/main.c": "int main(void) { return 0; }"})
        return core.resolve(), app

    def test_stale_dependency_built_first(self, workspace, runner):
        core, app = workspace

        BuildOrchestrator(runner=runner, platform="linux").build(app)

        assert runner.rendered() == [
            "clang -c src/core.c -o src/core.o",
            "ar -rcs core.a src/core.o",
            f"clang -c src/main.c -o src/main.o -I{core / 'include'}",
            f"clang -o app src/main.o {core / 'core.a'}",
        ]
        assert runner.cwds == [core, core, app.resolve(), app.resolve()]

    def test_up_to_date_dependency_skipped(self, workspace, runner, runner_factory):
        core, app = workspace
        BuildOrchestrator(runner=runner, platform="linux").build(app)

        second = runner_factory()
        BuildOrchestrator(runner=second, platform="linux").build(app)

        assert second.commands == []

    def test_rebuilt_dependency_relinks_consumer(self, workspace, runner, runner_factory, set_mtime):
        core, app = workspace
        BuildOrchestrator(runner=runner, platform="linux").build(app)
        set_mtime(core / "src" / "core.c", 100)
        set_mtime(app / "app", -50)

        second = runner_factory()
        BuildOrchestrator(runner=second, platform="linux").build(app)

        assert second.rendered() == [
            "clang -c src/core.c -o src/core.o",
            "ar -rcs core.a src/core.o",
            f"clang -o app src/main.o {core / 'core.a'}",
        ]

    def test_invalid_dependency_rejected_before_compiling(self, tmp_path, make_project, runner):
        manifest = APP_WITH_CORE.replace('{ path = "../core" }', '{ path = "../core", git = "https://example.com/c.git" }')
        app = make_project(tmp_path / "app", manifest, {"src/main.c": ""})

        with pytest.raises(DependencyError):
            BuildOrchestrator(runner=runner).build(app)

        assert runner.commands == []

    def test_invalid_nested_declaration_rejected_before_compiling(self, workspace, tmp_path, make_project, runner):
        core, app = workspace
        bad = CORE_MANIFEST + '\n[dependencies]\nbad = { path = "../core", git = "https://example.com/c.git" }\n'
        make_project(tmp_path / "x", bad, {"src/x.c": ""})
        (app / "Cargoc.toml").write_text(APP_WITH_CORE + 'x = { path = "../x" }\n')

        with pytest.raises(DependencyError, match="'bad' sets both"):
            BuildOrchestrator(runner=runner, platform="linux").build(app)

        assert runner.commands == []
        assert not (core / "core.a").exists()

    def test_static_archive_chain_links_every_archive(self, workspace, tmp_path, make_project, runner):
        core, app = workspace
        base_manifest = CORE_MANIFEST.replace('name = "core"', 'name = "base"')
        base = make_project(tmp_path / "base", base_manifest, {"src/base.c": "int base;"}).resolve()
        (core / "Cargoc.toml").write_text(CORE_MANIFEST + '\n[dependencies]\nbase = { path = "../base" }\n')

        BuildOrchestrator(runner=runner, platform="linux").build(app)

        assert runner.rendered()[-1] == f"clang -o app src/main.o {core / 'core.a'} {base / 'base.a'}"


class TestRun:
    """Test the run operation."""

    def test_run_executable(self, app, runner):
        program = ProgramRunner(returncode=3)
        orchestrator = BuildOrchestrator(runner=runner, program_runner=program, platform="linux")

        status = orchestrator.run(app)

        assert status == 3
        assert program.commands == [[str(app.resolve() / "build" / "app")]]

    def test_run_library_is_noop(self, tmp_path, make_project, runner):
        core = make_project(tmp_path / "core", CORE_MANIFEST, {"src/core.c": ""})
        program = ProgramRunner()
        orchestrator = BuildOrchestrator(runner=runner, program_runner=program, platform="linux")

        status = orchestrator.run(core)

        assert status == 0
        assert program.commands == []
        assert len(runner.commands) == 2

    def test_run_loads_manifest_once(self, app, runner):
        orchestrator = BuildOrchestrator(runner=runner, program_runner=ProgramRunner(), platform="linux")

        with patch("cbuild.build.orchestrator.load_manifest", wraps=load_manifest) as mock_load:
            orchestrator.run(app)

        mock_load.assert_called_once()

    def test_result_run_command_for_executable(self, tmp_path):
        result = BuildResult(project_dir=tmp_path, output_path=tmp_path / "app", kind=TargetKind.EXECUTABLE)

        assert result.run_command() == [str(tmp_path / "app")]

    @pytest.mark.parametrize("kind", [TargetKind.SHARED_LIBRARY, TargetKind.STATIC_ARCHIVE])
    def test_result_run_command_for_library(self, tmp_path, kind):
        result = BuildResult(project_dir=tmp_path, output_path=tmp_path / "core.a", kind=kind)

        assert result.run_command() is None


class TestClean:
    """Test the clean operation."""

    def test_clean_removes_objects_and_target(self, app, runner):
        orchestrator = BuildOrchestrator(runner=runner, platform="linux")
        orchestrator.build(app)

        removed = orchestrator.clean(app)

        app_dir = app.resolve()
        assert removed == [app_dir / "src" / "main.o", app_dir / "src" / "util.o", app_dir / "build" / "app"]
        for path in removed:
            assert not path.exists()
        assert (app / "src" / "main.c").exists()

    def test_clean_skips_missing_files(self, app, runner):
        removed = BuildOrchestrator(runner=runner, platform="linux").clean(app)

        assert removed == []

    def test_clean_failure_is_fatal(self, app, runner):
        (app / "build" / "app").mkdir(parents=True)

        with pytest.raises(CleanError, match="Could not delete file"):
            BuildOrchestrator(runner=runner, platform="linux").clean(app)
