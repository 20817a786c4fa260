"""Tests for project scaffolding."""

import tomllib

import pytest

from cbuild import MANIFEST_NAME
from cbuild.commands.init import MAIN_C, ScaffoldError, init_project, render_manifest
from cbuild.config.manifest import TargetKind, load_manifest


class TestRenderManifest:
    """Test the generated manifest text."""

    def test_executable(self):
        data = tomllib.loads(render_manifest("demo", TargetKind.EXECUTABLE))

        assert data == {"package": {"name": "demo", "typ": "bin"}}

    def test_library_exports_include(self):
        data = tomllib.loads(render_manifest("demo", TargetKind.SHARED_LIBRARY))

        assert data["package"]["typ"] == "dynlib"
        assert data["lib"]["header"] == ["include"]


class TestInitProject:
    """Test init_project()."""

    def test_creates_executable_project(self, tmp_path):
        project = init_project("demo", tmp_path)

        assert project == tmp_path / "demo"
        assert (project / "src" / "main.c").read_text() == MAIN_C
        manifest = load_manifest(project)
        assert manifest.name == "demo"
        assert manifest.kind is TargetKind.EXECUTABLE
        assert not (project / "include").exists()

    def test_creates_library_project(self, tmp_path):
        project = init_project("mylib", tmp_path, lib=True)

        manifest = load_manifest(project)
        assert manifest.kind is TargetKind.SHARED_LIBRARY
        assert manifest.headers == ("include",)
        assert (project / "include").is_dir()

    def test_existing_directory(self, tmp_path):
        (tmp_path / "demo").mkdir()

        with pytest.raises(ScaffoldError, match="Could not create dir .*already exists"):
            init_project("demo", tmp_path)

        assert not (tmp_path / "demo" / MANIFEST_NAME).exists()

    def test_empty_name(self, tmp_path):
        with pytest.raises(ScaffoldError, match="project name is required"):
            init_project("", tmp_path)

    def test_missing_parent_directory(self, tmp_path):
        with pytest.raises(ScaffoldError, match="Could not create dir"):
            init_project("demo", tmp_path / "missing")
