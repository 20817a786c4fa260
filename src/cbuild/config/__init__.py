"""Manifest parsing for cbuild."""

from .manifest import DependencySpec, ManifestError, ProjectManifest, TargetKind, load_manifest

__all__ = ["DependencySpec", "ManifestError", "ProjectManifest", "TargetKind", "load_manifest"]
