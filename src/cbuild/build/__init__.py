"""
Build system components for cbuild.

This package provides:
- Source file discovery (source_scanner)
- Modification-time staleness checks (build_state)
- Compile and link command synthesis (compiler, linker)
- Dependency resolution (dependency_resolver)
- compile_commands.json generation (compile_database)
- Build orchestration (orchestrator)
"""

from .orchestrator import BuildOrchestrator, BuildResult
from .source_scanner import SourceCollection, SourceFile, SourceScanner

__all__ = [
    "BuildOrchestrator",
    "BuildResult",
    "SourceCollection",
    "SourceFile",
    "SourceScanner",
]
