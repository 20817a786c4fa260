"""cbuild - minimal build orchestrator for C/C++ projects.

A project is described by a ``Cargoc.toml`` manifest. cbuild compiles the
stale sources, links (or archives) the target and resolves dependencies on
other cbuild projects.
"""

__version__ = "0.1.0"

MANIFEST_NAME = "Cargoc.toml"
