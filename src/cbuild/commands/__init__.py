"""Command implementations for the cbuild CLI.

This package contains implementations of cbuild commands that do not belong
to the build pipeline itself.
"""

from cbuild.commands.init import init_project

__all__ = ["init_project"]
