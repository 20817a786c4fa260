"""Base exception for cbuild.

Every fatal condition raised by cbuild derives from CbuildError so the CLI
can report it and exit with a non-zero status.
"""


class CbuildError(Exception):
    """Base class for all cbuild errors."""

    pass
