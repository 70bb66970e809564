"""
Exceptions raised by gitmeta.

Every error the tool raises on purpose derives from GitMetaError so the
CLI can report it as a clean one-line message instead of a traceback.
"""


class GitMetaError(Exception):
    """Base class for gitmeta errors."""


class NotARepository(GitMetaError, ValueError):  # noqa: N818
    """Raised when a command is run outside a git work tree."""

    def __init__(self, start_path):
        super().__init__(
            f"Not inside a git repository (searched from {start_path})\n"
            f"  Run this command inside a git work tree, or use '-C <path>' to specify one."
        )


class GitError(GitMetaError, RuntimeError):
    """Raised when a git subprocess fails or times out."""


class InvalidStorageKey(GitMetaError, ValueError):  # noqa: N818
    """Raised when a store entry name is not a valid encoded path."""

    def __init__(self, key: str, reason: str = "not valid base64"):
        super().__init__(f"Malformed storage key {key!r}: {reason}")
        self.key = key


class CorruptRecord(GitMetaError, ValueError):  # noqa: N818
    """Raised when a stored metadata line cannot be parsed."""

    def __init__(self, path: str, raw: str):
        super().__init__(f"Corrupt metadata record for {path!r}: {raw!r}")
        self.path = path
        self.raw = raw


class ReconcileError(GitMetaError):
    """Raised when a tracked path's metadata cannot be read."""


class ConsistencyError(GitMetaError):
    """Raised when stored metadata cannot be applied to the work tree."""
