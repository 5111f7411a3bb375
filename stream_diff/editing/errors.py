"""
Exceptions raised by the diff-application engine.
"""


class StreamDiffError(Exception):
    """Base class for all engine errors."""


class TransientMutationError(StreamDiffError):
    """Raised when the buffer is momentarily not live and refuses a mutation."""


class ReconciliationError(StreamDiffError):
    """Raised when the post-stream Myers pass or the bulk replace fails."""


class StaleBlockError(StreamDiffError, IndexError):
    """Raised when a resolve call targets a block that no longer exists."""


class SessionClosedError(StreamDiffError):
    """Raised when a closed session is asked to resolve a block."""


class DiffParseError(StreamDiffError, ValueError):
    """Raised when a unified diff contains no usable hunk."""
