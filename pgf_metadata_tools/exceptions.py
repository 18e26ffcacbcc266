"""
Exception hierarchy for PGF metadata operations
"""


class PGFError(Exception):
    """
    Base exception for all PGF metadata errors.

    Every error carries a numeric ``code`` so host applications that only
    understand status codes can still report a failure meaningfully.
    """
    code = 1

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class InvalidFormat(PGFError, ValueError):
    """
    Raised when the stream is not a PGF container.

    This covers a missing or damaged signature, a header-size field that
    cannot be interpreted in either byte order, a header structure that does
    not fit inside its declared size, and an embedded metadata region that
    lacks its marker.
    """
    code = 2


class Unsupported(PGFError):
    """Raised when the container version is older than the minimum supported."""
    code = 3


class Truncated(PGFError, EOFError):
    """Raised when the stream ends before a declared size is satisfied."""
    code = 5


class ReadFailed(PGFError, OSError):
    """Raised when the underlying stream cannot be read."""
    code = 6


class WriteFailed(PGFError, OSError):
    """
    Raised when a rewrite cannot be produced or committed.

    The original container is always left untouched when this is raised.
    """
    code = 4
