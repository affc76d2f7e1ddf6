"""
Exceptions raised by the preview transmitters.

Every error here is recoverable: the orchestrator turns them into a failed
PreviewOutcome instead of letting them reach the host program.
"""


class PreviewError(Exception):
    """Base exception for terminal preview errors."""
    pass


class NoProtocolDetected(PreviewError):
    """The terminal matched none of the capability rules."""

    def __init__(self, message: str = "no supported protocol detected"):
        super().__init__(message)


class EmptyBitmap(PreviewError):
    """The bitmap to preview has no bytes."""

    def __init__(self, message: str = "empty image blob"):
        super().__init__(message)


class WriteFailed(PreviewError):
    """Writing to the terminal stream failed."""
    pass


class SubprocessUnavailable(PreviewError):
    """An external renderer could not be found or started."""
    pass


class SubprocessFailed(PreviewError):
    """An external renderer ran but exited non-zero or timed out."""
    pass
