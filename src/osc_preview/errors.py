"""
Error Types
===========

Exception hierarchy for the live-preview client.

Failures before a stream is opened (session, command) are surfaced to the
caller of ``LivePreview.start``. Failures after the stream is open are
transport errors and only ever trigger the automatic restart flow.
"""

from typing import Optional


class OscPreviewError(Exception):
    """Base class for all live-preview errors."""
    pass


class SessionNegotiationError(OscPreviewError):
    """Raised when a camera session id could not be obtained."""
    pass


class CommandError(OscPreviewError):
    """
    Raised when an OSC command fails.

    Attributes:
        command: Name of the OSC command that failed
        code: OSC error code, if the camera reported one
    """

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.code = code


class TransportError(OscPreviewError):
    """Raised for connection-level failures after the stream was opened."""
    pass


class MultipartError(TransportError):
    """Raised when the preview body is not well-formed multipart data."""
    pass


class ImageDecodeError(OscPreviewError):
    """Raised when a part's bytes do not form a complete image."""
    pass
