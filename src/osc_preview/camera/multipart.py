"""
Multipart Parser
================

Incremental parser for multipart/x-mixed-replace response bodies.

The camera's preview response is one never-ending multipart body. This
parser turns arbitrary-sized chunks of that body into transport events:

    --BOUNDARY\r\n            -> (delimiter)
    Content-Type: ...\r\n\r\n -> Boundary(headers)
    <jpeg bytes>              -> Data(...), Data(...), ...
    \r\n--BOUNDARY\r\n ...    -> next part
    \r\n--BOUNDARY--          -> Boundary() and the body is finished

Design Rules:
    - Never emits bytes that might be the start of a delimiter
    - The CRLF preceding a delimiter belongs to the delimiter, not the part
    - The closing delimiter also emits a Boundary so the last part can be
      decoded
    - Bytes after the closing delimiter are ignored
"""

import logging
from typing import Dict, List, Optional

from osc_preview.errors import MultipartError
from osc_preview.models.events import Boundary, Data, TransportEvent


logger = logging.getLogger(__name__)


_PREAMBLE = "preamble"
_DELIMITER = "delimiter"
_HEADERS = "headers"
_BODY = "body"
_DONE = "done"

_HEADER_END = b"\r\n\r\n"


def parse_boundary(content_type: Optional[str]) -> bytes:
    """
    Extract the boundary parameter from a Content-Type header.

    Args:
        content_type: Raw Content-Type header value

    Returns:
        Boundary as bytes (without the leading "--")

    Raises:
        MultipartError: If the content type is not multipart or has no boundary
    """
    if not content_type:
        raise MultipartError("Missing Content-Type on preview response")

    media_type, _, params = content_type.partition(";")
    if not media_type.strip().lower().startswith("multipart/"):
        raise MultipartError(f"Preview response is not multipart: {media_type.strip()}")

    for param in params.split(";"):
        name, _, value = param.strip().partition("=")
        if name.strip().lower() == "boundary":
            value = value.strip().strip('"')
            if value:
                return value.encode("latin-1")

    raise MultipartError(f"No boundary in Content-Type: {content_type}")


def _parse_headers(block: bytes) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for line in block.decode("latin-1").split("\r\n"):
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers


class MultipartParser:
    """
    Incremental multipart body parser.

    Attributes:
        boundary: Boundary token from the Content-Type header
        finished: Whether the closing delimiter has been seen

    Example:
        parser = MultipartParser(b"---osclivepreview---")
        for chunk in body_chunks:
            for event in parser.feed(chunk):
                handle(event)
    """

    def __init__(self, boundary: bytes, max_header_bytes: int = 16384) -> None:
        """
        Initialize parser.

        Args:
            boundary: Boundary token (without the leading "--")
            max_header_bytes: Largest accepted part header block
        """
        if not boundary:
            raise ValueError("boundary must not be empty")

        self.boundary = boundary
        self._delimiter = b"--" + boundary
        self._body_marker = b"\r\n" + self._delimiter
        self._max_header_bytes = max_header_bytes
        self._buffer = bytearray()
        self._state = _PREAMBLE

    @property
    def finished(self) -> bool:
        """Whether the closing delimiter has been seen."""
        return self._state == _DONE

    def feed(self, chunk: bytes) -> List[TransportEvent]:
        """
        Consume a chunk of the body.

        Args:
            chunk: Next bytes of the response body

        Returns:
            Events completed by this chunk, in stream order

        Raises:
            MultipartError: If a part header block exceeds the limit
        """
        if self._state == _DONE:
            return []

        self._buffer.extend(chunk)
        events: List[TransportEvent] = []

        while True:
            if self._state == _PREAMBLE:
                index = self._buffer.find(self._delimiter)
                if index < 0:
                    keep = len(self._delimiter) - 1
                    if len(self._buffer) > keep:
                        del self._buffer[:-keep]
                    break
                del self._buffer[:index]
                self._state = _DELIMITER

            elif self._state == _DELIMITER:
                end = len(self._delimiter)
                if len(self._buffer) < end + 2:
                    break
                if self._buffer[end:end + 2] == b"--":
                    events.append(Boundary())
                    self._buffer.clear()
                    self._state = _DONE
                    break
                self._state = _HEADERS

            elif self._state == _HEADERS:
                index = self._buffer.find(_HEADER_END)
                if index < 0:
                    if len(self._buffer) > self._max_header_bytes:
                        raise MultipartError(
                            f"Part headers exceed {self._max_header_bytes} bytes"
                        )
                    break
                # Header block starts after the delimiter line.
                line_end = self._buffer.find(b"\r\n")
                headers = _parse_headers(bytes(self._buffer[line_end + 2:index]))
                del self._buffer[:index + len(_HEADER_END)]
                events.append(Boundary(headers=headers))
                self._state = _BODY

            elif self._state == _BODY:
                index = self._buffer.find(self._body_marker)
                if index < 0:
                    keep = len(self._body_marker) - 1
                    if len(self._buffer) > keep:
                        events.append(Data(bytes(self._buffer[:-keep])))
                        del self._buffer[:-keep]
                    break
                if index > 0:
                    events.append(Data(bytes(self._buffer[:index])))
                # Drop the CRLF so the buffer starts with the delimiter.
                del self._buffer[:index + 2]
                self._state = _DELIMITER

            else:
                break

        return events
