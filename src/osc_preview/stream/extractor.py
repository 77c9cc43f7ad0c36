"""
Frame Extractor
===============

Turns boundary-delimited byte chunks into decoded frames.

Each multipart part carries one JPEG still. Bytes accumulate until the
next boundary signal; only then is a decode attempted.

Design Rules:
    - The buffer is reset at every boundary, whatever the decode outcome
    - Undecodable parts are dropped, never carried into the next part
    - An empty part produces nothing
    - Oversized parts are discarded without buffering the excess
"""

import logging
from typing import Any, Callable, Optional

from osc_preview.errors import ImageDecodeError


logger = logging.getLogger(__name__)


Decoder = Callable[[bytes], Any]


class ExtractorStats:
    """Counters for frame extraction."""

    __slots__ = (
        "frames_decoded",
        "decode_failures",
        "empty_parts",
        "overflowed_parts",
    )

    def __init__(self) -> None:
        self.frames_decoded: int = 0
        self.decode_failures: int = 0
        self.empty_parts: int = 0
        self.overflowed_parts: int = 0


class FrameExtractor:
    """
    Byte accumulator for one connection generation.

    Attributes:
        buffered: Number of bytes held for the current part

    Example:
        extractor = FrameExtractor(decode_jpeg)
        extractor.feed(chunk)
        image = extractor.boundary()  # None if nothing decodable
    """

    def __init__(
        self,
        decoder: Decoder,
        max_part_bytes: int = 8 * 1024 * 1024,
        stats: Optional[ExtractorStats] = None,
    ) -> None:
        """
        Initialize extractor.

        Args:
            decoder: Callable turning bytes into an image, raising
                ImageDecodeError on failure
            max_part_bytes: Largest part accepted for decoding
            stats: Counters to update. If None, a private set is used.
        """
        self._decoder = decoder
        self._max_part_bytes = max_part_bytes
        self._buffer = bytearray()
        self._overflowed = False
        self.stats = stats if stats is not None else ExtractorStats()

    @property
    def buffered(self) -> int:
        """Bytes held for the current part."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> None:
        """Append bytes to the current part."""
        if self._overflowed:
            return

        if len(self._buffer) + len(chunk) > self._max_part_bytes:
            logger.warning(
                f"Part exceeds {self._max_part_bytes} bytes, discarding until next boundary"
            )
            self._overflowed = True
            self._buffer.clear()
            return

        self._buffer.extend(chunk)

    def boundary(self) -> Optional[Any]:
        """
        Close the current part and try to decode it.

        Returns:
            Decoded image, or None if the part was empty, oversized
            or undecodable
        """
        data = bytes(self._buffer)
        overflowed = self._overflowed
        self.reset()

        if overflowed:
            self.stats.overflowed_parts += 1
            return None

        if not data:
            self.stats.empty_parts += 1
            return None

        try:
            image = self._decoder(data)
        except ImageDecodeError as e:
            self.stats.decode_failures += 1
            logger.debug(f"Dropping undecodable part: {e}")
            return None

        self.stats.frames_decoded += 1
        return image

    def reset(self) -> None:
        """Discard the current part."""
        self._buffer = bytearray()
        self._overflowed = False
