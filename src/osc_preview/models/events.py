"""
Transport Events
================

Explicit event variants delivered by a transport connection.

A connection reports exactly three kinds of events:
    - Boundary: a new multipart part begins (the previous part is complete)
    - Data: raw bytes belonging to the current part
    - Completed: the connection ended, with an optional error

Design Rules:
    - Events are immutable
    - Events carry no generation; the controller binds the generation
      when it opens the connection
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from osc_preview.errors import TransportError


@dataclass(frozen=True, slots=True)
class Boundary:
    """
    Start of a new part in the multipart response.

    Attributes:
        headers: Part headers, lower-cased names (empty for the
            closing delimiter)
    """

    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Data:
    """Chunk of bytes for the current part."""

    payload: bytes

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the payload."""
        return f"Data(len={len(self.payload)})"


@dataclass(frozen=True, slots=True)
class Completed:
    """
    Connection finished.

    Attributes:
        error: Failure that ended the connection, None on clean EOF
    """

    error: Optional[TransportError] = None


TransportEvent = Union[Boundary, Data, Completed]
