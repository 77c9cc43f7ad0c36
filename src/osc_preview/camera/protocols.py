"""
Collaborator Interfaces
=======================

Protocols for the collaborators the live-preview controller depends on.

The controller never talks to the camera directly. It asks a
SessionManager for a session, asks a CommandExecutor to switch the camera
into image capture mode and to describe the preview request, then hands
that request to a Transport.

Design Rules:
    - SessionManager and CommandExecutor calls are async and raise
      SessionNegotiationError / CommandError on failure
    - Transport.open is synchronous; the connection runs in the background
      and reports through the event sink
    - ConnectionHandle.cancel is cooperative: events already in flight may
      still arrive after it returns
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from osc_preview.models.events import TransportEvent


EventSink = Callable[[TransportEvent], None]


class CaptureMode(str, Enum):
    """OSC captureMode option values."""

    IMAGE = "image"
    VIDEO = "_video"


@dataclass(frozen=True, slots=True)
class Session:
    """
    Negotiated camera session.

    Attributes:
        id: Opaque session identifier issued by the camera
        expires_at: Monotonic time after which the session is stale,
            None if the camera reported no timeout
    """

    id: str
    expires_at: Optional[float] = None

    @property
    def expired(self) -> bool:
        """Whether the session timeout has elapsed."""
        return self.expires_at is not None and time.monotonic() >= self.expires_at


@dataclass(frozen=True, slots=True)
class Command:
    """
    OSC command ready for execution.

    Attributes:
        name: OSC command name, e.g. "camera.setOptions"
        parameters: Command parameters
    """

    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        """Body for POST /osc/commands/execute."""
        return {"name": self.name, "parameters": dict(self.parameters)}


def set_capture_mode(session_id: str, mode: CaptureMode) -> Command:
    """Build the camera.setOptions command that switches capture mode."""
    return Command(
        name="camera.setOptions",
        parameters={
            "sessionId": session_id,
            "options": {"captureMode": mode.value},
        },
    )


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """
    Everything needed to open an HTTP request.

    Attributes:
        method: HTTP method
        url: Absolute request URL
        json: JSON body, or None
        headers: Extra request headers
    """

    method: str
    url: str
    json: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


class SessionManager(Protocol):
    """Source of camera sessions."""

    async def current_session(self) -> Session:
        ...

    def invalidate_session(self) -> None:
        ...


class CommandExecutor(Protocol):
    """Executes OSC commands and describes the preview request."""

    async def execute(self, command: Command) -> Dict[str, Any]:
        ...

    def build_live_preview_request(self, session_id: str) -> RequestDescriptor:
        ...


class ConnectionHandle(Protocol):
    """Handle to one open transport connection."""

    def cancel(self) -> None:
        ...


class Transport(Protocol):
    """Opens streaming connections."""

    def open(self, request: RequestDescriptor, on_event: EventSink) -> ConnectionHandle:
        ...
