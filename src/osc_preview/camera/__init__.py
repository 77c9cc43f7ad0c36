"""
Camera Module
=============

Collaborators of the live-preview controller.

This module provides the camera-facing layer:
    - OscClient: Session negotiation and OSC command execution
    - HttpxTransport: Streaming HTTP connection with multipart parsing
    - MultipartParser: Incremental multipart/x-mixed-replace parser
    - Protocols: SessionManager, CommandExecutor, Transport
"""

from osc_preview.camera.multipart import MultipartParser, parse_boundary
from osc_preview.camera.osc import OscClient
from osc_preview.camera.protocols import (
    CaptureMode,
    Command,
    CommandExecutor,
    ConnectionHandle,
    EventSink,
    RequestDescriptor,
    Session,
    SessionManager,
    Transport,
    set_capture_mode,
)
from osc_preview.camera.transport import HttpxConnection, HttpxTransport


__all__ = [
    "CaptureMode",
    "Command",
    "CommandExecutor",
    "ConnectionHandle",
    "EventSink",
    "HttpxConnection",
    "HttpxTransport",
    "MultipartParser",
    "OscClient",
    "RequestDescriptor",
    "Session",
    "SessionManager",
    "Transport",
    "parse_boundary",
    "set_capture_mode",
]
