"""
Stream State Models
===================

This module defines the state representation of a live preview.

Core Concepts:
    - StreamState: Discrete controller states (STOPPED, CONNECTING, STREAMING)
    - PreviewStatus: Read-only snapshot exposed for diagnostics

Transitions:
    STOPPED    → CONNECTING: start()
    CONNECTING → STREAMING:  first decoded frame
    STREAMING  → CONNECTING: connection ended while not stopped (restart pending)
    any        → STOPPED:    stop(), or a failed start()

Example:
    from osc_preview.models.state import StreamState

    if preview.state is StreamState.STREAMING:
        print("Preview is live")
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StreamState(str, Enum):
    """
    Discrete states of the live-preview controller.

    There is exactly one authoritative value, owned by LivePreview.

    Attributes:
        STOPPED: No connection, no pending restart
        CONNECTING: Negotiating a session, opening the stream, or waiting
            for the first decodable frame (also while a restart is pending)
        STREAMING: At least one frame decoded on the current connection
    """

    STOPPED = "STOPPED"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"


class PreviewStatus(BaseModel):
    """
    Diagnostic snapshot of a LivePreview.

    Attributes:
        state: Current stream state
        generation: Current connection generation token
        connected: Whether a transport connection is currently open
        restart_pending: Whether a restart is scheduled
        last_frame_time: UNIX timestamp of the last delivered frame
    """

    state: StreamState = Field(
        default=StreamState.STOPPED,
        description="Current stream state",
    )

    generation: int = Field(
        default=0,
        ge=0,
        description="Current connection generation token",
    )

    connected: bool = Field(
        default=False,
        description="Whether a transport connection is open",
    )

    restart_pending: bool = Field(
        default=False,
        description="Whether an automatic restart is scheduled",
    )

    last_frame_time: Optional[float] = Field(
        default=None,
        description="UNIX timestamp of the last delivered frame",
    )
