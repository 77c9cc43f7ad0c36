"""
Data Models
===========

Types shared between the camera layer and the stream controller.

Models:
    State:
        - StreamState: Enum of preview states (STOPPED, CONNECTING, STREAMING)
        - PreviewStatus: Diagnostic snapshot of a LivePreview

    Events:
        - Boundary, Data, Completed: Transport event variants
        - TransportEvent: Union of the three
"""

from osc_preview.models.state import PreviewStatus, StreamState
from osc_preview.models.events import Boundary, Completed, Data, TransportEvent

__all__ = [
    # State
    "StreamState",
    "PreviewStatus",
    # Events
    "Boundary",
    "Data",
    "Completed",
    "TransportEvent",
]
