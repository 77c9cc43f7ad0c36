"""
OSC Live Preview
================

Live-preview client for cameras speaking the Open Spherical Camera HTTP API.

The package opens the camera's multipart preview stream, extracts each
JPEG still, and hands decoded frames to a caller-supplied callback. When
the connection drops it renegotiates a session and reopens the stream
after a fixed delay.

Components:
    - camera: OSC command client, HTTP transport, multipart parsing
    - stream: Frame extraction, restart scheduling, LivePreview controller
    - models: Stream state and transport event types

Example:
    from osc_preview.camera import HttpxTransport, OscClient
    from osc_preview.stream import LivePreview

    client = OscClient("http://192.168.1.1")
    preview = LivePreview(client, client, HttpxTransport())
    await preview.start(lambda image: show(image))
"""

__version__ = "0.1.0"
__author__ = "OSC Preview Project"

__all__ = [
    "__version__",
]
