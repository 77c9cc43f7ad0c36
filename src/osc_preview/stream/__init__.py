"""
Stream Module
=============

Live-preview stream handling.

This module provides the preview pipeline:
    - FrameExtractor: Boundary-delimited byte accumulation and decoding
    - RestartScheduler: Fixed-delay, cancellable restarts
    - LivePreview: Stream controller with start/stop and auto-restart
    - decode_jpeg: The only image decoding entry point

Example:
    from osc_preview.camera import HttpxTransport, OscClient
    from osc_preview.stream import LivePreview

    client = OscClient("http://192.168.1.1")
    preview = LivePreview(client, client, HttpxTransport(), restart_delay=5.0)

    await preview.start(on_frame)
    ...
    preview.stop()
"""

from osc_preview.stream.controller import FrameCallback, LivePreview, LivePreviewMetrics
from osc_preview.stream.extractor import ExtractorStats, FrameExtractor
from osc_preview.stream.image_decoder import decode_jpeg, encode_jpeg
from osc_preview.stream.scheduler import DelayedTask, RestartScheduler


__all__ = [
    "DelayedTask",
    "ExtractorStats",
    "FrameCallback",
    "FrameExtractor",
    "LivePreview",
    "LivePreviewMetrics",
    "RestartScheduler",
    "decode_jpeg",
    "encode_jpeg",
]
