"""
Live Preview Controller
=======================

Owns the preview connection and drives the stream state machine.

This module provides the LivePreview class which:
    - Negotiates a session and sets image capture mode before each stream
    - Opens the preview request through a Transport
    - Feeds transport events into a FrameExtractor
    - Delivers decoded frames to the caller's callback
    - Restarts the stream after a fixed delay when it drops

Concurrency:
    All state lives on one asyncio event loop. Transport events, start()
    and stop() are serialized by that loop. Every connection is bound to
    the generation token current when it was opened; events and queued
    deliveries from any other generation are ignored.

Design Rules:
    - start() always restarts; it never reuses a connection
    - stop() is idempotent and never raises
    - After stop() returns no callback runs for a superseded generation
    - Session and command failures surface from start(); transport
      failures only ever trigger a restart
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional

from osc_preview.camera.protocols import (
    CaptureMode,
    CommandExecutor,
    ConnectionHandle,
    SessionManager,
    Transport,
    set_capture_mode,
)
from osc_preview.errors import CommandError, SessionNegotiationError, TransportError
from osc_preview.models.events import Boundary, Completed, Data, TransportEvent
from osc_preview.models.state import PreviewStatus, StreamState
from osc_preview.stream.extractor import Decoder, ExtractorStats, FrameExtractor
from osc_preview.stream.image_decoder import decode_jpeg
from osc_preview.stream.scheduler import RestartScheduler


logger = logging.getLogger(__name__)


FrameCallback = Callable[[Optional[Any]], None]


class LivePreviewMetrics:
    """Metrics for LivePreview observability."""

    __slots__ = (
        "frames_delivered",
        "stream_drops",
        "restarts",
        "failed_starts",
        "stale_events",
        "last_frame_time",
        "extraction",
    )

    def __init__(self) -> None:
        self.frames_delivered: int = 0
        self.stream_drops: int = 0
        self.restarts: int = 0
        self.failed_starts: int = 0
        self.stale_events: int = 0
        self.last_frame_time: float = 0.0
        self.extraction = ExtractorStats()

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_delivered": self.frames_delivered,
            "frames_decoded": self.extraction.frames_decoded,
            "decode_failures": self.extraction.decode_failures,
            "empty_parts": self.extraction.empty_parts,
            "overflowed_parts": self.extraction.overflowed_parts,
            "stream_drops": self.stream_drops,
            "restarts": self.restarts,
            "failed_starts": self.failed_starts,
            "stale_events": self.stale_events,
            "last_frame_time": self.last_frame_time,
        }


class LivePreview:
    """
    Live preview stream controller.

    Attributes:
        state: Current StreamState
        generation: Current connection generation token
        metrics: Operational metrics

    Example:
        client = OscClient("http://192.168.1.1")
        preview = LivePreview(client, client, HttpxTransport())

        await preview.start(on_frame)   # on_frame(image) / on_frame(None)
        ...
        preview.stop()
    """

    def __init__(
        self,
        session_manager: SessionManager,
        command_executor: CommandExecutor,
        transport: Transport,
        decoder: Decoder = decode_jpeg,
        restart_delay: float = 5.0,
        max_part_bytes: int = 8 * 1024 * 1024,
    ) -> None:
        """
        Initialize controller.

        Args:
            session_manager: Source of camera sessions
            command_executor: Runs setOptions and builds the preview request
            transport: Opens the streaming connection
            decoder: Turns part bytes into an image, raising ImageDecodeError
            restart_delay: Seconds between a drop and the automatic restart
            max_part_bytes: Largest part accepted for decoding
        """
        self._session_manager = session_manager
        self._command_executor = command_executor
        self._transport = transport
        self._decoder = decoder
        self._max_part_bytes = max_part_bytes

        # State
        self._state: StreamState = StreamState.STOPPED
        self._generation: int = 0
        self._callback: Optional[FrameCallback] = None
        self._on_ended: Optional[Callable[[int, Optional[TransportError]], None]] = None
        self._connection: Optional[ConnectionHandle] = None
        self._scheduler = RestartScheduler(delay=restart_delay)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Metrics
        self.metrics = LivePreviewMetrics()

        self._extractor = self._new_extractor()

    @property
    def state(self) -> StreamState:
        """Current stream state."""
        return self._state

    @property
    def generation(self) -> int:
        """Current connection generation token."""
        return self._generation

    @property
    def connected(self) -> bool:
        """Whether a transport connection is open."""
        return self._connection is not None

    @property
    def restart_pending(self) -> bool:
        """Whether an automatic restart is scheduled."""
        return self._scheduler.pending

    def status(self) -> PreviewStatus:
        """Snapshot for diagnostics."""
        return PreviewStatus(
            state=self._state,
            generation=self._generation,
            connected=self.connected,
            restart_pending=self.restart_pending,
            last_frame_time=self.metrics.last_frame_time or None,
        )

    async def start(self, callback: FrameCallback) -> None:
        """
        Start, or restart, preview delivery.

        Cancels any previous connection and pending restart, then runs
        session -> set capture mode -> open stream. If another start()
        or stop() supersedes this call while it waits, it returns without
        touching state, even when its session or command step failed.
        A failed command invalidates the session it used.

        Args:
            callback: Receives each decoded frame, and None whenever the
                stream drops

        Raises:
            SessionNegotiationError: If no session could be obtained
            CommandError: If the capture mode could not be set
        """
        self._loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation

        self._cancel_connection()
        self._extractor = self._new_extractor()
        self._scheduler.cancel()
        self._callback = callback
        self._on_ended = functools.partial(self._handle_stream_ended, callback)
        self._set_state(StreamState.CONNECTING)

        try:
            session = await self._session_manager.current_session()
            if not self._is_current(generation):
                logger.debug(f"Start superseded after session (generation {generation})")
                return

            await self._command_executor.execute(
                set_capture_mode(session.id, CaptureMode.IMAGE)
            )
            if not self._is_current(generation):
                logger.debug(f"Start superseded after setOptions (generation {generation})")
                return

            request = self._command_executor.build_live_preview_request(session.id)

        except (SessionNegotiationError, CommandError) as e:
            if isinstance(e, CommandError):
                self._session_manager.invalidate_session()
            if not self._is_current(generation):
                logger.debug(f"Superseded start failed (generation {generation}): {e}")
                return

            self.metrics.failed_starts += 1
            logger.error(f"Live preview start failed: {e}")
            self._callback = None
            self._on_ended = None
            self._set_state(StreamState.STOPPED)
            raise

        self._connection = self._transport.open(
            request,
            functools.partial(self._on_event, generation),
        )
        logger.info(f"Live preview connection opened (generation {generation})")

    def stop(self) -> None:
        """
        Stop preview delivery.

        Safe to call at any time, any number of times.
        """
        self._generation += 1
        self._callback = None
        self._on_ended = None
        self._cancel_connection()
        self._scheduler.cancel()
        self._extractor.reset()

        if self._state is not StreamState.STOPPED:
            logger.info("Live preview stopped")
        self._set_state(StreamState.STOPPED)

    def stop_threadsafe(self) -> None:
        """Request stop() from a thread other than the event loop's."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.stop)

    async def close(self) -> None:
        """Stop and wait for any restart already in progress to settle."""
        self.stop()
        await self._scheduler.drain()

    # -------------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------------

    def _on_event(self, generation: int, event: TransportEvent) -> None:
        if generation != self._generation:
            self.metrics.stale_events += 1
            return

        if isinstance(event, Data):
            self._extractor.feed(event.payload)

        elif isinstance(event, Boundary):
            image = self._extractor.boundary()
            if image is not None:
                if self._state is StreamState.CONNECTING:
                    logger.info("Live preview streaming")
                    self._set_state(StreamState.STREAMING)
                self._deliver(generation, image)

        elif isinstance(event, Completed):
            self._connection = None
            handler = self._on_ended
            if handler is not None:
                handler(generation, event.error)

    def _handle_stream_ended(
        self,
        callback: FrameCallback,
        generation: int,
        error: Optional[TransportError],
    ) -> None:
        self.metrics.stream_drops += 1
        self._extractor.reset()

        if error is not None:
            logger.warning(f"Live preview dropped: {error}")
        else:
            logger.info("Live preview ended by camera")

        # The camera may have dropped the session along with the stream.
        self._session_manager.invalidate_session()
        self._deliver(generation, None)
        self._set_state(StreamState.CONNECTING)
        self._scheduler.schedule(functools.partial(self._restart, generation, callback))

    async def _restart(self, generation: int, callback: FrameCallback) -> None:
        if generation != self._generation:
            return

        self.metrics.restarts += 1
        logger.info("Restarting live preview")
        try:
            await self.start(callback)
        except (SessionNegotiationError, CommandError) as e:
            logger.error(f"Automatic restart failed, preview stopped: {e}")

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def _deliver(self, generation: int, image: Optional[Any]) -> None:
        asyncio.get_running_loop().call_soon(self._run_callback, generation, image)

    def _run_callback(self, generation: int, image: Optional[Any]) -> None:
        callback = self._callback
        if generation != self._generation or callback is None:
            return

        if image is not None:
            self.metrics.frames_delivered += 1
            self.metrics.last_frame_time = time.time()

        try:
            callback(image)
        except Exception:
            logger.exception("Live preview callback raised")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _set_state(self, state: StreamState) -> None:
        if state is not self._state:
            logger.debug(f"Live preview state: {self._state.value} -> {state.value}")
            self._state = state

    def _cancel_connection(self) -> None:
        if self._connection is not None:
            self._connection.cancel()
            self._connection = None

    def _new_extractor(self) -> FrameExtractor:
        return FrameExtractor(
            self._decoder,
            max_part_bytes=self._max_part_bytes,
            stats=self.metrics.extraction,
        )
