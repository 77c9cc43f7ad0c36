"""
OSC Preview Service
===================

FastAPI entry point that keeps a camera's live preview running and
republishes it over HTTP.

Endpoints:
    GET  /               - Service information
    GET  /health         - Liveness probe (is process alive?)
    GET  /ready          - Readiness probe (is the preview streaming?)
    GET  /metrics        - Preview metrics
    GET  /frame          - Latest preview frame as JPEG
    POST /preview/start  - Start (or restart) the preview
    POST /preview/stop   - Stop the preview
    WS   /ws/status      - Real-time preview status
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import numpy as np
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from osc_preview.camera import HttpxTransport, OscClient
from osc_preview.config import settings
from osc_preview.errors import CommandError, SessionNegotiationError
from osc_preview.models.state import StreamState
from osc_preview.stream import LivePreview, encode_jpeg


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_osc_client: Optional[OscClient] = None
_transport: Optional[HttpxTransport] = None
_preview: Optional[LivePreview] = None
_start_task: Optional[asyncio.Task] = None

_latest_frame: Optional[np.ndarray] = None
_latest_frame_time: float = 0.0
_startup_time: float = 0.0
_last_start_error: Optional[str] = None


# =============================================================================
# Getters
# =============================================================================

def get_preview() -> Optional[LivePreview]:
    return _preview

def get_latest_frame() -> Optional[np.ndarray]:
    return _latest_frame


# =============================================================================
# Preview Control
# =============================================================================

def on_frame(image: Optional[np.ndarray]) -> None:
    """Preview callback: keep the newest frame, forget it when the stream drops."""
    global _latest_frame, _latest_frame_time

    _latest_frame = image
    if image is not None:
        _latest_frame_time = time.time()


async def start_preview() -> bool:
    """
    Start the preview, recording any failure.

    Returns:
        True if the stream was opened, False if start failed
    """
    global _last_start_error

    if _preview is None:
        return False

    try:
        await _preview.start(on_frame)
    except (SessionNegotiationError, CommandError) as e:
        _last_start_error = str(e)
        return False

    _last_start_error = None
    return True


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _osc_client, _transport, _preview, _start_task, _startup_time
    global _latest_frame

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")
    logger.info(f"Camera URL: {settings.camera.base_url}")

    _osc_client = OscClient(
        settings.camera.base_url,
        timeout=settings.camera.request_timeout_seconds,
    )
    _transport = HttpxTransport(
        chunk_size=settings.preview.chunk_size,
        connect_timeout=settings.preview.connect_timeout_seconds,
        read_timeout=settings.preview.read_timeout_seconds,
    )
    _preview = LivePreview(
        _osc_client,
        _osc_client,
        _transport,
        restart_delay=settings.preview.restart_delay_seconds,
        max_part_bytes=settings.preview.max_part_bytes,
    )

    if settings.preview.autostart:
        _start_task = asyncio.create_task(start_preview(), name="preview_autostart")

    yield

    logger.info("Shutting down gracefully...")

    if _start_task and not _start_task.done():
        _start_task.cancel()
        try:
            await _start_task
        except asyncio.CancelledError:
            pass

    if _preview:
        await _preview.close()
    if _transport:
        await _transport.aclose()
    if _osc_client:
        await _osc_client.aclose()

    _preview = None
    _latest_frame = None
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="OSC Preview",
    description="Live preview relay for Open Spherical Camera devices",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    preview = get_preview()
    return JSONResponse({
        "service": settings.service.name,
        "version": settings.service.version,
        "camera": settings.camera.base_url,
        "state": preview.state.value if preview else StreamState.STOPPED.value,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is a preview frame stream live?

    Returns 200 while streaming, 503 otherwise.
    """
    preview = get_preview()
    state = preview.state if preview else StreamState.STOPPED

    body = {
        "state": state.value,
        "last_start_error": _last_start_error,
    }
    if state is StreamState.STREAMING:
        return JSONResponse({"status": "ready", **body})
    return JSONResponse({"status": "not_ready", **body}, status_code=503)


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    preview = get_preview()

    preview_metrics = {}
    if preview:
        preview_metrics = {
            **preview.status().model_dump(mode="json"),
            **preview.metrics.to_dict(),
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "restart_delay_seconds": settings.preview.restart_delay_seconds,
        **preview_metrics,
    })


@app.get("/frame")
async def frame() -> Response:
    """Latest preview frame, re-encoded as JPEG."""
    image = get_latest_frame()

    if image is None:
        return JSONResponse(
            {"error": "No frame available"},
            status_code=503,
        )

    return Response(
        content=encode_jpeg(image),
        media_type="image/jpeg",
        headers={"X-Frame-Time": f"{_latest_frame_time:.3f}"},
    )


@app.post("/preview/start")
async def preview_start() -> JSONResponse:
    """Start or restart the preview."""
    if await start_preview():
        return JSONResponse({"status": "started"})
    return JSONResponse(
        {"status": "failed", "error": _last_start_error},
        status_code=502,
    )


@app.post("/preview/stop")
async def preview_stop() -> JSONResponse:
    """Stop the preview."""
    global _latest_frame

    preview = get_preview()
    if preview:
        preview.stop()
    _latest_frame = None
    return JSONResponse({"status": "stopped"})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/status")
async def status_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time preview status."""
    await websocket.accept()
    logger.info("Client connected to /ws/status")

    try:
        while True:
            preview = get_preview()
            if preview:
                await websocket.send_json(preview.status().model_dump(mode="json"))
            await asyncio.sleep(1.0)

    except WebSocketDisconnect:
        pass
    finally:
        logger.info("Client disconnected from /ws/status")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "osc_preview.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
