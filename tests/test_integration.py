"""
End-to-End Preview Tests
========================

LivePreview with the real HttpxTransport, multipart parser and JPEG
decoder, served by httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from osc_preview.camera.osc import OscClient
from osc_preview.camera.transport import HttpxTransport
from osc_preview.models.state import StreamState
from osc_preview.stream.controller import LivePreview
from tests.helpers import CAMERA_URL


BOUNDARY = b"---osclivepreview---"


def preview_body(*parts: bytes) -> bytes:
    body = b""
    for part in parts:
        body += b"--" + BOUNDARY + b"\r\nContent-Type: image/jpeg\r\n\r\n" + part + b"\r\n"
    return body + b"--" + BOUNDARY + b"--\r\n"


class ForgetfulCamera:
    """OSC endpoint that forgets every session once it has served a preview."""

    def __init__(self, jpeg: bytes) -> None:
        self.jpeg = jpeg
        self.valid = set()
        self.sessions = 0
        self.previews = 0
        self.rejected = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        name = body["name"]

        if name == "camera.startSession":
            self.sessions += 1
            session_id = f"SID_{self.sessions:04d}"
            self.valid.add(session_id)
            return httpx.Response(200, json={
                "name": name,
                "state": "done",
                "results": {"sessionId": session_id, "timeout": 180},
            })

        if body["parameters"].get("sessionId") not in self.valid:
            self.rejected += 1
            return httpx.Response(400, json={
                "name": name,
                "state": "error",
                "error": {"code": "invalidSessionId", "message": "bad session"},
            })

        if name == "camera.setOptions":
            return httpx.Response(200, json={"name": name, "state": "done"})

        self.previews += 1
        self.valid.clear()
        return httpx.Response(
            200,
            headers={"content-type": "multipart/x-mixed-replace; boundary=" + BOUNDARY.decode()},
            content=preview_body(self.jpeg),
        )


class TestEndToEnd:
    """Tests for the full pipeline."""

    @pytest.mark.asyncio
    async def test_frames_then_drop(self, session_manager, command_executor, jpeg_bytes):
        """Valid parts become frames, a broken one is skipped, the end signals None."""
        def handler(request):
            body = preview_body(jpeg_bytes, jpeg_bytes[:30], jpeg_bytes)
            return httpx.Response(
                200,
                headers={"content-type": "multipart/x-mixed-replace; boundary=" + BOUNDARY.decode()},
                content=body,
            )

        transport = HttpxTransport(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            chunk_size=64,
        )
        preview = LivePreview(session_manager, command_executor, transport, restart_delay=10)

        frames = []
        await preview.start(frames.append)
        for _ in range(200):
            await asyncio.sleep(0)
            if frames and frames[-1] is None:
                break

        assert len(frames) == 3
        assert frames[0].shape == (16, 24, 3)
        assert frames[1].shape == (16, 24, 3)
        assert frames[2] is None
        assert preview.metrics.extraction.decode_failures == 1
        assert preview.restart_pending
        assert preview.state is StreamState.CONNECTING

        await preview.close()
        await transport.aclose()
        assert preview.state is StreamState.STOPPED

    @pytest.mark.asyncio
    async def test_restart_after_camera_forgets_session(self, jpeg_bytes):
        """A camera that drops its sessions with the stream gets a new session on restart."""
        camera = ForgetfulCamera(jpeg_bytes)
        http = httpx.AsyncClient(transport=httpx.MockTransport(camera))
        client = OscClient(CAMERA_URL, client=http)
        transport = HttpxTransport(client=http)
        preview = LivePreview(client, client, transport, restart_delay=0.02)

        frames = []
        await preview.start(frames.append)
        for _ in range(200):
            await asyncio.sleep(0.01)
            if camera.previews >= 2:
                break

        await preview.close()
        await http.aclose()

        assert camera.previews >= 2
        assert camera.sessions >= 2
        assert camera.rejected == 0
        assert preview.metrics.failed_starts == 0
        assert preview.metrics.restarts >= 1
        assert frames[0].shape == (16, 24, 3)
        assert None in frames
