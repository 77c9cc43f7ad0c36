"""
OSC Client Tests
================

OscClient against httpx.MockTransport.
"""

import json

import httpx
import pytest

from osc_preview.camera.osc import OscClient
from osc_preview.camera.protocols import CaptureMode, set_capture_mode
from osc_preview.errors import CommandError, SessionNegotiationError
from tests.helpers import CAMERA_URL


class FakeCamera:
    """Minimal OSC command endpoint."""

    def __init__(self) -> None:
        self.commands = []
        self.sessions = 0
        self.fail_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/osc/commands/execute"
        body = json.loads(request.content)
        self.commands.append(body)

        if self.fail_with is not None:
            return httpx.Response(
                400,
                json={
                    "name": body["name"],
                    "state": "error",
                    "error": {"code": self.fail_with, "message": "Command rejected"},
                },
            )

        if body["name"] == "camera.startSession":
            self.sessions += 1
            return httpx.Response(200, json={
                "name": body["name"],
                "state": "done",
                "results": {"sessionId": f"SID_{self.sessions:04d}", "timeout": 180},
            })

        return httpx.Response(200, json={"name": body["name"], "state": "done"})


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def client(camera):
    http = httpx.AsyncClient(transport=httpx.MockTransport(camera))
    return OscClient(CAMERA_URL + "/", client=http)


class TestSessions:
    """Tests for session negotiation."""

    @pytest.mark.asyncio
    async def test_session_is_cached(self, client, camera):
        """Repeated calls reuse the session until it is invalidated."""
        first = await client.current_session()
        second = await client.current_session()

        assert first.id == "SID_0001"
        assert second is first
        assert camera.sessions == 1
        assert not first.expired

        client.invalidate_session()
        third = await client.current_session()
        assert third.id == "SID_0002"

    @pytest.mark.asyncio
    async def test_session_refused(self, client, camera):
        """An OSC error during startSession is a SessionNegotiationError."""
        camera.fail_with = "disabledCommand"

        with pytest.raises(SessionNegotiationError):
            await client.current_session()

    @pytest.mark.asyncio
    async def test_session_unreachable(self):
        """Connection failures during startSession are SessionNegotiationError."""
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = OscClient(
            CAMERA_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(SessionNegotiationError):
            await client.current_session()

    @pytest.mark.asyncio
    async def test_rejected_session_is_renegotiated(self, client, camera):
        """A command refused for the cached session drops it from the cache."""
        session = await client.current_session()

        camera.fail_with = "invalidSessionId"
        with pytest.raises(CommandError):
            await client.execute(set_capture_mode(session.id, CaptureMode.IMAGE))
        camera.fail_with = None

        renewed = await client.current_session()
        assert renewed.id == "SID_0002"
        assert camera.sessions == 2

    @pytest.mark.asyncio
    async def test_failure_for_other_session_keeps_cache(self, client, camera):
        """Only a failure naming the cached session drops it."""
        session = await client.current_session()

        camera.fail_with = "invalidSessionId"
        with pytest.raises(CommandError):
            await client.execute(set_capture_mode("SID_9999", CaptureMode.IMAGE))
        camera.fail_with = None

        assert await client.current_session() is session


class TestCommands:
    """Tests for command execution."""

    @pytest.mark.asyncio
    async def test_set_capture_mode(self, client, camera):
        """setOptions is posted with the image capture mode."""
        await client.execute(set_capture_mode("SID_0001", CaptureMode.IMAGE))

        assert camera.commands[-1] == {
            "name": "camera.setOptions",
            "parameters": {
                "sessionId": "SID_0001",
                "options": {"captureMode": "image"},
            },
        }

    @pytest.mark.asyncio
    async def test_error_carries_code(self, client, camera):
        """OSC error bodies become CommandError with the error code."""
        camera.fail_with = "invalidSessionId"

        with pytest.raises(CommandError) as excinfo:
            await client.execute(set_capture_mode("stale", CaptureMode.IMAGE))

        assert excinfo.value.code == "invalidSessionId"
        assert excinfo.value.command == "camera.setOptions"

    def test_live_preview_request(self, client):
        """The preview request targets the execute endpoint."""
        request = client.build_live_preview_request("SID_0042")

        assert request.method == "POST"
        assert request.url == f"{CAMERA_URL}/osc/commands/execute"
        assert request.json == {
            "name": "camera._getLivePreview",
            "parameters": {"sessionId": "SID_0042"},
        }

    @pytest.mark.asyncio
    async def test_non_object_error_body(self):
        """A non-object JSON error body still becomes CommandError."""
        def handler(request):
            return httpx.Response(500, json=["internal", "error"])

        client = OscClient(
            CAMERA_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(CommandError) as excinfo:
            await client.execute(set_capture_mode("SID_0001", CaptureMode.IMAGE))

        assert "HTTP 500" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_non_object_success_body(self):
        """A 200 answer that is not a JSON object yields empty results."""
        def handler(request):
            return httpx.Response(200, json="done")

        client = OscClient(
            CAMERA_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        assert await client.execute(set_capture_mode("SID_0001", CaptureMode.IMAGE)) == {}

        with pytest.raises(SessionNegotiationError):
            await client.current_session()
