"""
Test Helpers
============

Fake collaborators shared by the live-preview tests.
"""

import asyncio
from typing import List, Optional

from osc_preview.camera.protocols import Command, RequestDescriptor, Session
from osc_preview.errors import CommandError, ImageDecodeError, SessionNegotiationError
from osc_preview.models.events import Boundary, Completed, Data, TransportEvent


CAMERA_URL = "http://camera.local"


class FakeSessionManager:
    """SessionManager that counts calls and can fail or block."""

    def __init__(self) -> None:
        self.calls = 0
        self.invalidations = 0
        self.error: Optional[SessionNegotiationError] = None
        self.gate: Optional[asyncio.Event] = None

    def invalidate_session(self) -> None:
        self.invalidations += 1

    async def current_session(self) -> Session:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return Session(id=f"SID_{self.calls:04d}")


class FakeCommandExecutor:
    """CommandExecutor that records executed commands."""

    def __init__(self) -> None:
        self.executed: List[Command] = []
        self.error: Optional[CommandError] = None

    async def execute(self, command: Command) -> dict:
        self.executed.append(command)
        if self.error is not None:
            raise self.error
        return {}

    def build_live_preview_request(self, session_id: str) -> RequestDescriptor:
        return RequestDescriptor(
            method="POST",
            url=f"{CAMERA_URL}/osc/commands/execute",
            json={"name": "camera._getLivePreview", "parameters": {"sessionId": session_id}},
        )


class FakeConnection:
    """Connection whose events are pushed by the test."""

    def __init__(self, request: RequestDescriptor, sink) -> None:
        self.request = request
        self.sink = sink
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def emit(self, *events: TransportEvent) -> None:
        for event in events:
            self.sink(event)

    def part(self, payload: bytes) -> None:
        """Send one part's bytes followed by the boundary that closes it."""
        self.emit(Data(payload), Boundary())

    def complete(self, error=None) -> None:
        self.emit(Completed(error=error))


class FakeTransport:
    """Transport that hands out FakeConnections."""

    def __init__(self) -> None:
        self.connections: List[FakeConnection] = []

    def open(self, request: RequestDescriptor, on_event) -> FakeConnection:
        connection = FakeConnection(request, on_event)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


def fake_decoder(data: bytes) -> bytes:
    """Accepts parts starting with b"IMG" and returns their bytes."""
    if not data.startswith(b"IMG"):
        raise ImageDecodeError(f"not an image: {data[:8]!r}")
    return data


async def settle(rounds: int = 3) -> None:
    """Let callbacks queued with call_soon run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
