"""
HTTP Transport
==============

Streaming HTTP transport built on httpx.

Each call to ``HttpxTransport.open`` starts one background task that:
    - Sends the preview request
    - Checks the status and the multipart Content-Type
    - Feeds the body through a MultipartParser
    - Reports Boundary / Data events as they are parsed
    - Reports exactly one Completed event when the body ends or fails,
      whatever the failure

Cancellation:
    ``HttpxConnection.cancel()`` cancels the task. A cancelled connection
    reports no Completed event. Events that were already dispatched before
    the cancel took effect are the caller's to ignore.
"""

import asyncio
import logging
from typing import Optional

import httpx

from osc_preview.camera.multipart import MultipartParser, parse_boundary
from osc_preview.camera.protocols import EventSink, RequestDescriptor
from osc_preview.errors import TransportError
from osc_preview.models.events import Completed


logger = logging.getLogger(__name__)


class HttpxConnection:
    """Handle to one streaming preview request."""

    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task

    @property
    def done(self) -> bool:
        """Whether the connection task has finished."""
        return self._task.done()

    def cancel(self) -> None:
        """Request cancellation of the connection."""
        self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the connection task has finished."""
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class HttpxTransport:
    """
    Transport that streams preview bodies with httpx.AsyncClient.

    Attributes:
        chunk_size: Read size for the response body

    Example:
        transport = HttpxTransport(read_timeout=10.0)
        connection = transport.open(request, on_event)
        ...
        connection.cancel()
        await transport.aclose()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = 8192,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
    ) -> None:
        """
        Initialize transport.

        Args:
            client: Client to use. If None, one is created and owned.
            chunk_size: Read size for the response body
            connect_timeout: Seconds allowed to open the connection
            read_timeout: Seconds of silence before the stream is dropped
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            follow_redirects=True,
        )
        self.chunk_size = chunk_size

    def open(self, request: RequestDescriptor, on_event: EventSink) -> HttpxConnection:
        """
        Open a streaming request in the background.

        Must be called from a running event loop.

        Args:
            request: Request to send
            on_event: Receives Boundary, Data and Completed events

        Returns:
            Handle for cancelling the connection
        """
        task = asyncio.get_running_loop().create_task(
            self._run(request, on_event),
            name="live_preview_connection",
        )
        return HttpxConnection(task)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _run(self, request: RequestDescriptor, on_event: EventSink) -> None:
        error: Optional[TransportError] = None

        try:
            async with self._client.stream(
                request.method,
                request.url,
                json=request.json,
                headers=request.headers,
            ) as response:
                if response.status_code != 200:
                    raise TransportError(
                        f"Preview endpoint returned HTTP {response.status_code}"
                    )

                parser = MultipartParser(
                    parse_boundary(response.headers.get("content-type"))
                )
                logger.info(f"Preview stream opened: {request.url}")

                async for chunk in response.aiter_bytes(self.chunk_size):
                    for event in parser.feed(chunk):
                        on_event(event)
                    if parser.finished:
                        break

        except TransportError as e:
            error = e
        except (httpx.HTTPError, httpx.StreamError) as e:
            error = TransportError(f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception("Unexpected error in preview stream")
            error = TransportError(f"Unexpected {type(e).__name__}: {e}")

        if error is not None:
            logger.warning(f"Preview stream failed: {error}")
        else:
            logger.info("Preview stream ended")

        on_event(Completed(error=error))
