"""
OSC Command Client
==================

Minimal Open Spherical Camera client used by the live preview.

Implements both collaborator protocols the preview controller needs:
    - SessionManager: camera.startSession, cached until the session times out
    - CommandExecutor: POST /osc/commands/execute, plus the
      camera._getLivePreview request descriptor

Wire format (OSC API v2.0 with v2.0 session commands):
    Request:  {"name": "camera.startSession", "parameters": {}}
    Success:  {"name": "...", "state": "done", "results": {...}}
    Failure:  {"name": "...", "state": "error",
               "error": {"code": "...", "message": "..."}}
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from osc_preview.camera.protocols import Command, RequestDescriptor, Session
from osc_preview.errors import CommandError, SessionNegotiationError


logger = logging.getLogger(__name__)


EXECUTE_PATH = "/osc/commands/execute"


class OscClient:
    """
    Async OSC command client.

    Attributes:
        base_url: Camera base URL, e.g. "http://192.168.1.1"

    Example:
        client = OscClient("http://192.168.1.1")
        session = await client.current_session()
        await client.execute(set_capture_mode(session.id, CaptureMode.IMAGE))
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize OSC client.

        Args:
            base_url: Camera base URL
            timeout: Timeout for command requests in seconds
            client: Client to use. If None, one is created and owned.
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._session: Optional[Session] = None
        self._session_lock = asyncio.Lock()

    @property
    def execute_url(self) -> str:
        """Absolute URL of the command endpoint."""
        return self.base_url + EXECUTE_PATH

    async def current_session(self) -> Session:
        """
        Get a live session, starting a new one if needed.

        Returns:
            Cached session if still valid, otherwise a fresh one

        Raises:
            SessionNegotiationError: If the camera refused or was unreachable
        """
        async with self._session_lock:
            if self._session is not None and not self._session.expired:
                return self._session

            try:
                results = await self.execute(Command(name="camera.startSession"))
            except CommandError as e:
                raise SessionNegotiationError(f"Could not start session: {e}") from e

            session_id = results.get("sessionId")
            if not session_id:
                raise SessionNegotiationError("camera.startSession returned no sessionId")

            timeout = results.get("timeout")
            expires_at = None
            if isinstance(timeout, (int, float)) and timeout > 0:
                expires_at = time.monotonic() + float(timeout)

            self._session = Session(id=str(session_id), expires_at=expires_at)
            logger.info(f"Started camera session {self._session.id}")
            return self._session

    def invalidate_session(self) -> None:
        """Forget the cached session so the next call renegotiates."""
        self._session = None

    async def execute(self, command: Command) -> Dict[str, Any]:
        """
        Execute an OSC command.

        Args:
            command: Command to run

        Returns:
            The "results" object of the response (empty if absent)

        A failed command that carried the cached session id drops that
        session, so the next current_session() starts a new one.

        Raises:
            CommandError: On HTTP failure or an OSC error response
        """
        try:
            response = await self._client.post(self.execute_url, json=command.to_json())
        except httpx.HTTPError as e:
            self._forget_session_of(command)
            raise CommandError(
                f"{command.name} request failed: {e}", command=command.name
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code != 200 or body.get("state") == "error":
            error = body.get("error")
            if not isinstance(error, dict):
                error = {}
            code = error.get("code")
            message = error.get("message") or f"HTTP {response.status_code}"
            self._forget_session_of(command)
            raise CommandError(
                f"{command.name} failed: {message}",
                command=command.name,
                code=code,
            )

        logger.debug(f"Executed {command.name}")
        results = body.get("results")
        return results if isinstance(results, dict) else {}

    def _forget_session_of(self, command: Command) -> None:
        session_id = command.parameters.get("sessionId")
        if session_id is not None and self._session is not None:
            if self._session.id == session_id:
                logger.info(f"Dropping camera session {session_id} after failed {command.name}")
                self._session = None

    def build_live_preview_request(self, session_id: str) -> RequestDescriptor:
        """Describe the camera._getLivePreview streaming request."""
        command = Command(
            name="camera._getLivePreview",
            parameters={"sessionId": session_id},
        )
        return RequestDescriptor(
            method="POST",
            url=self.execute_url,
            json=command.to_json(),
            headers={"Accept": "multipart/x-mixed-replace"},
        )

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
