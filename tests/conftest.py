"""
Test Configuration
==================

Pytest fixtures for the live-preview tests.
"""

import cv2
import numpy as np
import pytest

from tests.helpers import FakeCommandExecutor, FakeSessionManager, FakeTransport


@pytest.fixture
def session_manager():
    return FakeSessionManager()


@pytest.fixture
def command_executor():
    return FakeCommandExecutor()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def jpeg_bytes():
    """Provide a small valid JPEG."""
    image = np.full((16, 24, 3), 127, dtype=np.uint8)
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return buffer.tobytes()
