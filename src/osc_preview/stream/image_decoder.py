"""
Image Decoder
=============

Dedicated module for decoding preview JPEG parts into OpenCV matrices.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Validates shape and dtype
    - Fails fast on truncated or corrupt parts
"""

import logging

import cv2
import numpy as np

from osc_preview.errors import ImageDecodeError


logger = logging.getLogger(__name__)


def decode_jpeg(data: bytes) -> np.ndarray:
    """
    Decode one preview part to a BGR numpy array.

    Args:
        data: Raw bytes of one multipart part

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        ImageDecodeError: If the bytes are not a complete, valid image
    """
    if not data:
        raise ImageDecodeError("Empty image data")

    nparr = np.frombuffer(data, np.uint8)
    try:
        bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise ImageDecodeError(f"cv2.imdecode failed on {len(data)} bytes: {e}") from e

    if bgr is None:
        raise ImageDecodeError(
            f"Failed to decode {len(data)} bytes: cv2.imdecode returned None"
        )

    if len(bgr.shape) != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(f"Invalid image shape: {bgr.shape}")

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(f"Invalid dtype: {bgr.dtype}")

    return bgr


def encode_jpeg(image: np.ndarray, quality: int = 85) -> bytes:
    """
    Encode a BGR image as JPEG bytes.

    Args:
        image: BGR image
        quality: JPEG quality (0-100)

    Returns:
        JPEG bytes

    Raises:
        ValueError: If OpenCV refuses to encode the image
    """
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError("cv2.imencode failed")
    return buffer.tobytes()
