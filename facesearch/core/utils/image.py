"""
Image processing utility functions.
"""
import base64
import math
from typing import Optional

import cv2
import numpy as np


def bytes_to_numpy_array(
    image_bytes: bytes,
    flags: int = cv2.IMREAD_COLOR,
    max_pixels: Optional[int] = None
) -> np.ndarray:
    """Convert image bytes to a numpy array.

    Images larger than ``max_pixels`` are downscaled, keeping the aspect ratio.

    Args:
        image_bytes: Raw image bytes
        flags: OpenCV imread flags (default: COLOR)
        max_pixels: Optional pixel budget for the decoded image

    Returns:
        numpy.ndarray: Image as a numpy array

    Raises:
        ValueError: If the image cannot be decoded
    """
    if not image_bytes:
        raise ValueError("Empty image bytes")

    np_array = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(np_array, flags)

    if img is None:
        raise ValueError("Failed to decode image bytes")

    if max_pixels:
        height, width = img.shape[:2]
        pixels = width * height
        if pixels > max_pixels:
            scale = math.sqrt(max_pixels / pixels)
            img = cv2.resize(
                img,
                (max(1, int(width * scale)), max(1, int(height * scale))),
                interpolation=cv2.INTER_AREA
            )

    return img


def to_data_uri(content: bytes, mime_type: str) -> str:
    """Build a renderable ``data:`` URI for raw image content."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
