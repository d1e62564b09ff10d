"""
Image encoding helpers shared by the cropper, vision client and removal chain.

Images travel through the pipeline as encoded bytes and are decoded to
NumPy arrays (OpenCV BGR/BGRA channel order) only where pixels are needed.
"""
import base64
import hashlib
import logging
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Magic numbers for the formats the vision service accepts
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def content_hash(data: bytes) -> str:
    """Stable identity of an encoded image (SHA-256 hex digest)."""
    return hashlib.sha256(data).hexdigest()


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode image bytes, keeping an alpha channel if present.

    Args:
        data: Encoded image (PNG, JPEG, WebP, ...)

    Returns:
        H x W x C uint8 array (C is 3 or 4; grayscale is promoted to 3)

    Raises:
        ValueError: If bytes are empty, undecodable, or decode to zero size
    """
    if not data:
        raise ValueError("Invalid image: empty data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)

    if image is None or image.size == 0:
        raise ValueError("Invalid image: could not decode")

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    h, w = image.shape[:2]
    if h == 0 or w == 0:
        raise ValueError(f"Invalid image: zero size {w}x{h}")

    return image


def is_decodable(data: bytes) -> bool:
    """True if the bytes decode to a non-empty image."""
    try:
        decode_image(data)
        return True
    except ValueError:
        return False


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of a decoded image."""
    h, w = image.shape[:2]
    return w, h


def encode_png(image: np.ndarray) -> bytes:
    """Encode an array as PNG (lossless, keeps alpha)."""
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise ValueError("PNG encoding failed")
    return buffer.tobytes()


def encode_jpeg(image: np.ndarray, quality: int = 85) -> bytes:
    """Encode an array as JPEG, dropping any alpha channel."""
    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buffer.tobytes()


def resize_to_max_dimension(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """
    Downscale so the longest side is at most max_dimension.

    Aspect ratio is preserved, so normalized coordinates stay valid.
    Images already small enough are returned unchanged.
    """
    w, h = image_size(image)
    longest = max(w, h)
    if longest <= max_dimension:
        return image

    scale = max_dimension / float(longest)
    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    logger.debug(f"Resizing {w}x{h} -> {new_w}x{new_h} for vision analysis")
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def prepare_for_vision(data: bytes, max_dimension: int = 1024, quality: int = 85) -> bytes:
    """
    Normalize any raster format to a bounded-size JPEG for the vision service.

    Raises:
        ValueError: If the image cannot be decoded
    """
    image = decode_image(data)
    image = resize_to_max_dimension(image, max_dimension)
    return encode_jpeg(image, quality)


def detect_media_type(data: bytes) -> str:
    """Guess the MIME type from magic bytes (defaults to image/png)."""
    for signature, media_type in _SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def to_data_url(data: bytes, media_type: str = None) -> str:
    """Encode bytes as a base64 data URL."""
    media_type = media_type or detect_media_type(data)
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> bytes:
    """
    Decode a base64 data URL back to bytes.

    Raises:
        ValueError: If the URL is not a base64 data URL
    """
    if not url.startswith("data:") or ";base64," not in url:
        raise ValueError("Not a base64 data URL")
    return base64.b64decode(url.split(",", 1)[1])
