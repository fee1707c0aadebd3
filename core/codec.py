from __future__ import annotations

import base64
import binascii
import re

import cv2  # type: ignore[import]
import numpy as np

from .exceptions import DecodeFailureError, EncodeFailureError

DEFAULT_JPEG_QUALITY = 85
DATA_URL_PREFIX = re.compile(r'^data:image/[\w.+-]+;base64,', re.IGNORECASE)


def decode_image(data: bytes) -> np.ndarray:
    """Decode compressed image bytes into an HxWx3 BGR buffer."""
    if not data:
        raise DecodeFailureError('Image payload is empty.')
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise DecodeFailureError('Image payload is not a decodable image.')
    return image


def decode_base64_image(payload: str) -> np.ndarray:
    cleaned = DATA_URL_PREFIX.sub('', payload.strip(), count=1)
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeFailureError(f"Image payload is not valid base64: {exc}") from exc
    return decode_image(data)


def encode_jpeg(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    success, buffer = cv2.imencode('.jpg', image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not success:
        raise EncodeFailureError('Failed to encode rectified image to JPEG.')
    return buffer.tobytes()


def encode_base64_jpeg(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    return base64.b64encode(encode_jpeg(image, quality)).decode('ascii')
