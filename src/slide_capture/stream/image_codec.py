"""
Image Codec
===========

Decoding of wire frames and encoding of retained frames.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Validates shape and dtype
    - Fails fast with ImageCodecError on corrupt payloads
"""

import base64
import binascii
import logging
from typing import Dict, Tuple

import cv2
import numpy as np

from slide_capture.errors import ImageCodecError
from slide_capture.stream.frame import EncodedFrame, Frame


logger = logging.getLogger(__name__)


# format -> (file extension, media type)
IMAGE_FORMATS: Dict[str, Tuple[str, str]] = {
    "webp": (".webp", "image/webp"),
    "png": (".png", "image/png"),
    "jpeg": (".jpg", "image/jpeg"),
}


def decode_image_bytes(data: bytes) -> np.ndarray:
    """
    Decode compressed image bytes to a BGR array.

    Raises:
        ImageCodecError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(data, np.uint8)
    if nparr.size == 0:
        raise ImageCodecError("Empty image payload")

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ImageCodecError("cv2.imdecode returned None")

    if bgr.ndim != 3 or bgr.shape[2] != 3 or bgr.dtype != np.uint8:
        raise ImageCodecError(f"Invalid decoded image: shape={bgr.shape}, dtype={bgr.dtype}")

    return bgr


def decode_frame(frame: EncodedFrame) -> Frame:
    """
    Decode a base64 wire frame into pixels.

    Args:
        frame: Frame with base64-encoded image

    Returns:
        Frame with BGR pixels

    Raises:
        ImageCodecError: If decoding fails or the image is invalid
    """
    try:
        image_bytes = base64.b64decode(frame.image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageCodecError(f"Base64 decode failed for frame {frame.frame_id}: {e}") from e

    try:
        bgr = decode_image_bytes(image_bytes)
    except ImageCodecError as e:
        raise ImageCodecError(f"Failed to decode frame {frame.frame_id}: {e}") from e

    return Frame(pixels=bgr, timestamp=frame.timestamp, frame_id=frame.frame_id)


def encode_image(pixels: np.ndarray, fmt: str = "webp", quality: int = 80) -> bytes:
    """
    Encode pixels as a compressed image.

    Args:
        pixels: (H, W[, C]) uint8 array in BGR order
        fmt: "webp", "png" or "jpeg"
        quality: 1..100 (webp/jpeg only)

    Returns:
        Encoded image bytes

    Raises:
        ImageCodecError: On unknown formats or encoder failure
    """
    fmt = fmt.lower()
    if fmt not in IMAGE_FORMATS:
        raise ImageCodecError(f"Unsupported image format: {fmt}")

    extension, _ = IMAGE_FORMATS[fmt]
    if fmt == "webp":
        params = [cv2.IMWRITE_WEBP_QUALITY, int(quality)]
    elif fmt == "jpeg":
        params = [cv2.IMWRITE_JPEG_QUALITY, int(quality)]
    else:
        params = [cv2.IMWRITE_PNG_COMPRESSION, 3]

    if pixels.size == 0:
        raise ImageCodecError("Cannot encode an empty image")

    ok, buffer = cv2.imencode(extension, np.ascontiguousarray(pixels), params)
    if not ok:
        raise ImageCodecError(f"cv2.imencode failed for format {fmt}")

    return buffer.tobytes()


def media_type_for(fmt: str) -> str:
    """MIME type for an image format name."""
    try:
        return IMAGE_FORMATS[fmt.lower()][1]
    except KeyError:
        raise ImageCodecError(f"Unsupported image format: {fmt}") from None
