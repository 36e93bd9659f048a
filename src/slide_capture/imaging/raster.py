"""
Raster Reducer
==============

Produces the fixed-size thumbnail that every similarity check runs on.

This module handles:
    - Restricting a frame to its crop rectangle
    - Resizing the crop to a target_size x target_size buffer (area averaging)
    - Grayscale conversion and block-average downsampling shared by the hashes

Design Rules:
    - This is the ONLY place that resamples frame pixels for comparison
    - The reducer never clamps the crop: an out-of-bounds crop is a
      configuration bug and surfaces as SourceUnavailableError
    - Cost is bounded by the thumbnail size, not the source resolution
"""

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from slide_capture.errors import SourceUnavailableError
from slide_capture.models.geometry import Rect


logger = logging.getLogger(__name__)


DEFAULT_THUMBNAIL_SIZE = 64


@dataclass(frozen=True, slots=True, eq=False)
class Thumbnail:
    """
    Small fixed-size pixel buffer derived from a cropped frame.

    The pixel array is copied on construction and made read-only so a
    thumbnail kept as the comparison baseline can never change under it.

    Attributes:
        pixels: (size, size[, channels]) uint8 array
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(f"Invalid thumbnail shape: {pixels.shape}")
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def is_identical(self, other: "Thumbnail") -> bool:
        """Byte-for-byte equality, including shape."""
        return (
            self.pixels.shape == other.pixels.shape
            and np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self) -> str:
        return f"Thumbnail(shape={self.pixels.shape})"


def reduce_frame(
    pixels: np.ndarray,
    crop: Rect,
    target_size: int = DEFAULT_THUMBNAIL_SIZE,
) -> Thumbnail:
    """
    Reduce the crop rectangle of a frame to a square thumbnail.

    Args:
        pixels: Frame pixels, (H, W) or (H, W, C) uint8
        crop: Rectangle to sample, must already lie inside the frame
        target_size: Edge length of the thumbnail in pixels

    Returns:
        Thumbnail of shape (target_size, target_size[, C])

    Raises:
        SourceUnavailableError: If the frame has zero area or the crop lies
            outside the frame bounds
    """
    if target_size < 1:
        raise ValueError("target_size must be >= 1")

    if pixels is None or pixels.ndim not in (2, 3):
        raise SourceUnavailableError(f"Degenerate frame: {getattr(pixels, 'shape', None)}")

    height, width = pixels.shape[:2]
    if width == 0 or height == 0:
        raise SourceUnavailableError("Frame has zero area")

    if not crop.fits_within(width, height):
        raise SourceUnavailableError(
            f"Crop {crop.to_dict()} lies outside frame bounds {width}x{height}"
        )

    region = crop.crop_from(pixels)
    resized = cv2.resize(
        np.ascontiguousarray(region),
        (target_size, target_size),
        interpolation=cv2.INTER_AREA,
    )

    return Thumbnail(resized)


def to_grayscale(pixels: np.ndarray, integer: bool = False) -> np.ndarray:
    """
    Convert pixels to grayscale as the mean of the colour channels.

    A fourth (alpha) channel is ignored. Single-channel input is returned
    as float64 unchanged.

    Args:
        pixels: (H, W) or (H, W, C) array
        integer: Floor each value, i.e. floor((c0 + c1 + c2) / 3)

    Returns:
        (H, W) float64 array
    """
    if pixels.ndim == 2:
        return pixels.astype(np.float64)

    channels = pixels.shape[2]
    if channels == 1:
        return pixels[:, :, 0].astype(np.float64)

    used = min(channels, 3)
    total = pixels[:, :, :used].astype(np.int64).sum(axis=2)
    if integer:
        return (total // used).astype(np.float64)
    return total.astype(np.float64) / used


def area_downsample(gray: np.ndarray, n: int) -> np.ndarray:
    """
    Downsample a 2-D array to n x n by averaging pixel blocks.

    Block i along an axis of length L spans [floor(i*L/n), floor((i+1)*L/n)).

    Args:
        gray: (H, W) array with H >= n and W >= n
        n: Output edge length

    Returns:
        (n, n) float64 array of block means
    """
    height, width = gray.shape
    if n < 1 or height < n or width < n:
        raise ValueError(f"Cannot downsample {width}x{height} to {n}x{n}")

    row_starts = (np.arange(n) * height) // n
    col_starts = (np.arange(n) * width) // n

    data = gray.astype(np.float64)
    sums = np.add.reduceat(np.add.reduceat(data, row_starts, axis=0), col_starts, axis=1)

    row_counts = np.diff(np.append(row_starts, height))
    col_counts = np.diff(np.append(col_starts, width))

    return sums / np.outer(row_counts, col_counts)
