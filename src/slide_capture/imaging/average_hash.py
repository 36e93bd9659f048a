"""
Average Hash
============

Coarse binary signature used as the fast-reject filter.

Algorithm:
    1. Grayscale = mean of the colour channels
    2. Downsample to n x n by area averaging
    3. bit = 1 where a cell is strictly brighter than the mean of all cells

Ties resolve to 0. The function is pure: identical thumbnails always
produce identical bits.
"""

import numpy as np

from slide_capture.imaging.raster import Thumbnail, area_downsample, to_grayscale
from slide_capture.imaging.signatures import hash_similarity


DEFAULT_HASH_SIZE = 8


def average_hash(thumbnail: Thumbnail, n: int = DEFAULT_HASH_SIZE) -> np.ndarray:
    """
    Compute the average hash of a thumbnail.

    Args:
        thumbnail: Source thumbnail
        n: Grid edge length (hash has n*n bits)

    Returns:
        uint8 array of n*n bits in row-major order
    """
    cells = area_downsample(to_grayscale(thumbnail.pixels), n)
    mean = cells.mean()
    return (cells > mean).astype(np.uint8).ravel()


def average_hash_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Fraction of matching bits between two average hashes."""
    return hash_similarity(a, b)
