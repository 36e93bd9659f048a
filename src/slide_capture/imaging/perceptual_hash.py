"""
Perceptual Hash
===============

DCT-based binary signature, the authoritative similarity measure.

Algorithm:
    1. Integer grayscale per pixel: floor((r + g + b) / 3)
    2. Area-average the thumbnail down to a 32 x 32 matrix
    3. 2-D DCT-II (orthonormal, c(0) = 1/sqrt(2), c(k>0) = 1)
    4. Keep the top-left 8 x 8 block of coefficients (DC term included)
    5. bit = 1 where the coefficient is strictly greater than 0, row-major

The 2-D transform is computed as D @ M @ D.T with the cached orthonormal
basis matrix D. This equals the direct quadruple-sum definition up to a
positive scale factor, so the sign pattern (and therefore every bit) is
the same.

Robustness:
    The low-frequency block summarizes coarse structure. Compression noise
    and single-pixel changes move these coefficients by a small fraction
    of their magnitude, so bits only flip for coefficients already near 0.
"""

import math
from functools import lru_cache

import numpy as np

from slide_capture.imaging.raster import Thumbnail, area_downsample, to_grayscale
from slide_capture.imaging.signatures import hash_similarity


MATRIX_SIZE = 32
BLOCK_SIZE = 8
HASH_LENGTH = BLOCK_SIZE * BLOCK_SIZE


@lru_cache(maxsize=4)
def dct_matrix(n: int) -> np.ndarray:
    """
    Orthonormal DCT-II basis matrix.

    D[k, i] = sqrt(2/n) * c(k) * cos((2i + 1) * k * pi / (2n))

    Returns:
        Read-only (n, n) float64 array
    """
    k = np.arange(n, dtype=np.float64).reshape(-1, 1)
    i = np.arange(n, dtype=np.float64).reshape(1, -1)
    basis = np.cos((2 * i + 1) * k * math.pi / (2 * n)) * math.sqrt(2.0 / n)
    basis[0, :] *= 1.0 / math.sqrt(2.0)
    basis.setflags(write=False)
    return basis


def dct2(matrix: np.ndarray) -> np.ndarray:
    """2-D orthonormal DCT-II of a square matrix."""
    n = matrix.shape[0]
    if matrix.ndim != 2 or matrix.shape[1] != n:
        raise ValueError(f"dct2 expects a square matrix, got {matrix.shape}")
    basis = dct_matrix(n)
    return basis @ matrix @ basis.T


def perceptual_hash(thumbnail: Thumbnail) -> np.ndarray:
    """
    Compute the 64-bit perceptual hash of a thumbnail.

    Args:
        thumbnail: Source thumbnail, at least 32 x 32

    Returns:
        uint8 array of 64 bits in row-major order
    """
    gray = to_grayscale(thumbnail.pixels, integer=True)
    matrix = area_downsample(gray, MATRIX_SIZE)
    coefficients = dct2(matrix)
    block = coefficients[:BLOCK_SIZE, :BLOCK_SIZE]
    return (block > 0).astype(np.uint8).ravel()


def phash_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Fraction of matching bits between two perceptual hashes.

    Raises:
        LengthMismatchError: Unless both hashes have exactly 64 bits
    """
    return hash_similarity(a, b, expected_length=HASH_LENGTH)
