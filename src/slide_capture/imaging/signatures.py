"""
Hash Signatures
===============

Comparison helpers shared by the average hash and perceptual hash.
"""

from typing import Optional

import numpy as np

from slide_capture.errors import LengthMismatchError


def hash_similarity(
    a: np.ndarray,
    b: np.ndarray,
    expected_length: Optional[int] = None,
) -> float:
    """
    Fraction of matching bit positions between two hashes.

    Args:
        a: First bit sequence
        b: Second bit sequence
        expected_length: If given, both hashes must have exactly this length

    Returns:
        Similarity in [0, 1] (1.0 = identical)

    Raises:
        LengthMismatchError: If lengths differ, are empty, or differ from
            expected_length
    """
    a = np.asarray(a).ravel()
    b = np.asarray(b).ravel()

    if a.size != b.size:
        raise LengthMismatchError(f"Hash lengths differ: {a.size} != {b.size}")
    if a.size == 0:
        raise LengthMismatchError("Cannot compare empty hashes")
    if expected_length is not None and a.size != expected_length:
        raise LengthMismatchError(
            f"Expected hashes of length {expected_length}, got {a.size}"
        )

    return float(np.count_nonzero(a == b)) / a.size


def bits_to_hex(bits: np.ndarray) -> str:
    """Pack a bit sequence (MSB first) into a hex string."""
    packed = np.packbits(np.asarray(bits, dtype=np.uint8).ravel())
    return packed.tobytes().hex()
