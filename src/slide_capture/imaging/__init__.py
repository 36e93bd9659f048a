"""
Imaging Module
==============

Thumbnail reduction and binary image signatures.

Components:
    - raster: Thumbnail and the raster reducer
    - average_hash: Coarse mean-thresholded signature (fast reject)
    - perceptual_hash: DCT sign-pattern signature (authoritative)
    - signatures: Bitwise similarity between signatures
"""

from slide_capture.imaging.raster import (
    DEFAULT_THUMBNAIL_SIZE,
    Thumbnail,
    area_downsample,
    reduce_frame,
    to_grayscale,
)
from slide_capture.imaging.signatures import bits_to_hex, hash_similarity
from slide_capture.imaging.average_hash import average_hash, average_hash_similarity
from slide_capture.imaging.perceptual_hash import (
    HASH_LENGTH,
    dct2,
    perceptual_hash,
    phash_similarity,
)

__all__ = [
    "DEFAULT_THUMBNAIL_SIZE",
    "Thumbnail",
    "reduce_frame",
    "to_grayscale",
    "area_downsample",
    "hash_similarity",
    "bits_to_hex",
    "average_hash",
    "average_hash_similarity",
    "perceptual_hash",
    "phash_similarity",
    "dct2",
    "HASH_LENGTH",
]
