"""
Perceptual Hash Tests
=====================
"""

import math

import numpy as np
import pytest

from slide_capture.errors import LengthMismatchError
from slide_capture.imaging import Thumbnail, area_downsample, perceptual_hash, phash_similarity, to_grayscale
from slide_capture.imaging.perceptual_hash import BLOCK_SIZE, HASH_LENGTH, MATRIX_SIZE, dct2, dct_matrix


def direct_dct_block(matrix: np.ndarray, block: int) -> np.ndarray:
    """Unnormalized DCT-II by the textbook double sum, low-frequency block only."""
    n = matrix.shape[0]
    positions = np.arange(n)
    result = np.zeros((block, block))
    for u in range(block):
        cos_u = np.cos((2 * positions + 1) * u * math.pi / (2 * n))
        c_u = 1 / math.sqrt(2) if u == 0 else 1.0
        for v in range(block):
            cos_v = np.cos((2 * positions + 1) * v * math.pi / (2 * n))
            c_v = 1 / math.sqrt(2) if v == 0 else 1.0
            result[u, v] = c_u * c_v * np.sum(matrix * np.outer(cos_u, cos_v))
    return result


class TestPerceptualHash:
    """Tests for perceptual_hash."""

    def test_hash_has_64_bits(self, slide):
        bits = perceptual_hash(Thumbnail(slide(1, 64, 64)))
        assert bits.shape == (HASH_LENGTH,)
        assert set(np.unique(bits)).issubset({0, 1})

    def test_deterministic(self, slide):
        thumb = Thumbnail(slide(2, 64, 64))
        np.testing.assert_array_equal(perceptual_hash(thumb), perceptual_hash(thumb))

    def test_self_similarity(self, slide):
        bits = perceptual_hash(Thumbnail(slide(3, 64, 64)))
        assert phash_similarity(bits, bits) == 1.0

    def test_matches_direct_dct_sign_pattern(self, slide):
        """Bits equal the signs of the textbook DCT of the 32x32 matrix."""
        thumb = Thumbnail(slide(4, 64, 64))
        matrix = area_downsample(to_grayscale(thumb.pixels, integer=True), MATRIX_SIZE)
        expected = (direct_dct_block(matrix, BLOCK_SIZE) > 0).astype(np.uint8).ravel()
        np.testing.assert_array_equal(perceptual_hash(thumb), expected)

    def test_dc_bit_set_for_non_black_image(self, slide):
        bits = perceptual_hash(Thumbnail(slide(5, 64, 64)))
        assert bits[0] == 1

    def test_single_pixel_perturbation(self, slide):
        pixels = slide(6, 64, 64)
        perturbed = pixels.copy()
        perturbed[9, 50, 2] = min(255, int(perturbed[9, 50, 2]) + 16)

        a = perceptual_hash(Thumbnail(pixels))
        b = perceptual_hash(Thumbnail(perturbed))
        assert phash_similarity(a, b) >= 0.95

    def test_different_slides_are_dissimilar(self, slide):
        a = perceptual_hash(Thumbnail(slide(7, 64, 64)))
        b = perceptual_hash(Thumbnail(slide(8, 64, 64)))
        assert phash_similarity(a, b) < 0.95

    def test_larger_thumbnails_are_area_averaged(self, slide):
        """A 128px thumbnail of the same slide hashes like the 64px one."""
        small = perceptual_hash(Thumbnail(slide(9, 64, 64)))
        large = perceptual_hash(Thumbnail(slide(9, 128, 128)))
        assert phash_similarity(small, large) >= 0.9

    def test_similarity_requires_64_bits(self):
        with pytest.raises(LengthMismatchError):
            phash_similarity(np.zeros(16, dtype=np.uint8), np.zeros(16, dtype=np.uint8))


class TestDct:
    """Tests for the DCT helpers."""

    def test_basis_is_orthonormal(self):
        basis = dct_matrix(MATRIX_SIZE)
        np.testing.assert_allclose(basis @ basis.T, np.eye(MATRIX_SIZE), atol=1e-10)

    def test_basis_is_read_only(self):
        with pytest.raises(ValueError):
            dct_matrix(8)[0, 0] = 1.0

    def test_constant_matrix_has_only_dc(self):
        coefficients = dct2(np.full((8, 8), 3.0))
        assert coefficients[0, 0] == pytest.approx(24.0)
        coefficients[0, 0] = 0.0
        np.testing.assert_allclose(coefficients, 0.0, atol=1e-10)

    def test_non_square_rejected(self):
        with pytest.raises(ValueError):
            dct2(np.zeros((4, 8)))
