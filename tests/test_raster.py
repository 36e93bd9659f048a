"""
Raster Reducer Tests
====================
"""

import numpy as np
import pytest

from slide_capture.errors import SourceUnavailableError
from slide_capture.geometry import compute_crop
from slide_capture.imaging import Thumbnail, area_downsample, reduce_frame, to_grayscale
from slide_capture.models.geometry import CropRegion, Rect


class TestReduceFrame:
    """Tests for reduce_frame."""

    def test_output_is_square_thumbnail(self, slide):
        pixels = slide(1, 320, 240)
        thumb = reduce_frame(pixels, Rect(0, 0, 320, 240), 64)
        assert thumb.pixels.shape == (64, 64, 3)
        assert thumb.pixels.dtype == np.uint8

    def test_only_crop_contributes(self, slide):
        """Pixels outside the crop rectangle never reach the thumbnail."""
        pixels = slide(2, 320, 240)
        crop = compute_crop(320, 240, CropRegion("bottom-right", 0.5, 0.5))

        altered = pixels.copy()
        altered[:120, :, :] = 0
        altered[:, :160, :] = 255

        assert reduce_frame(pixels, crop).is_identical(reduce_frame(altered, crop))

    def test_uniform_crop_gives_uniform_thumbnail(self):
        pixels = np.full((100, 200, 3), 77, dtype=np.uint8)
        thumb = reduce_frame(pixels, Rect(10, 10, 50, 50), 32)
        assert np.all(thumb.pixels == 77)

    def test_deterministic(self, slide):
        pixels = slide(3)
        crop = Rect(0, 0, 320, 240)
        assert reduce_frame(pixels, crop).is_identical(reduce_frame(pixels.copy(), crop))

    def test_crop_outside_frame_raises(self, slide):
        with pytest.raises(SourceUnavailableError):
            reduce_frame(slide(4, 100, 100), Rect(50, 50, 100, 100))

    def test_zero_area_frame_raises(self):
        with pytest.raises(SourceUnavailableError):
            reduce_frame(np.zeros((0, 10, 3), dtype=np.uint8), Rect(0, 0, 1, 1))

    def test_grayscale_frames_are_supported(self):
        pixels = np.tile(np.arange(128, dtype=np.uint8), (64, 1))
        thumb = reduce_frame(pixels, Rect(0, 0, 128, 64), 32)
        assert thumb.pixels.shape == (32, 32)


class TestThumbnail:
    """Tests for Thumbnail immutability and identity."""

    def test_pixels_are_copied_and_read_only(self):
        source = np.zeros((8, 8), dtype=np.uint8)
        thumb = Thumbnail(source)
        source[0, 0] = 255

        assert thumb.pixels[0, 0] == 0
        with pytest.raises(ValueError):
            thumb.pixels[0, 0] = 1

    def test_identity_requires_equal_shape(self):
        a = Thumbnail(np.zeros((8, 8), dtype=np.uint8))
        b = Thumbnail(np.zeros((8, 8, 1), dtype=np.uint8))
        assert not a.is_identical(b)
        assert a.is_identical(Thumbnail(np.zeros((8, 8), dtype=np.uint8)))

    def test_empty_shape_rejected(self):
        with pytest.raises(ValueError):
            Thumbnail(np.zeros((0, 4), dtype=np.uint8))


class TestGrayscale:
    """Tests for channel averaging."""

    def test_real_valued_mean(self):
        pixels = np.array([[[1, 2, 4]]], dtype=np.uint8)
        assert to_grayscale(pixels)[0, 0] == pytest.approx(7 / 3)

    def test_integer_mode_floors(self):
        pixels = np.array([[[1, 2, 4]]], dtype=np.uint8)
        assert to_grayscale(pixels, integer=True)[0, 0] == 2.0

    def test_alpha_channel_ignored(self):
        rgb = np.array([[[10, 20, 30]]], dtype=np.uint8)
        rgba = np.array([[[10, 20, 30, 255]]], dtype=np.uint8)
        assert to_grayscale(rgba)[0, 0] == to_grayscale(rgb)[0, 0] == 20.0

    def test_single_channel_passthrough(self):
        pixels = np.array([[5, 6]], dtype=np.uint8)
        np.testing.assert_array_equal(to_grayscale(pixels), [[5.0, 6.0]])


class TestAreaDownsample:
    """Tests for block averaging."""

    def test_even_blocks(self):
        gray = np.arange(16, dtype=np.float64).reshape(4, 4)
        result = area_downsample(gray, 2)
        np.testing.assert_allclose(result, [[2.5, 4.5], [10.5, 12.5]])

    def test_uneven_blocks(self):
        """Block i spans [floor(i*L/n), floor((i+1)*L/n))."""
        gray = np.arange(5, dtype=np.float64).reshape(1, 5).repeat(2, axis=0)
        result = area_downsample(gray, 2)
        # columns [0, 2) and [2, 5)
        np.testing.assert_allclose(result, [[0.5, 3.0], [0.5, 3.0]])

    def test_too_small_input_raises(self):
        with pytest.raises(ValueError):
            area_downsample(np.zeros((4, 4)), 8)
