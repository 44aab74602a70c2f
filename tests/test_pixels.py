"""Tests for pixel packing, image loading and mean HSB colour."""

import numpy as np
import pytest
from PIL import Image

from photoprint import (
    PixelBuffer, build_fingerprint, load_pixels, mean_hsb, pack_rgba, unpack_rgba,
)

from tests.synthetic import random_pixels, solid_pixels


class TestPacking:

    def test_unpack_inverts_pack(self):
        rng = np.random.default_rng(0)
        rgba = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
        np.testing.assert_array_equal(unpack_rgba(pack_rgba(rgba), 7, 5), rgba)

    def test_byte_order(self):
        assert int(pack_rgba(np.array([[1, 2, 3, 4]], dtype=np.uint8))[0]) == 0x01020304

    def test_pack_rejects_three_channels(self):
        with pytest.raises(ValueError, match="4 channels"):
            pack_rgba(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_unpack_length_mismatch(self):
        with pytest.raises(ValueError, match="expected 4"):
            unpack_rgba(np.zeros(3, dtype=np.uint32), 2, 2)


class TestPixelBuffer:

    def test_from_rgba(self):
        buf = PixelBuffer.from_rgba(np.zeros((3, 5, 4), dtype=np.uint8))
        assert (buf.width, buf.height, buf.pixel_count) == (5, 3, 15)
        buf.validate()

    def test_validate_mismatch(self):
        with pytest.raises(ValueError, match="expected 6"):
            PixelBuffer(np.zeros(5, dtype=np.uint32), 3, 2).validate()

    def test_from_rgba_rejects_flat(self):
        with pytest.raises(ValueError, match="H, W, 4"):
            PixelBuffer.from_rgba(np.zeros((4, 4), dtype=np.uint8))


class TestLoadPixels:

    def test_png_roundtrip(self, tmp_path):
        rng = np.random.default_rng(1)
        rgba = rng.integers(0, 256, size=(6, 9, 4), dtype=np.uint8)
        path = tmp_path / "img.png"
        Image.fromarray(rgba).save(path)

        buf = load_pixels(path)
        assert (buf.width, buf.height) == (9, 6)
        np.testing.assert_array_equal(buf.pixels, pack_rgba(rgba))

    def test_rgb_gets_opaque_alpha(self):
        img = Image.new("RGB", (3, 2), (10, 20, 30))
        buf = load_pixels(img)
        np.testing.assert_array_equal(buf.pixels, np.full(6, 0x0A141EFF, dtype=np.uint32))

    def test_fingerprint_of_loaded_image(self, tmp_path):
        path = tmp_path / "red.png"
        Image.new("RGB", (4, 4), (255, 0, 0)).save(path)
        buf = load_pixels(path)
        fp = build_fingerprint(buf.pixels, buf.width, buf.height)
        assert dict(fp) == {1792: 0.25, 1793: 0.25, 1794: 0.25, 1795: 0.25}


class TestMeanHSB:

    def test_pure_red(self):
        c = mean_hsb(solid_pixels(4, 4, (255, 0, 0, 255)), 4, 4)
        assert c.hue == pytest.approx(0.0, abs=1e-4)
        assert c.saturation == pytest.approx(1.0, abs=1e-5)
        assert c.brightness == pytest.approx(1.0, abs=1e-5)

    def test_pure_blue(self):
        c = mean_hsb(solid_pixels(2, 3, (0, 0, 255, 255)), 2, 3)
        assert c.hue == pytest.approx(240 / 360, abs=1e-4)
        assert c.saturation == pytest.approx(1.0, abs=1e-5)

    def test_gray_has_no_saturation(self):
        c = mean_hsb(solid_pixels(3, 3, (128, 128, 128, 255)), 3, 3)
        assert c.saturation == pytest.approx(0.0, abs=1e-6)
        assert c.brightness == pytest.approx(128 / 255, abs=1e-5)

    def test_alpha_ignored(self):
        a = mean_hsb(solid_pixels(2, 2, (20, 200, 90, 0)), 2, 2)
        b = mean_hsb(solid_pixels(2, 2, (20, 200, 90, 255)), 2, 2)
        assert a == b

    def test_components_in_unit_range(self):
        c = mean_hsb(random_pixels(16, 16, seed=4), 16, 16)
        for v in (c.hue, c.saturation, c.brightness):
            assert 0.0 <= v <= 1.0

    def test_empty_image_raises(self):
        with pytest.raises(ValueError, match="empty"):
            mean_hsb(np.zeros(0, dtype=np.uint32), 0, 0)
