"""Tests for screenshot downscaling."""

import io

from PIL import Image

from conftest import make_png

from tabguard.browser.screenshots import downscale_png


def _size(data: bytes):
    return Image.open(io.BytesIO(data)).size


class TestDownscalePng:

    def test_small_image_is_unchanged(self):
        data = make_png(100, 50)
        assert downscale_png(data, 1280, 800) is data

    def test_aspect_ratio_is_kept(self):
        assert _size(downscale_png(make_png(2000, 500), 1000, 1000)) == (1000, 250)

    def test_height_bound(self):
        assert _size(downscale_png(make_png(400, 1600), 1280, 800)) == (200, 800)

    def test_invalid_data_is_returned_as_is(self):
        assert downscale_png(b"not an image", 10, 10) == b"not an image"
