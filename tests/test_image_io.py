"""Tests for the disk round trip and template loading."""

import numpy as np
import cv2
import pytest

from kiosk_vision.errors import ImageProcessingError, ResourceUnavailableError
from kiosk_vision.image_io import (
    DiskImageWriter, decode_image, read_image, reload_for_recognition,
)


class TestDiskImageWriter:

    def test_writes_under_directory(self, tmp_path, small_bgr):
        writer = DiskImageWriter(tmp_path / "images", extension="png")
        path = writer.write(small_bgr, "screenshot")
        assert path.exists()
        assert path.parent == (tmp_path / "images").absolute()
        assert path.name.startswith("screenshot-")
        assert path.suffix == ".png"

    def test_unique_names(self, tmp_path, small_bgr):
        writer = DiskImageWriter(tmp_path, extension=".png")
        assert writer.write(small_bgr) != writer.write(small_bgr)

    def test_disabled_writes_nothing(self, tmp_path, small_bgr):
        writer = DiskImageWriter(tmp_path, enabled=False)
        assert writer.write(small_bgr) is None
        assert list(tmp_path.iterdir()) == []

    def test_jpeg_accepts_bgra(self, tmp_path, small_bgr):
        bgra = cv2.cvtColor(small_bgr, cv2.COLOR_BGR2BGRA)
        path = DiskImageWriter(tmp_path).write(bgra)
        assert path.suffix == ".jpg"
        assert read_image(path).shape == (5, 7, 3)

    def test_write_no_fail_swallows_errors(self, tmp_path, small_bgr):
        writer = DiskImageWriter(tmp_path, extension=".notaformat")
        assert writer.write_no_fail(small_bgr) is None


class TestReload:

    def test_round_trip_is_bgra(self, tmp_path, small_bgr):
        path = DiskImageWriter(tmp_path, extension=".png").write(small_bgr)
        pixels = reload_for_recognition(path)
        assert pixels.shape == (5, 7, 4)
        assert list(pixels[2, 3]) == [10, 100, 200, 255]

    def test_missing_file_is_unavailable(self, tmp_path):
        with pytest.raises(ResourceUnavailableError):
            reload_for_recognition(tmp_path / "gone.jpg")


class TestTemplateLoading:

    def test_read_missing_raises(self, tmp_path):
        with pytest.raises(ImageProcessingError, match="not found"):
            read_image(tmp_path / "missing.png")

    def test_read_garbage_raises(self, tmp_path):
        path = tmp_path / "garbage.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageProcessingError, match="decode"):
            read_image(path)

    def test_decode_bytes(self, small_bgr):
        ok, encoded = cv2.imencode(".png", small_bgr)
        assert ok
        assert np.array_equal(decode_image(encoded.tobytes()), small_bgr)

    def test_decode_empty_raises(self):
        with pytest.raises(ImageProcessingError):
            decode_image(b"")
