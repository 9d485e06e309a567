"""
Disk persistence and reloading of images.

The recognition engine is fed pixels that went through a disk round trip:
the capture is written as JPEG and read back. Reloading goes through
OpenCV's decoder, which applies no colour-profile correction, and EXIF
orientation is ignored, so the raw pixel values are what the engine's
reference loader would produce.
"""

import os
import uuid
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .errors import ImageProcessingError, ResourceUnavailableError
from .preprocessing import to_bgra

logger = logging.getLogger(__name__)

RELOAD_FLAGS = cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION


def read_image(path) -> np.ndarray:
    """
    Read an image file as BGR.

    Raises:
        ImageProcessingError: If the file is missing or cannot be decoded.
    """
    path = str(path)
    if not os.path.exists(path):
        raise ImageProcessingError(f"Resource not found: {path}")

    image = cv2.imread(path, RELOAD_FLAGS)
    if image is None:
        raise ImageProcessingError(f"Could not decode image: {path}")
    return image


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (e.g. a bundled template) as BGR."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        raise ImageProcessingError("Empty image data")

    image = cv2.imdecode(buffer, RELOAD_FLAGS)
    if image is None:
        raise ImageProcessingError("Could not decode image data")
    return image


def reload_for_recognition(path) -> np.ndarray:
    """
    Re-read a written image and return it as contiguous BGRA.

    Raises:
        ResourceUnavailableError: If the file cannot be read back.
    """
    try:
        image = read_image(path)
    except ImageProcessingError as e:
        raise ResourceUnavailableError(f"Failed to read image: {path}") from e
    return to_bgra(image)


class DiskImageWriter:
    """
    Writes images under a directory with a unique, kind-prefixed name.

    A disabled writer writes nothing and returns None; the recognition
    bridge treats that as a missing precondition.
    """

    def __init__(self, directory, extension: str = ".jpg", enabled: bool = True):
        self.directory = Path(directory)
        self.extension = extension if extension.startswith(".") else f".{extension}"
        self.enabled = enabled

    def _next_path(self, kind: str) -> Path:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        return self.directory / f"{kind}-{stamp}-{uuid.uuid4().hex[:8]}{self.extension}"

    def write(self, image: np.ndarray, kind: str = "screenshot") -> Optional[Path]:
        """
        Write `image` and return its absolute path, or None when disabled.

        Raises:
            ImageProcessingError: If OpenCV fails to encode or write the file.
        """
        if not self.enabled:
            return None

        path = self._next_path(kind).absolute()
        path.parent.mkdir(parents=True, exist_ok=True)

        # JPEG has no alpha
        if self.extension.lower() in (".jpg", ".jpeg") and image.ndim == 3 and image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        try:
            written = cv2.imwrite(str(path), image)
        except cv2.error as e:
            raise ImageProcessingError(f"Could not write image: {path}") from e
        if not written:
            raise ImageProcessingError(f"Could not write image: {path}")

        logger.debug(f"Wrote {kind} image to {path}")
        return path

    def write_no_fail(self, image: np.ndarray, kind: str = "screenshot") -> Optional[Path]:
        """Like write(), but logs and swallows any failure."""
        try:
            return self.write(image, kind)
        except (ImageProcessingError, OSError) as e:
            logger.error(f"There was an error writing to disk: {e}")
            return None
