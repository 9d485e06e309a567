"""
Image manipulations applied before alignment and recognition.

Images are numpy uint8 arrays in OpenCV channel order: (H, W) grey,
(H, W, 3) BGR or (H, W, 4) BGRA. Every function returns a new array
except invert_colors and adjust_brightness_and_contrast, which modify
their argument in place.

Each extraction pipeline chains a different subset of these, so the
best-effort selector can compare several readings of the same capture.
"""

import logging
from collections import Counter
from typing import List, Tuple

import cv2
import numpy as np

from .errors import RectangleOutOfBoundsError
from .geometry import Rectangle

logger = logging.getLogger(__name__)

CLAHE_CLIP_LIMIT = 3.0
COLOR_BUCKET = 10


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8."""
    if image_np.dtype != np.uint8:
        if image_np.max() <= 1.0:
            image_np = (image_np * 255).astype(np.uint8)
        else:
            image_np = image_np.astype(np.uint8)
    return image_np


def to_bgra(image_np: np.ndarray) -> np.ndarray:
    """Convert a grey, BGR or BGRA image to a contiguous BGRA copy."""
    image_np = normalize_image(image_np)
    if image_np.ndim == 2:
        bgra = cv2.cvtColor(image_np, cv2.COLOR_GRAY2BGRA)
    elif image_np.shape[2] == 3:
        bgra = cv2.cvtColor(image_np, cv2.COLOR_BGR2BGRA)
    else:
        bgra = image_np.copy()
    return np.ascontiguousarray(bgra)


def match_channels(image_np: np.ndarray, like: np.ndarray) -> np.ndarray:
    """Convert a grey, BGR or BGRA image to the channel layout of `like`."""
    channels = 1 if like.ndim == 2 else like.shape[2]
    current = 1 if image_np.ndim == 2 else image_np.shape[2]
    if channels == current:
        return image_np

    conversions = {
        (1, 3): cv2.COLOR_GRAY2BGR,
        (1, 4): cv2.COLOR_GRAY2BGRA,
        (3, 1): cv2.COLOR_BGR2GRAY,
        (3, 4): cv2.COLOR_BGR2BGRA,
        (4, 1): cv2.COLOR_BGRA2GRAY,
        (4, 3): cv2.COLOR_BGRA2BGR,
    }
    return cv2.cvtColor(image_np, conversions[(current, channels)])


def _to_gray(image_np: np.ndarray) -> np.ndarray:
    image_np = normalize_image(image_np)
    if image_np.ndim == 2:
        return image_np.copy()
    if image_np.shape[2] == 4:
        return cv2.cvtColor(image_np, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image_np, cv2.COLOR_BGR2GRAY)


def make_copy(image_np: np.ndarray) -> np.ndarray:
    return image_np.copy()


def make_greyscale_copy(image_np: np.ndarray) -> np.ndarray:
    """Single-channel copy of the image. The original is untouched."""
    return _to_gray(image_np)


def make_histogram_equalized_greyscale_copy(image_np: np.ndarray) -> np.ndarray:
    """Greyscale copy with a globally equalized histogram."""
    return cv2.equalizeHist(_to_gray(image_np))


def make_clahe_equalized_greyscale_copy(image_np: np.ndarray,
                                        clip_limit: float = CLAHE_CLIP_LIMIT
                                        ) -> np.ndarray:
    """
    Greyscale copy equalized with Contrast Limited Adaptive Histogram
    Equalization. Handles uneven kiosk lighting better than a global
    equalization.
    """
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(8, 8))
    return clahe.apply(_to_gray(image_np))


def invert_colors(image_np: np.ndarray) -> None:
    """
    Invert the colour channels of an image. In place.

    The alpha channel of a BGRA image is left as is.
    """
    if image_np.ndim == 3 and image_np.shape[2] == 4:
        colors = image_np[:, :, :3]
        np.subtract(255, colors, out=colors)
    else:
        np.subtract(255, image_np, out=image_np)


def adjust_brightness_and_contrast(image_np: np.ndarray,
                                   contrast_scale: float,
                                   brightness_offset: float) -> None:
    """
    Rescale every pixel to value * contrast_scale + brightness_offset,
    saturating to [0, 255]. In place.
    """
    scaled = image_np.astype(np.float32) * contrast_scale + brightness_offset
    np.clip(scaled, 0, 255, out=scaled)
    image_np[...] = scaled.astype(np.uint8)


def crop(image_np: np.ndarray, rectangle: Rectangle) -> np.ndarray:
    """Copy of the region described by rectangle."""
    bounds = Rectangle.of_image(image_np)
    if not bounds.contains(rectangle):
        raise RectangleOutOfBoundsError(rectangle, bounds)
    return image_np[rectangle.y:rectangle.max_y, rectangle.x:rectangle.max_x].copy()


def scale_to_height(image_np: np.ndarray, height: int) -> np.ndarray:
    """Resize to the given height, keeping the aspect ratio."""
    h, w = image_np.shape[:2]
    width = max(1, int(round(w * height / h)))
    interpolation = cv2.INTER_AREA if height < h else cv2.INTER_CUBIC
    return cv2.resize(image_np, (width, height), interpolation=interpolation)


def apply_gaussian_blur(image_np: np.ndarray,
                        pixel_neighborhood_size: int,
                        sigma: float = 0) -> np.ndarray:
    size = (pixel_neighborhood_size, pixel_neighborhood_size)
    return cv2.GaussianBlur(image_np, size, sigma)


def apply_adaptive_gaussian_threshold(image_np: np.ndarray,
                                      pixel_neighborhood_size: int,
                                      subtracted_constant: int) -> np.ndarray:
    """
    Binarize against a locally computed threshold.

    Args:
        image_np: Any supported image; converted to grey first.
        pixel_neighborhood_size: Odd block size for the local threshold.
        subtracted_constant: Constant subtracted from the local mean.

    Returns:
        Single-channel binary image.
    """
    return cv2.adaptiveThreshold(_to_gray(image_np), 255,
                                 cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY,
                                 pixel_neighborhood_size, subtracted_constant)


def apply_otsu_binarization(image_np: np.ndarray) -> np.ndarray:
    """Blur lightly, then binarize with an Otsu-selected threshold."""
    blurred = cv2.GaussianBlur(_to_gray(image_np), (5, 5), 0)
    _, binary = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def find_bounding_boxes(image_np: np.ndarray) -> List[Rectangle]:
    """Bounding rectangles of every contour in a (binary) image."""
    contours, _ = cv2.findContours(_to_gray(image_np), cv2.RETR_TREE,
                                   cv2.CHAIN_APPROX_SIMPLE)
    return [Rectangle(*(int(v) for v in cv2.boundingRect(c))) for c in contours]


def _region(image_np: np.ndarray, rectangle: Rectangle = None) -> np.ndarray:
    bounds = Rectangle.of_image(image_np)
    if rectangle is None:
        rectangle = bounds
    if not bounds.contains(rectangle):
        raise RectangleOutOfBoundsError(rectangle, bounds)
    region = image_np[rectangle.y:rectangle.max_y, rectangle.x:rectangle.max_x]
    if region.ndim == 2:
        region = cv2.cvtColor(region, cv2.COLOR_GRAY2BGR)
    return region[:, :, :3].reshape(-1, 3)


def calculate_dominant_color(image_np: np.ndarray,
                             rectangle: Rectangle = None) -> Tuple[int, int, int]:
    """
    Most frequent approximate BGR colour of an image or a region of it.

    Channels are rounded down to multiples of COLOR_BUCKET before
    counting, so near-identical shades vote together.
    """
    pixels = _region(image_np, rectangle)
    approximate = pixels - (pixels % COLOR_BUCKET)
    counts = Counter(map(tuple, approximate.tolist()))
    color, _ = counts.most_common(1)[0]
    return tuple(int(c) for c in color)


def calculate_average_color(image_np: np.ndarray,
                            rectangle: Rectangle = None) -> Tuple[int, int, int]:
    """Mean BGR colour of an image or a region, truncated to integers."""
    pixels = _region(image_np, rectangle)
    mean = pixels.astype(np.int64).sum(axis=0) // len(pixels)
    return tuple(int(c) for c in mean)
