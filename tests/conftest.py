"""Shared test fixtures for kiosk_vision tests."""

import numpy as np
import cv2
import pytest


def _draw_kiosk(width=480, height=360, seed=42):
    """Busy synthetic kiosk screen: panels, text and blobs, rich in ORB features."""
    rng = np.random.RandomState(seed)
    img = np.full((height, width, 3), 40, dtype=np.uint8)
    for _ in range(40):
        x1, y1 = rng.randint(0, width - 40), rng.randint(0, height - 40)
        x2, y2 = x1 + rng.randint(15, 80), y1 + rng.randint(15, 60)
        color = tuple(int(c) for c in rng.randint(60, 255, 3))
        cv2.rectangle(img, (x1, y1), (x2, y2), color, -1)
    for i in range(10):
        cv2.putText(img, f"ITEM {i} {rng.randint(100, 9999)} aUEC",
                    (10 + (i % 2) * 230, 30 + i * 32),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 230, 200), 2)
    for _ in range(30):
        center = (int(rng.randint(0, width)), int(rng.randint(0, height)))
        cv2.circle(img, center, int(rng.randint(3, 12)), (230, 250, 255), -1)
    return img


@pytest.fixture
def kiosk_reference():
    """480x360 BGR reference template."""
    return _draw_kiosk()


@pytest.fixture
def kiosk_capture(kiosk_reference):
    """The reference seen slightly rotated and scaled, same canvas size."""
    h, w = kiosk_reference.shape[:2]
    m = cv2.getRotationMatrix2D((w / 2, h / 2), 6, 0.95)
    return cv2.warpAffine(kiosk_reference, m, (w, h))


@pytest.fixture
def other_kiosk():
    """A different layout with the same kind of content."""
    return _draw_kiosk(seed=7)


@pytest.fixture
def blank_image():
    """Uniform image with no features at all."""
    return np.full((200, 200, 3), 128, dtype=np.uint8)


@pytest.fixture
def noise_image():
    """Generate a 200x200 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 255, (200, 200, 3), dtype=np.uint8)


@pytest.fixture
def small_bgr():
    """5x7 BGR image with distinct channel values."""
    img = np.zeros((5, 7, 3), dtype=np.uint8)
    img[:, :] = [10, 100, 200]
    return img
