"""
Feature-match density score between two images.

The score counts ORB matches whose Hamming distance is below a fixed
goodness threshold and divides by the smaller keypoint count of the two
images. It is an ordinal signal, not a probability: thresholds such as
the 0.12 used for template validation are tuned empirically.
"""

import os
import logging

import cv2
import numpy as np

from .orb_matcher import extract_orb_features, match_descriptors

logger = logging.getLogger(__name__)

# Hamming distance under which a match counts as good
GOOD_MATCH_DISTANCE = float(os.environ.get("SIMILARITY_GOOD_DISTANCE", "50"))


def compute_similarity(image_a: np.ndarray,
                       image_b: np.ndarray,
                       good_distance: float = GOOD_MATCH_DISTANCE) -> float:
    """
    Score how well two images match, in [0.0, 1.0].

    Returns 0.0 when either image has no keypoints or nothing matches.
    Scoring never raises on OpenCV failures; it logs and returns 0.0.

    Args:
        image_a: First image (query side of the matcher).
        image_b: Second image.
        good_distance: Hamming distance strictly below which a match is good.

    Returns:
        good matches / min(keypoints in a, keypoints in b), clamped.
    """
    try:
        keypoints_a, descriptors_a = extract_orb_features(image_a)
        keypoints_b, descriptors_b = extract_orb_features(image_b)
        if not keypoints_a or not keypoints_b:
            return 0.0
        matches = match_descriptors(descriptors_a, descriptors_b)
    except cv2.error as e:
        logger.error(f"Failed to calculate image similarity: {e}")
        return 0.0

    if not matches:
        return 0.0

    good_matches = sum(1 for m in matches if m.distance < good_distance)
    min_keypoints = min(len(keypoints_a), len(keypoints_b))

    score = good_matches / min_keypoints
    return float(min(1.0, max(0.0, score)))
