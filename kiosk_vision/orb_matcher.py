"""
ORB (Oriented FAST and Rotated BRIEF) feature extraction and matching.

Features are detected on the blue channel only. The kiosk reference art
has its strongest texture there, and skipping a grey conversion keeps
the feature contrast intact.

Both the aligner and the similarity scorer call into this module; every
call detects from scratch and nothing is shared between calls.
"""

import os
import cv2
import numpy as np
import logging
from typing import List, Optional, Tuple

from .preprocessing import normalize_image

logger = logging.getLogger(__name__)

# Keypoint cap per image
DEFAULT_N_FEATURES = int(os.environ.get("ORB_MAX_FEATURES", "500"))

BLUE_CHANNEL = 0


def extract_blue_channel(image_np: np.ndarray) -> np.ndarray:
    """
    Return the blue channel of a BGR/BGRA image as a contiguous array.

    A single-channel image is returned unchanged.
    """
    image_np = normalize_image(image_np)
    if image_np.ndim == 2:
        return image_np
    return np.ascontiguousarray(image_np[:, :, BLUE_CHANNEL])


def extract_orb_features(image_np: np.ndarray,
                         n_features: int = DEFAULT_N_FEATURES
                         ) -> Tuple[list, Optional[np.ndarray]]:
    """
    Detect ORB keypoints and compute descriptors on the blue channel.

    Args:
        image_np: uint8 BGR, BGRA or single-channel image.
        n_features: Maximum number of keypoints to retain.

    Returns:
        Tuple of (keypoints, descriptors). Descriptors has shape (N, 32),
        or is None when no keypoint was found.
    """
    channel = extract_blue_channel(image_np)
    orb = cv2.ORB_create(nfeatures=n_features)
    keypoints, descriptors = orb.detectAndCompute(channel, None)
    keypoints = list(keypoints) if keypoints is not None else []

    logger.debug(f"Extracted {len(keypoints)} ORB features")
    return keypoints, descriptors


def match_descriptors(query_desc: Optional[np.ndarray],
                      train_desc: Optional[np.ndarray]) -> List[cv2.DMatch]:
    """
    Brute-force nearest neighbour matching under the Hamming distance.

    Every query descriptor gets its single best train descriptor. Matches
    are returned sorted by ascending distance.

    Returns:
        List of cv2.DMatch, empty if either side has no descriptors.
    """
    if query_desc is None or train_desc is None:
        return []
    if len(query_desc) == 0 or len(train_desc) == 0:
        return []

    matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
    matches = matcher.match(query_desc, train_desc)
    return sorted(matches, key=lambda m: m.distance)
