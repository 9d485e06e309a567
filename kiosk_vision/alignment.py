"""
Alignment of kiosk captures to a reference template.

A capture can be rotated, scaled or perspective-skewed relative to the
reference layout. The aligner matches ORB features between the two,
estimates a homography with RANSAC, and warps the capture into the
reference's pixel frame so that fixed regions can be read afterwards.

Two failure modes are kept apart:
    - not enough (or degenerate) correspondences raise AlignmentError;
    - a warp that scores below the requested similarity is discarded and
      the original capture is returned unchanged.
"""

import os
import logging
from typing import List, Sequence

import cv2
import numpy as np

from .errors import AlignmentError
from .image_io import read_image
from .orb_matcher import extract_orb_features, match_descriptors
from .preprocessing import match_channels
from .similarity import compute_similarity

logger = logging.getLogger(__name__)

# Share of the ranked matches used for homography estimation
KEEP_FRACTION = float(os.environ.get("ALIGN_KEEP_FRACTION", "0.1"))

# A projective transform needs at least four point pairs
MIN_MATCHES = int(os.environ.get("ALIGN_MIN_MATCHES", "4"))

DEFAULT_TEMPLATE_PATH = os.environ.get(
    "KIOSK_TEMPLATE_PATH", "images/ocr/commodity_kiosk_template.jpg")
DEFAULT_MIN_SIMILARITY = float(os.environ.get("TEMPLATE_MIN_SIMILARITY", "0.12"))


def select_good_matches(matches: Sequence[cv2.DMatch],
                        keep_fraction: float = KEEP_FRACTION,
                        minimum: int = MIN_MATCHES) -> List[cv2.DMatch]:
    """
    Keep the best share of matches, never fewer than `minimum`.

    Args:
        matches: Matches in any order.
        keep_fraction: Fraction of matches to keep after ranking.
        minimum: Floor on the number of matches kept.

    Returns:
        The lowest-distance matches, ascending.

    Raises:
        AlignmentError: If fewer than `minimum` matches exist at all.
    """
    ranked = sorted(matches, key=lambda m: m.distance)
    count = max(int(len(ranked) * keep_fraction), minimum)
    kept = ranked[:min(count, len(ranked))]

    if len(kept) < minimum:
        raise AlignmentError(
            f"Insufficient matches found for homography computation: "
            f"{len(kept)} < {minimum}")
    return kept


def estimate_homography(source_points: np.ndarray,
                        target_points: np.ndarray) -> np.ndarray:
    """
    Robustly estimate the 3x3 transform mapping source onto target.

    Raises:
        AlignmentError: If RANSAC returns no usable matrix.
    """
    src = np.asarray(source_points, dtype=np.float32).reshape(-1, 1, 2)
    dst = np.asarray(target_points, dtype=np.float32).reshape(-1, 1, 2)

    homography, _ = cv2.findHomography(src, dst, cv2.RANSAC)
    if homography is None or homography.size == 0:
        raise AlignmentError("Failed to compute homography matrix")
    return homography


def align_to_reference(image: np.ndarray,
                       reference: np.ndarray,
                       min_similarity: float = 0.0) -> np.ndarray:
    """
    Warp `image` into the coordinate frame of `reference`.

    Process:
        1. ORB features on the blue channel of both images
        2. Hamming brute-force matches, reference as the query side
        3. Best 10% of matches (at least 4) feed a RANSAC homography
        4. Warp the full capture to the reference's width and height,
           converted to the reference's channel layout
        5. Optionally score the warp against the reference

    Args:
        image: Capture to align (BGR, BGRA or grey uint8).
        reference: Template the capture should line up with.
        min_similarity: Minimum score for the warp to be kept. 0.0 skips
            validation. Not range-checked: anything above 1.0 effectively
            always falls back to the original.

    Returns:
        The warped image in the reference's shape, or `image` itself if
        validation rejected the warp.

    Raises:
        AlignmentError: Too few correspondences or a degenerate homography.
    """
    ref_keypoints, ref_descriptors = extract_orb_features(reference)
    img_keypoints, img_descriptors = extract_orb_features(image)

    matches = match_descriptors(ref_descriptors, img_descriptors)
    good_matches = select_good_matches(matches)

    ref_points = np.float32([ref_keypoints[m.queryIdx].pt for m in good_matches])
    img_points = np.float32([img_keypoints[m.trainIdx].pt for m in good_matches])

    homography = estimate_homography(img_points, ref_points)

    h, w = reference.shape[:2]
    aligned = match_channels(cv2.warpPerspective(image, homography, (w, h)), reference)

    if min_similarity > 0.0:
        similarity = compute_similarity(aligned, reference)
        if similarity < min_similarity:
            logger.warning(
                f"Alignment quality below threshold: {similarity:.3f} < {min_similarity}")
            return image
        logger.debug(f"Alignment quality: {similarity:.3f}")

    return aligned


class TemplateAligner:
    """
    Image manipulation that aligns captures to one reference template.

    Instances are callables (image -> image) so they can be placed at the
    head of an extraction pipeline's manipulation chain.
    """

    def __init__(self, template: np.ndarray,
                 min_similarity: float = DEFAULT_MIN_SIMILARITY):
        self.template = template
        self.min_similarity = min_similarity

    @classmethod
    def from_file(cls, path: str = None,
                  min_similarity: float = DEFAULT_MIN_SIMILARITY) -> "TemplateAligner":
        return cls(read_image(path or DEFAULT_TEMPLATE_PATH), min_similarity)

    def __call__(self, image: np.ndarray) -> np.ndarray:
        return align_to_reference(image, self.template, self.min_similarity)
