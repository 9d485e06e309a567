"""
Extraction pipelines and best-effort selection.

A pipeline is a plain configuration value: the image manipulations to
apply (typically a TemplateAligner followed by preprocessing), the
recognizer that turns the result into located words, and the listing
parser that turns words into listings. Several differently configured
pipelines are run against the same capture and the submission with the
most listings wins.

A single pipeline failing is expected and is reported as a failed
PipelineResult; only the selector's "nothing usable" outcome is raised.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import NoListingsError

logger = logging.getLogger(__name__)

_workers = os.environ.get("SELECTOR_MAX_WORKERS")
DEFAULT_MAX_WORKERS = int(_workers) if _workers else None


@dataclass(frozen=True)
class Submission:
    """Ordered listings extracted from one capture."""

    listings: Tuple[Any, ...]

    def __len__(self) -> int:
        return len(self.listings)


@dataclass(frozen=True)
class PipelineConfig:
    """
    One extraction pipeline.

    Attributes:
        name: Label used in logs and results.
        recognizer: Object with recognize(image) -> list of LocatedWord.
            Not shared between configurations run in parallel.
        parser: Callable turning located words into listings.
        manipulations: Image -> image callables applied in order.
    """

    name: str
    recognizer: Any
    parser: Callable[[list], Sequence[Any]]
    manipulations: Tuple[Callable[[np.ndarray], np.ndarray], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PipelineResult:
    name: str
    submission: Optional[Submission] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.submission is not None


def run(config: PipelineConfig, image: np.ndarray) -> PipelineResult:
    """
    Run one pipeline against a capture.

    The capture is copied first, so manipulations that work in place never
    reach the caller's image or another pipeline.

    Returns:
        PipelineResult holding either the submission or the error.
    """
    try:
        processed = image.copy()
        for manipulation in config.manipulations:
            processed = manipulation(processed)

        words = config.recognizer.recognize(processed)
        listings = tuple(config.parser(words))
    except Exception as e:
        logger.warning(f"Pipeline '{config.name}' failed: {e}")
        return PipelineResult(config.name, error=e)

    logger.debug(f"Pipeline '{config.name}' produced {len(listings)} listings")
    return PipelineResult(config.name, submission=Submission(listings))


def pick_best(results: Sequence[PipelineResult]) -> Submission:
    """
    Reduce pipeline results to the submission with the most listings.

    Failed and empty results are dropped. Ties go to the earliest result.

    Raises:
        NoListingsError: If no result has any listings.
    """
    best = None
    for result in results:
        if not result.ok or len(result.submission) == 0:
            continue
        if best is None or len(result.submission) > len(best.submission):
            best = result

    if best is None:
        raise NoListingsError()

    logger.info(f"Selected pipeline '{best.name}' with {len(best.submission)} listings")
    return best.submission


def run_all(capture: np.ndarray,
            pipelines: Sequence[PipelineConfig],
            max_workers: Optional[int] = DEFAULT_MAX_WORKERS) -> List[PipelineResult]:
    """Run every pipeline against the capture, results in config order."""
    if max_workers == 1 or len(pipelines) <= 1:
        return [run(config, capture) for config in pipelines]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda config: run(config, capture), pipelines))


def select_best(capture: np.ndarray,
                pipelines: Sequence[PipelineConfig],
                max_workers: Optional[int] = DEFAULT_MAX_WORKERS) -> Submission:
    """
    Best-effort extraction over several pipeline configurations.

    Args:
        capture: Raw screen capture.
        pipelines: Configurations to try; each owns its recognizer.
        max_workers: Thread pool size. 1 runs the pipelines sequentially.

    Returns:
        The non-empty submission with the most listings.

    Raises:
        NoListingsError: Every pipeline failed or produced no listings.
    """
    return pick_best(run_all(capture, pipelines, max_workers))
