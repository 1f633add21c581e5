"""
High-level entry points.

These functions take a configuration dictionary (see ``torchbrief.config``),
build the extractor or matcher it describes and run it. Keypoint detection
is an explicit input: either a list of keypoints or a detector callable.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import torch

from .config import resolve_config
from .feature_extraction.base import KeyPoint
from .feature_extraction.brief import BriefDescriptorExtractor, DescriptorSet
from .feature_extraction.feature_matcher import DescriptorMatcher, Match
from .feature_extraction.sampling import SamplingPattern

logger = logging.getLogger(__name__)


def compute_descriptors(
    image: torch.Tensor,
    keypoints: Sequence[KeyPoint],
    config: Optional[Dict] = None,
    pattern: Optional[SamplingPattern] = None,
) -> DescriptorSet:
    """
    Compute rBRIEF descriptors for keypoints of a single-channel image.

    Args:
        image: Image tensor (H, W), values in [0, 1] or [0, 255]
        keypoints: Keypoints from an upstream detector
        config: Configuration overrides
        pattern: Fixed sampling pattern replacing the generated one

    Returns:
        DescriptorSet (descriptors, surviving_indices, skipped_indices)
    """
    config = resolve_config(config)
    extractor = BriefDescriptorExtractor.from_config(config, pattern=pattern)
    return extractor.compute_descriptors(image, list(keypoints))


def match_descriptors(
    descriptors_a: torch.Tensor,
    descriptors_b: torch.Tensor,
    config: Optional[Dict] = None,
) -> List[Match]:
    """
    Match two descriptor sets by Hamming distance.

    Args:
        descriptors_a: Query descriptors (N, L)
        descriptors_b: Train descriptors (M, L)
        config: Configuration overrides, only the ``matcher`` section is read

    Returns:
        List of Match objects ordered by index in ``descriptors_a``
    """
    config = resolve_config(config)
    matcher = DescriptorMatcher.from_config(config)
    matches = matcher.match(descriptors_a, descriptors_b)
    logger.info(
        f"Matched {len(matches)} of {descriptors_a.shape[0]} descriptors "
        f"against {descriptors_b.shape[0]}"
    )
    return matches


def detect_and_compute(
    image: torch.Tensor,
    detector: Callable[[torch.Tensor], Sequence[KeyPoint]],
    config: Optional[Dict] = None,
) -> Tuple[List[KeyPoint], DescriptorSet]:
    """
    Detect keypoints with the given detector and describe them.

    Args:
        image: Image tensor (H, W)
        detector: Callable returning keypoints for an image
        config: Configuration overrides

    Returns:
        Tuple of (all detected keypoints, DescriptorSet)
    """
    config = resolve_config(config)
    extractor = BriefDescriptorExtractor.from_config(config)
    return extractor.detect_and_compute(image, detector)
