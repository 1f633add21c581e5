"""
torchbrief

A PyTorch implementation of rotated BRIEF (rBRIEF) binary descriptors.

Major Components:
- Geometry: points, distances and the rotation convention
- Sampling: deterministic Gaussian sampling patterns
- Patch extraction: orientation-canonical patches around keypoints
- Encoding: binary intensity-comparison descriptors
- Matching: Hamming nearest-neighbour matching with cross check and ratio test

Keypoint detection is left to the caller: keypoints (position and
orientation) are inputs of the library.
"""
from torchbrief.config import DEFAULT_CONFIG, load_config, merge_config
from torchbrief.errors import BriefError, ConfigurationError, InputMismatchError
from torchbrief.feature_extraction import (
    BriefDescriptorExtractor,
    DescriptorMatcher,
    DescriptorSet,
    Interpolation,
    KeyPoint,
    Match,
    SamplingPattern,
    keypoints_from_array,
)
from torchbrief.geometry import Point, euclidean_distance
from torchbrief.pipeline import compute_descriptors, detect_and_compute, match_descriptors
from torchbrief.version import __version__

__all__ = [
    "DEFAULT_CONFIG",
    "load_config",
    "merge_config",
    "BriefError",
    "ConfigurationError",
    "InputMismatchError",
    "BriefDescriptorExtractor",
    "DescriptorMatcher",
    "DescriptorSet",
    "Interpolation",
    "KeyPoint",
    "Match",
    "SamplingPattern",
    "keypoints_from_array",
    "Point",
    "euclidean_distance",
    "compute_descriptors",
    "detect_and_compute",
    "match_descriptors",
    "__version__",
]
