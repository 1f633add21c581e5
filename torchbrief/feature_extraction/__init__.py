"""
Feature description module for torchbrief.

This module contains the classes and functions turning externally detected
keypoints into rotation-invariant binary descriptors and matching them.
"""

from .base import BaseDescriptorExtractor, KeyPoint, keypoints_from_array
from .brief import BriefDescriptorExtractor, DescriptorSet, encode_descriptor
from .feature_matcher import (
    DescriptorMatcher,
    Match,
    hamming_distance_matrix,
    matches_to_array,
)
from .patch import Interpolation, extract_patch, rotated_crop_width
from .sampling import SamplingPattern, generate_gaussian_points

__all__ = [
    "KeyPoint",
    "keypoints_from_array",
    "BaseDescriptorExtractor",
    "BriefDescriptorExtractor",
    "DescriptorSet",
    "encode_descriptor",
    "DescriptorMatcher",
    "Match",
    "hamming_distance_matrix",
    "matches_to_array",
    "Interpolation",
    "extract_patch",
    "rotated_crop_width",
    "SamplingPattern",
    "generate_gaussian_points",
]
