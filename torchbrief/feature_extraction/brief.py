import logging
import math
import numbers
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, NamedTuple, Optional

import torch

from ..errors import ConfigurationError, InputMismatchError
from .base import BaseDescriptorExtractor, KeyPoint
from .patch import Interpolation, extract_patch, gaussian_blur, validate_patch_size
from .sampling import SamplingPattern


class DescriptorSet(NamedTuple):
    """Result of describing a batch of keypoints.

    ``descriptors[i]`` belongs to ``keypoints[surviving_indices[i]]``. Keypoints
    too close to the border are listed in ``skipped_indices``."""

    descriptors: torch.Tensor
    surviving_indices: List[int]
    skipped_indices: List[int]


def encode_descriptor(
    patch: torch.Tensor, pattern: SamplingPattern, length: Optional[int] = None
) -> torch.Tensor:
    """
    Encode a canonical patch as a binary descriptor.

    Bit ``i`` is 1 when the intensity at the first point of pair ``i`` is
    strictly lower than the intensity at the second point. All pairs are
    looked up at once; ``intensity(patch, point)`` is the per-point equivalent.

    Args:
        patch: Canonical patch tensor (H, W)
        pattern: Sampling pattern in patch coordinates
        length: Number of bits, defaults to the pattern length

    Returns:
        Tensor (length,) of 0/1 values, dtype=torch.uint8
    """
    length = pattern.length if length is None else length
    if length <= 0 or length > pattern.length:
        raise InputMismatchError(
            f"Cannot encode {length} bits with a pattern of {pattern.length} pairs"
        )

    max_row, max_column = pattern.bounds()
    if patch.dim() != 2 or patch.shape[0] <= max_row or patch.shape[1] <= max_column:
        raise InputMismatchError(
            f"Patch of shape {tuple(patch.shape)} does not cover pattern bounds "
            f"({max_row}, {max_column})"
        )

    first = pattern.first[:length].to(patch.device)
    second = pattern.second[:length].to(patch.device)

    values1 = patch[first[:, 0], first[:, 1]]
    values2 = patch[second[:, 0], second[:, 1]]

    return (values1 < values2).to(torch.uint8)


class BriefDescriptorExtractor(BaseDescriptorExtractor):
    """Rotated BRIEF (rBRIEF) descriptor extractor.

    Each keypoint's neighbourhood is rotated to a canonical orientation before
    a fixed set of pixel pairs is compared, which makes the descriptors
    invariant to in-plane rotation. The keypoints and their orientations come
    from an upstream detector."""

    def __init__(
        self,
        patch_size: int = 31,
        descriptor_length: int = 256,
        smoothing: Optional[Dict] = None,
        point_distribution: Optional[Dict] = None,
        interpolation: Interpolation = Interpolation.NEAREST,
        allow_corners: bool = True,
        num_workers: int = 1,
        pattern: Optional[SamplingPattern] = None,
    ):
        """
        Initialize the rBRIEF extractor.

        Args:
            patch_size: Odd side of the canonical patch around each keypoint
            descriptor_length: Number of bits of each descriptor
            smoothing: Gaussian blur options ``{"sigma", "size"}``; a missing
                size means min(height, width, 9)
            point_distribution: Sampling pattern options ``{"sigma", "seed"}``
            interpolation: Interpolation used to rotate patches
            allow_corners: Border policy for corner-adjacent patches
            num_workers: Number of threads describing keypoints
            pattern: Precomputed sampling pattern, replaces the generated one
        """
        validate_patch_size(patch_size)
        if not isinstance(descriptor_length, numbers.Integral) or descriptor_length <= 0:
            raise ConfigurationError(
                f"descriptor_length must be a positive integer, got {descriptor_length}"
            )
        if num_workers < 1:
            raise ConfigurationError(f"num_workers must be >= 1, got {num_workers}")
        patch_size, descriptor_length = int(patch_size), int(descriptor_length)

        smoothing = smoothing if smoothing is not None else {}
        point_distribution = point_distribution if point_distribution is not None else {}

        self.patch_size = patch_size
        self.descriptor_length = descriptor_length
        self.smoothing_sigma = smoothing.get("sigma", math.sqrt(2))
        self.smoothing_size = smoothing.get("size", None)
        self.interpolation = Interpolation.parse(interpolation)
        self.allow_corners = allow_corners
        self.num_workers = num_workers

        if self.smoothing_sigma is None or self.smoothing_sigma <= 0:
            raise ConfigurationError(
                f"Smoothing sigma must be positive, got {self.smoothing_sigma}"
            )
        if self.smoothing_size is not None and (
            self.smoothing_size <= 0 or self.smoothing_size % 2 == 0
        ):
            raise ConfigurationError(
                f"Smoothing size must be a positive odd integer, got {self.smoothing_size}"
            )

        self.logger = logging.getLogger(self.__class__.__name__)

        if pattern is None:
            # Generate sampling pattern for the descriptor
            pattern = SamplingPattern.generate(
                patch_size,
                descriptor_length,
                sigma=point_distribution.get("sigma", None),
                seed=point_distribution.get("seed", 0),
            )
        elif pattern.patch_size != patch_size or pattern.length < descriptor_length:
            raise ConfigurationError(
                f"{pattern} does not fit patch_size={patch_size} and "
                f"descriptor_length={descriptor_length}"
            )
        self.pattern = pattern

        self.logger.debug(
            f"rBRIEF extractor: patch_size={patch_size}, "
            f"descriptor_length={descriptor_length}, "
            f"interpolation={self.interpolation.value}"
        )

    @classmethod
    def from_config(
        cls, config: Dict, pattern: Optional[SamplingPattern] = None
    ) -> "BriefDescriptorExtractor":
        """Create an extractor from a configuration dictionary."""
        return cls(
            patch_size=config.get("patch_size", 31),
            descriptor_length=config.get("descriptor_length", 256),
            smoothing=config.get("smoothing", {}),
            point_distribution=config.get("point_distribution", {}),
            interpolation=config.get("interpolation", Interpolation.NEAREST),
            allow_corners=config.get("allow_corners", True),
            num_workers=config.get("num_workers", 1),
            pattern=pattern,
        )

    def smooth(self, image: torch.Tensor) -> torch.Tensor:
        """
        Apply the shared Gaussian blur once for the whole image.

        Args:
            image: Single-channel image tensor (H, W)

        Returns:
            Smoothed image tensor (H, W)
        """
        height, width = image.shape
        size = self.smoothing_size
        if size is None:
            size = min(height, width, 9)
            if size % 2 == 0:
                size -= 1
        return gaussian_blur(image, self.smoothing_sigma, size)

    def describe(self, smoothed: torch.Tensor, keypoint: KeyPoint) -> Optional[torch.Tensor]:
        """
        Describe a single keypoint on an already smoothed image.

        Returns:
            Descriptor tensor (descriptor_length,), or None for a border skip
        """
        patch = extract_patch(
            smoothed,
            keypoint,
            self.patch_size,
            interpolation=self.interpolation,
            allow_corners=self.allow_corners,
        )
        if patch is None:
            return None
        return encode_descriptor(patch, self.pattern, self.descriptor_length)

    def compute_descriptors(
        self, image: torch.Tensor, keypoints: List[KeyPoint]
    ) -> DescriptorSet:
        """
        Compute rBRIEF descriptors for keypoints.

        Args:
            image: Single-channel image tensor or array
            keypoints: List of KeyPoint objects

        Returns:
            DescriptorSet with a (num_surviving, descriptor_length) uint8 tensor
            and the surviving and skipped keypoint indices
        """
        image = self._preprocess_image(image)
        height, width = image.shape
        validate_patch_size(self.patch_size, height, width)

        if not keypoints:
            return DescriptorSet(
                torch.zeros(
                    (0, self.descriptor_length), dtype=torch.uint8, device=image.device
                ),
                [],
                [],
            )

        smoothed = self.smooth(image)

        if self.num_workers > 1:
            # map() yields in submission order, so results stay aligned with keypoints
            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                results = list(
                    executor.map(lambda kp: self.describe(smoothed, kp), keypoints)
                )
        else:
            results = [self.describe(smoothed, kp) for kp in keypoints]

        surviving_indices = []
        skipped_indices = []
        descriptors = []
        for i, descriptor in enumerate(results):
            if descriptor is None:
                skipped_indices.append(i)
            else:
                surviving_indices.append(i)
                descriptors.append(descriptor)

        if descriptors:
            stacked = torch.stack(descriptors)
        else:
            stacked = torch.zeros(
                (0, self.descriptor_length), dtype=torch.uint8, device=image.device
            )

        self.logger.info(
            f"Described {len(surviving_indices)}/{len(keypoints)} keypoints, "
            f"{len(skipped_indices)} skipped near the border"
        )

        return DescriptorSet(stacked, surviving_indices, skipped_indices)
