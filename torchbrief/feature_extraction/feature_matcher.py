import logging
from typing import Dict, List, Optional

import numpy as np
import torch

from ..errors import ConfigurationError, InputMismatchError


class Match:
    """Represents a match between two descriptor sets."""

    __slots__ = ("query_idx", "train_idx", "distance")

    def __init__(self, query_idx: int, train_idx: int, distance: int):
        """
        Initialize a match.

        Args:
            query_idx: Index of the descriptor in the query set (A)
            train_idx: Index of the descriptor in the train set (B)
            distance: Hamming distance between the descriptors
        """
        self.query_idx = query_idx
        self.train_idx = train_idx
        self.distance = distance

    def __eq__(self, other) -> bool:
        if not isinstance(other, Match):
            return NotImplemented
        return (self.query_idx, self.train_idx, self.distance) == (
            other.query_idx,
            other.train_idx,
            other.distance,
        )

    def __repr__(self) -> str:
        return f"Match(query_idx={self.query_idx}, train_idx={self.train_idx}, distance={self.distance})"


def hamming_distance_matrix(
    query: torch.Tensor, train: torch.Tensor
) -> torch.Tensor:
    """
    Compute Hamming distances between all pairs of bit descriptors.

    Args:
        query: Descriptors (N, L) with 0/1 values
        train: Descriptors (M, L) with 0/1 values

    Returns:
        Distance matrix (N, M), dtype=torch.long
    """
    if query.dim() != 2 or train.dim() != 2:
        raise InputMismatchError(
            f"Expected 2D descriptor tensors, got {tuple(query.shape)} and {tuple(train.shape)}"
        )
    if query.shape[1] != train.shape[1]:
        raise InputMismatchError(
            f"Descriptor lengths differ: {query.shape[1]} vs {train.shape[1]}"
        )

    q = query.to(torch.float64)
    t = train.to(device=query.device, dtype=torch.float64)

    # |a xor b| = |a| + |b| - 2 a.b for 0/1 vectors
    dot = q @ t.t()
    distances = q.sum(dim=1, keepdim=True) + t.sum(dim=1)[None, :] - 2 * dot

    return torch.round(distances).to(torch.long)


class DescriptorMatcher:
    """Brute-force matcher for binary descriptors.

    Every query descriptor is paired with its Hamming-nearest train descriptor
    (ties go to the lowest index), then optionally filtered by a maximum
    distance, Lowe's ratio test and a cross check."""

    def __init__(
        self,
        max_distance: Optional[float] = None,
        cross_check: bool = False,
        ratio_threshold: Optional[float] = None,
    ):
        """
        Initialize descriptor matcher.

        Args:
            max_distance: Maximum allowable Hamming distance (inclusive)
            cross_check: Keep only mutual nearest neighbours
            ratio_threshold: Keep matches with best < ratio * second best
        """
        if max_distance is not None and max_distance < 0:
            raise ConfigurationError(
                f"max_distance must be non-negative, got {max_distance}"
            )
        if ratio_threshold is not None and not 0 < ratio_threshold <= 1:
            raise ConfigurationError(
                f"ratio_threshold must be in (0, 1], got {ratio_threshold}"
            )

        self.max_distance = max_distance
        self.cross_check = cross_check
        self.ratio_threshold = ratio_threshold

        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: Dict) -> "DescriptorMatcher":
        """Create a matcher from the ``matcher`` section of a configuration."""
        matcher_config = config.get("matcher", {})
        return cls(
            max_distance=matcher_config.get("max_distance", None),
            cross_check=matcher_config.get("cross_check", False),
            ratio_threshold=matcher_config.get("ratio_threshold", None),
        )

    def match(
        self, query_descriptors: torch.Tensor, train_descriptors: torch.Tensor
    ) -> List[Match]:
        """
        Match descriptors between two sets.

        Args:
            query_descriptors: Descriptors from the query image (N, L)
            train_descriptors: Descriptors from the train image (M, L)

        Returns:
            List of Match objects ordered by query index
        """
        # Handle empty descriptor sets
        if query_descriptors.shape[0] == 0 or train_descriptors.shape[0] == 0:
            return []

        distances = hamming_distance_matrix(query_descriptors, train_descriptors)
        num_query, num_train = distances.shape

        # argmin returns the first minimal index, which breaks ties by lowest index
        best_indices = distances.argmin(dim=1)
        best_distances = distances.gather(1, best_indices[:, None]).squeeze(1)

        keep = torch.ones(num_query, dtype=torch.bool, device=distances.device)

        if self.max_distance is not None:
            keep &= best_distances <= self.max_distance

        if self.ratio_threshold is not None and num_train > 1:
            masked = distances.clone()
            masked[torch.arange(num_query, device=distances.device), best_indices] = (
                torch.iinfo(torch.long).max
            )
            second_distances = masked.min(dim=1).values
            keep &= best_distances.double() < (
                self.ratio_threshold * second_distances.double()
            )

        if self.cross_check:
            reverse_indices = distances.argmin(dim=0)
            mutual = reverse_indices[best_indices] == torch.arange(
                num_query, device=distances.device
            )
            keep &= mutual

        matches = [
            Match(i, best_indices[i].item(), best_distances[i].item())
            for i in torch.nonzero(keep).flatten().tolist()
        ]

        self.logger.debug(f"Matched {len(matches)}/{num_query} query descriptors")

        return matches


def matches_to_array(matches: List[Match]) -> np.ndarray:
    """Convert matches to an (K, 3) integer array of query, train, distance."""
    if not matches:
        return np.zeros((0, 3), dtype=np.int64)
    return np.array(
        [(m.query_idx, m.train_idx, m.distance) for m in matches], dtype=np.int64
    )
