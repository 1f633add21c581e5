"""
Sampling patterns for binary descriptors.

A sampling pattern is the list of patch-local point pairs compared by each
descriptor bit. Points are drawn from an isotropic Gaussian centred on the
patch, as in the BRIEF paper (sigma^2 = S^2 / 25), with an explicitly seeded
generator so that the same parameters give the same pattern in every process.
"""
from typing import List, Sequence, Tuple, Union

import torch

from ..errors import ConfigurationError
from ..geometry import Point

Sigma = Union[float, Tuple[float, float], None]


def _gaussian_values(
    count: int, size: int, sigma: float, generator: torch.Generator
) -> List[int]:
    """Draw ``count`` rounded Gaussian values inside [0, size - 1]."""
    center = (size - 1) / 2
    values: List[int] = []

    while len(values) < count:
        samples = torch.normal(
            center, sigma, size=(count,), generator=generator, dtype=torch.float64
        )
        samples = torch.round(samples)
        inside = samples[(samples >= 0) & (samples <= size - 1)]
        values.extend(int(v) for v in inside.tolist())

    return values[:count]


def _split_sigma(sigma: Sigma, height: int, width: int) -> Tuple[float, float]:
    if sigma is None:
        return height / 5, width / 5
    if isinstance(sigma, (tuple, list)):
        if len(sigma) != 2:
            raise ConfigurationError(
                f"sigma must be a number or a (row, column) pair, got {sigma}"
            )
        return float(sigma[0]), float(sigma[1])
    return float(sigma), float(sigma)


def generate_gaussian_points(
    width: int,
    height: int,
    count: int,
    sigma: Sigma = None,
    seed: int = 0,
) -> List[Point]:
    """
    Generate Gaussian-distributed integer points inside a patch.

    Column and row coordinates are drawn independently and re-drawn until
    they fall inside [0, width - 1] x [0, height - 1].

    Args:
        width: Patch width
        height: Patch height
        count: Number of points to generate
        sigma: Standard deviation, a number or a (row, column) pair.
            Defaults to a fifth of the patch size on each axis.
        seed: Seed of the random generator

    Returns:
        Ordered list of points
    """
    if width <= 0 or height <= 0:
        raise ConfigurationError(
            f"Patch dimensions must be positive, got {width}x{height}"
        )
    if count <= 0:
        raise ConfigurationError(f"Number of points must be positive, got {count}")

    sigma_row, sigma_column = _split_sigma(sigma, height, width)
    if sigma_row <= 0 or sigma_column <= 0:
        raise ConfigurationError(f"sigma must be positive, got {sigma}")

    generator = torch.Generator(device="cpu")
    generator.manual_seed(seed)

    columns = _gaussian_values(count, width, sigma_column, generator)
    rows = _gaussian_values(count, height, sigma_row, generator)

    return [Point(row, column) for row, column in zip(rows, columns)]


class SamplingPattern:
    """
    Ordered point pairs defining each bit of a binary descriptor.

    The pattern holds ``2 * length`` points; point ``i`` and point
    ``i + length`` form the comparison pair of bit ``i``.
    """

    def __init__(self, points: torch.Tensor, patch_size: int):
        """
        Initialize a sampling pattern.

        Args:
            points: Long tensor (2 * length, 2) of (row, column) coordinates
            patch_size: Side of the square patch the points live in
        """
        if points.dim() != 2 or points.shape[1] != 2:
            raise ConfigurationError(
                f"Expected a (2L, 2) point tensor, got {tuple(points.shape)}"
            )
        if points.shape[0] == 0 or points.shape[0] % 2:
            raise ConfigurationError(
                f"A sampling pattern needs a positive even number of points, got {points.shape[0]}"
            )
        if points.min() < 0 or points.max() > patch_size - 1:
            raise ConfigurationError(
                f"Sampling points must lie inside a {patch_size}x{patch_size} patch"
            )

        self._points = points.to(torch.long).clone()
        self.patch_size = patch_size

    @classmethod
    def generate(
        cls,
        patch_size: int,
        descriptor_length: int,
        sigma: Sigma = None,
        seed: int = 0,
    ) -> "SamplingPattern":
        """Generate the Gaussian pattern for a square patch."""
        if descriptor_length <= 0:
            raise ConfigurationError(
                f"Descriptor length must be positive, got {descriptor_length}"
            )
        points = generate_gaussian_points(
            patch_size, patch_size, 2 * descriptor_length, sigma=sigma, seed=seed
        )
        return cls.from_points(points, patch_size)

    @classmethod
    def from_points(
        cls, points: Sequence[Union[Point, Tuple[int, int]]], patch_size: int
    ) -> "SamplingPattern":
        """Build a fixed pattern from (row, column) points."""
        tensor = torch.tensor([list(p) for p in points], dtype=torch.long)
        if tensor.numel() == 0:
            tensor = tensor.view(0, 2)
        return cls(tensor, patch_size)

    @property
    def length(self) -> int:
        """Number of descriptor bits the pattern defines."""
        return self._points.shape[0] // 2

    @property
    def points(self) -> torch.Tensor:
        return self._points.clone()

    @property
    def first(self) -> torch.Tensor:
        """First point of every pair, shape (length, 2)."""
        return self._points[: self.length]

    @property
    def second(self) -> torch.Tensor:
        """Second point of every pair, shape (length, 2)."""
        return self._points[self.length :]

    def bounds(self) -> Tuple[int, int]:
        """Largest (row, column) used by the pattern."""
        max_row, max_column = self._points.max(dim=0).values.tolist()
        return max_row, max_column

    def to_points(self) -> List[Point]:
        return [Point(row, column) for row, column in self._points.tolist()]

    def __len__(self) -> int:
        return self._points.shape[0]

    def __eq__(self, other) -> bool:
        if not isinstance(other, SamplingPattern):
            return NotImplemented
        return self.patch_size == other.patch_size and torch.equal(
            self._points, other._points
        )

    def __repr__(self) -> str:
        return f"SamplingPattern(patch_size={self.patch_size}, length={self.length})"
