from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import torch

from ..errors import ConfigurationError
from ..geometry import Point


class KeyPoint:
    """Class representing an externally detected keypoint.

    Keypoints are read-only inputs: the position and orientation are fixed at
    construction. ``angle`` is normalised into [0, 360)."""

    __slots__ = ("_origin", "_angle", "response", "size", "octave")

    def __init__(
        self,
        origin: Union[Point, Tuple[float, float]],
        angle: float = 0.0,
        response: float = 0.0,
        size: float = 1.0,
        octave: int = 0,
    ):
        self._origin = Point(*origin)
        self._angle = float(angle) % 360.0
        self.response = response  # Strength of the keypoint
        self.size = size  # Diameter of the meaningful keypoint neighborhood
        self.octave = octave  # Pyramid layer the detector found it on

    @property
    def origin(self) -> Point:
        return self._origin

    @property
    def angle(self) -> float:
        """Orientation in degrees, column axis towards row axis."""
        return self._angle

    def pt(self) -> Tuple[float, float]:
        """Get point coordinates as (x, y), i.e. (column, row)."""
        return (self._origin.column, self._origin.row)

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "row": self._origin.row,
            "column": self._origin.column,
            "angle": self._angle,
            "response": self.response,
            "size": self.size,
            "octave": self.octave,
        }

    @staticmethod
    def from_dict(data: Dict) -> "KeyPoint":
        """Create from dictionary."""
        return KeyPoint(
            origin=Point(data["row"], data["column"]),
            angle=data.get("angle", 0.0),
            response=data.get("response", 0.0),
            size=data.get("size", 1.0),
            octave=data.get("octave", 0),
        )

    def __repr__(self) -> str:
        return (
            f"KeyPoint(row={self._origin.row}, column={self._origin.column}, "
            f"angle={self._angle:.2f})"
        )


def keypoints_from_array(array: Union[np.ndarray, Sequence]) -> List[KeyPoint]:
    """
    Build keypoints from an (N, 2) or (N, 3) array of ``row, column[, angle]``.

    Args:
        array: Keypoint coordinates, optionally with orientations in degrees

    Returns:
        List of KeyPoint objects
    """
    array = np.asarray(array, dtype=np.float64)
    if array.size == 0:
        return []
    if array.ndim != 2 or array.shape[1] not in (2, 3):
        raise ConfigurationError(
            f"Expected an (N, 2) or (N, 3) keypoint array, got {array.shape}"
        )

    keypoints = []
    for row in array:
        angle = row[2] if array.shape[1] == 3 else 0.0
        keypoints.append(KeyPoint(Point(row[0], row[1]), angle=angle))
    return keypoints


def to_grayscale_tensor(image: Union[torch.Tensor, np.ndarray]) -> torch.Tensor:
    """
    Convert an image to a (H, W) float32 tensor with values in [0, 1].

    Args:
        image: Tensor or array with shape (H, W), (1, H, W) or (1, 1, H, W)

    Returns:
        Single-channel image tensor (H, W)
    """
    if isinstance(image, np.ndarray):
        image = torch.from_numpy(np.ascontiguousarray(image))

    # Drop leading singleton batch/channel dimensions
    gray = image
    while gray.dim() > 2 and gray.shape[0] == 1:
        gray = gray[0]

    if gray.dim() != 2:
        raise ConfigurationError(
            f"Expected a single-channel image, got shape {tuple(image.shape)}"
        )

    if gray.dtype != torch.float32:
        gray = gray.float()

    if gray.numel() > 0 and gray.max() > 1.0 + 1e-6:
        gray = gray / 255.0

    return gray


def gaussian_kernel_2d(
    kernel_size: int, sigma: float, device: torch.device = None
) -> torch.Tensor:
    """Create a normalized 2D Gaussian kernel."""
    if kernel_size <= 0 or kernel_size % 2 == 0:
        raise ConfigurationError(
            f"Kernel size must be a positive odd integer, got {kernel_size}"
        )
    if sigma <= 0:
        raise ConfigurationError(f"Gaussian sigma must be positive, got {sigma}")

    # Create 1D coordinates
    coords = (
        torch.arange(kernel_size, dtype=torch.float32, device=device)
        - (kernel_size - 1) / 2
    )
    x = coords.repeat(kernel_size, 1)
    y = x.t()

    # Create 2D Gaussian
    kernel = torch.exp(-(x.pow(2) + y.pow(2)) / (2 * sigma * sigma))
    kernel = kernel / kernel.sum()  # Normalize

    return kernel


class BaseDescriptorExtractor:
    """Base class for descriptor extraction.

    Detection happens upstream: subclasses describe keypoints they are given
    and never look for keypoints themselves."""

    def compute_descriptors(self, image: torch.Tensor, keypoints: List[KeyPoint]):
        """
        Compute descriptors for keypoints.

        Args:
            image: Single-channel image tensor
            keypoints: List of KeyPoint objects

        Returns:
            Descriptors for the keypoints that could be described
        """
        raise NotImplementedError(
            "Subclasses must implement compute_descriptors method"
        )

    def detect_and_compute(self, image: torch.Tensor, detector):
        """
        Run an upstream detector and describe its keypoints.

        Args:
            image: Single-channel image tensor
            detector: Callable returning a list of KeyPoint objects for an image

        Returns:
            Tuple of (keypoints, descriptors)
        """
        keypoints = list(detector(image))
        descriptors = self.compute_descriptors(image, keypoints)
        return keypoints, descriptors

    def _preprocess_image(self, image: torch.Tensor) -> torch.Tensor:
        """Preprocess image for descriptor extraction."""
        return to_grayscale_tensor(image)
