"""
Image primitives and orientation-canonical patch extraction.

Images are single-channel (H, W) float tensors. Angles are in degrees and
positive angles turn the column axis towards the row axis (clockwise on
screen, since rows grow downwards).
"""
import logging
import math
import numbers
from enum import Enum
from typing import Optional, Tuple, Union

import torch
import torch.nn.functional as F

from ..errors import ConfigurationError
from ..geometry import Point, image_center
from .base import KeyPoint, gaussian_kernel_2d

logger = logging.getLogger(__name__)


class Interpolation(Enum):
    """Interpolation used when rotating patches."""

    NEAREST = "nearest"
    BILINEAR = "bilinear"

    @classmethod
    def parse(cls, value: Union["Interpolation", str]) -> "Interpolation":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown interpolation '{value}', expected one of "
                f"{[m.value for m in cls]}"
            ) from None


def validate_patch_size(
    patch_size: int, height: Optional[int] = None, width: Optional[int] = None
) -> None:
    """Check that a patch size is odd, at least 3 and fits in the image."""
    if (
        not isinstance(patch_size, numbers.Integral)
        or patch_size < 3
        or patch_size % 2 == 0
    ):
        raise ConfigurationError(
            f"patch_size must be an odd integer >= 3, got {patch_size}"
        )
    if height is not None and width is not None and min(height, width) < patch_size:
        raise ConfigurationError(
            f"Image of size {height}x{width} is too small for patch_size={patch_size}"
        )


def gaussian_blur(image: torch.Tensor, sigma: float, size: int) -> torch.Tensor:
    """
    Smooth an image with a 2D Gaussian kernel.

    Args:
        image: Single-channel image tensor (H, W)
        sigma: Standard deviation of the Gaussian
        size: Odd kernel size

    Returns:
        Smoothed image with the same shape
    """
    height, width = image.shape
    pad = size // 2
    if pad >= min(height, width):
        raise ConfigurationError(
            f"Kernel size {size} is too large for an image of size {height}x{width}"
        )

    kernel = gaussian_kernel_2d(size, sigma, device=image.device).to(image.dtype)

    # Reflect padding mirrors without repeating the edge pixel
    padded = F.pad(image[None, None], (pad, pad, pad, pad), mode="reflect")
    smoothed = F.conv2d(padded, kernel.view(1, 1, size, size))

    return smoothed[0, 0]


def crop(
    image: torch.Tensor,
    origin: Optional[Point] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> torch.Tensor:
    """
    Crop a rectangular region.

    Args:
        image: Image tensor (H, W)
        origin: Top-left corner of the region, defaults to (0, 0)
        width: Width of the region, defaults to the rest of the row
        height: Height of the region, defaults to the rest of the column

    Returns:
        Cropped image (height, width)
    """
    image_height, image_width = image.shape
    if origin is None:
        origin = Point(0, 0)
    row, column = int(origin.row), int(origin.column)
    if width is None:
        width = image_width - column
    if height is None:
        height = image_height - row

    if row < 0 or column < 0:
        raise ValueError(f"Crop origin (row:{row}, column:{column}) must be positive")
    if row > image_height - 1 or column > image_width - 1:
        raise ValueError(
            f"Crop origin (row:{row}, column:{column}) out of range "
            f"({image_height - 1}; {image_width - 1})"
        )
    if width <= 0 or height <= 0:
        raise ValueError(
            f"Crop width and height must be positive, got {width}x{height}"
        )
    if width > image_width - column or height > image_height - row:
        raise ValueError(
            f"Crop (row:{row}, column:{column}, width:{width}, height:{height}) "
            f"is out of range"
        )

    return image[row : row + height, column : column + width]


def extract_square(image: torch.Tensor, center: Point, width: int) -> torch.Tensor:
    """Crop an odd-sized square centred on a pixel."""
    half = (width - 1) // 2
    origin = Point(int(center.row) - half, int(center.column) - half)
    return crop(image, origin, width, width)


def rotate(
    image: torch.Tensor,
    angle: float,
    center: Optional[Point] = None,
    interpolation: Interpolation = Interpolation.NEAREST,
) -> torch.Tensor:
    """
    Rotate an image about a center, keeping its size.

    Output pixel ``q`` takes the input value at ``center + R(-angle)(q - center)``,
    so content at ``p`` moves to ``rotate_point(p, center, angle)``. Samples
    falling outside the input are clamped to the border.

    Args:
        image: Image tensor (H, W)
        angle: Rotation angle in degrees
        center: Center of rotation, defaults to the image center
        interpolation: Nearest or bilinear sampling

    Returns:
        Rotated image (H, W)
    """
    interpolation = Interpolation.parse(interpolation)
    height, width = image.shape
    device = image.device
    if center is None:
        center = Point((height - 1) / 2, (width - 1) / 2)

    rad = math.radians(angle)
    cos_a, sin_a = math.cos(rad), math.sin(rad)

    rows = torch.arange(height, dtype=torch.float64, device=device)
    columns = torch.arange(width, dtype=torch.float64, device=device)
    grid_rows, grid_columns = torch.meshgrid(rows, columns, indexing="ij")

    dx = grid_columns - center.column
    dy = grid_rows - center.row
    src_columns = center.column + dx * cos_a + dy * sin_a
    src_rows = center.row - dx * sin_a + dy * cos_a

    # grid_sample expects (x, y) in [-1, 1]; align_corners maps -1/1 to pixel centers
    norm_x = 2 * src_columns / (width - 1) - 1 if width > 1 else src_columns * 0
    norm_y = 2 * src_rows / (height - 1) - 1 if height > 1 else src_rows * 0
    grid = torch.stack([norm_x, norm_y], dim=-1)[None].to(image.dtype)

    rotated = F.grid_sample(
        image[None, None],
        grid,
        mode=interpolation.value,
        padding_mode="border",
        align_corners=True,
    )
    return rotated[0, 0]


def intensity(image: torch.Tensor, point: Point) -> float:
    """Pixel value at an integer point."""
    return image[int(point.row), int(point.column)].item()


def rotated_crop_width(patch_size: int, angle: float) -> Tuple[int, int]:
    """
    Side of the odd square cropped around a keypoint before rotating its patch.

    Args:
        patch_size: Side of the patch
        angle: Patch orientation in degrees

    Returns:
        Tuple of (raw_width, crop_width), crop_width being the odd width used
    """
    rad = math.radians(angle)
    raw_width = math.floor(patch_size * (abs(math.cos(rad)) + abs(math.sin(rad))))
    # |cos| + |sin| >= 1, float error near multiples of 90 degrees can say otherwise
    raw_width = max(raw_width, patch_size)
    crop_width = raw_width if raw_width % 2 else raw_width - 1
    return raw_width, crop_width


def check_border_distance(
    height: int,
    width: int,
    point: Point,
    distance: int,
    allow_corners: bool = True,
) -> bool:
    """
    Check that the square of half-width ``distance`` around a point fits in an image.

    Args:
        height: Image height
        width: Image width
        point: Center of the square
        distance: Half-width of the square
        allow_corners: When False, squares touching a horizontal and a vertical
            image edge at the same time are rejected as well

    Returns:
        True if the keypoint is far enough from the border
    """
    row, column = point.row, point.column
    fits = (
        row - distance >= 0
        and column - distance >= 0
        and row + distance <= height - 1
        and column + distance <= width - 1
    )
    if not fits or allow_corners:
        return fits

    touches_row_edge = row - distance == 0 or row + distance == height - 1
    touches_column_edge = column - distance == 0 or column + distance == width - 1
    return not (touches_row_edge and touches_column_edge)


def extract_patch(
    image: torch.Tensor,
    keypoint: KeyPoint,
    patch_size: int,
    interpolation: Interpolation = Interpolation.NEAREST,
    allow_corners: bool = True,
) -> Optional[torch.Tensor]:
    """
    Extract the orientation-canonical patch of a keypoint.

    Only an odd square of side ``rotated_crop_width`` around the keypoint is
    cropped and rotated, so the cost does not depend on the image size. The image is
    expected to be smoothed already.

    Args:
        image: Smoothed image tensor (H, W)
        keypoint: Keypoint to describe
        patch_size: Odd side of the canonical patch
        interpolation: Interpolation used by the rotation
        allow_corners: Border policy, see ``check_border_distance``

    Returns:
        Patch tensor (patch_size, patch_size), or None when the keypoint is
        too close to the border
    """
    height, width = image.shape
    validate_patch_size(patch_size, height, width)

    origin = keypoint.origin.rounded()
    raw_width, crop_width = rotated_crop_width(patch_size, keypoint.angle)

    border_distance = (crop_width - 1) // 2
    if not check_border_distance(height, width, origin, border_distance, allow_corners):
        logger.debug(
            f"Keypoint at {tuple(origin)} too close to the border "
            f"(crop_width={crop_width}, raw_width={raw_width})"
        )
        return None

    cropped = extract_square(image, origin, crop_width)
    rotated = rotate(cropped, -keypoint.angle, interpolation=interpolation)

    return extract_square(rotated, image_center(crop_width, crop_width), patch_size)
