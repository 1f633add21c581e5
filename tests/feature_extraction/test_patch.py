import math

import cv2  # Reference implementation for the Gaussian blur
import numpy as np
import pytest
import torch

from torchbrief.errors import ConfigurationError
from torchbrief.feature_extraction.base import KeyPoint
from torchbrief.feature_extraction.patch import (
    Interpolation,
    check_border_distance,
    crop,
    extract_patch,
    extract_square,
    gaussian_blur,
    intensity,
    rotate,
    rotated_crop_width,
)
from torchbrief.geometry import Point, rotate_point


@pytest.fixture(scope="module")
def random_image():
    generator = torch.Generator().manual_seed(42)
    return torch.rand(101, 101, generator=generator)


# --- Odd-width rule ---


@pytest.mark.parametrize(
    "angle, raw_width, crop_width",
    [
        (0, 31, 31),
        (45, 43, 43),  # floor(31 * sqrt(2)) is odd
        (30, 42, 41),  # even raw width is decremented
        (90, 31, 31),
        (180, 31, 31),
        (270, 31, 31),
    ],
)
def test_rotated_crop_width(angle, raw_width, crop_width):
    assert rotated_crop_width(31, angle) == (raw_width, crop_width)


def test_rotated_crop_width_never_below_patch_size():
    for angle in np.linspace(0, 360, 721):
        raw_width, crop_width = rotated_crop_width(31, float(angle))
        assert crop_width >= 31
        assert crop_width % 2 == 1


# --- Border policy ---


def test_border_distance_at_origin():
    assert not check_border_distance(100, 100, Point(0, 0), 15)


def test_border_distance_inside():
    assert check_border_distance(100, 100, Point(50, 50), 15)
    assert check_border_distance(100, 100, Point(15, 84), 15)
    assert not check_border_distance(100, 100, Point(15, 85), 15)
    assert not check_border_distance(100, 100, Point(14, 50), 15)


def test_border_distance_corner_adjacency():
    # Square touching the top and left edges at once
    assert check_border_distance(100, 100, Point(15, 15), 15, allow_corners=True)
    assert not check_border_distance(100, 100, Point(15, 15), 15, allow_corners=False)
    # Touching a single edge is fine either way
    assert check_border_distance(100, 100, Point(15, 50), 15, allow_corners=False)
    assert check_border_distance(100, 100, Point(84, 50), 15, allow_corners=False)


# --- Image primitives ---


def test_gaussian_blur_matches_opencv(random_image):
    image = random_image[:40, :32].contiguous()
    ours = gaussian_blur(image, math.sqrt(2), 9)
    reference = cv2.GaussianBlur(
        image.numpy(), (9, 9), math.sqrt(2), borderType=cv2.BORDER_REFLECT_101
    )
    assert ours.shape == image.shape
    np.testing.assert_allclose(ours.numpy(), reference, atol=1e-5)


def test_gaussian_blur_keeps_constant_image():
    image = torch.full((20, 20), 0.25)
    np.testing.assert_allclose(gaussian_blur(image, 2.0, 5).numpy(), 0.25, atol=1e-6)


@pytest.mark.parametrize("sigma, size", [(1.0, 4), (1.0, 0), (0.0, 5), (1.0, 41)])
def test_gaussian_blur_invalid(sigma, size):
    with pytest.raises(ConfigurationError):
        gaussian_blur(torch.zeros(20, 20), sigma, size)


def test_crop(random_image):
    cropped = crop(random_image, Point(10, 20), width=5, height=3)
    assert cropped.shape == (3, 5)
    assert torch.equal(cropped, random_image[10:13, 20:25])


@pytest.mark.parametrize(
    "origin, width, height",
    [
        (Point(-1, 0), 5, 5),
        (Point(0, 101), 5, 5),
        (Point(0, 0), 0, 5),
        (Point(98, 0), 5, 5),
    ],
)
def test_crop_out_of_range(random_image, origin, width, height):
    with pytest.raises(ValueError):
        crop(random_image, origin, width, height)


def test_crop_defaults(random_image):
    assert torch.equal(crop(random_image), random_image)
    assert torch.equal(crop(random_image, Point(90, 95)), random_image[90:, 95:])
    assert crop(random_image, Point(10, 0), width=4).shape == (91, 4)
    assert crop(random_image, height=2).shape == (2, 101)


def test_extract_square(random_image):
    square = extract_square(random_image, Point(50, 40), 7)
    assert torch.equal(square, random_image[47:54, 37:44])


def test_intensity(random_image):
    assert intensity(random_image, Point(3, 4)) == random_image[3, 4].item()


@pytest.mark.parametrize("interpolation", list(Interpolation))
def test_rotate_zero_is_identity(random_image, interpolation):
    image = random_image[:31, :31]
    rotated = rotate(image, 0.0, interpolation=interpolation)
    np.testing.assert_allclose(rotated.numpy(), image.numpy(), atol=1e-5)


def test_rotate_moves_content_like_rotate_point():
    image = torch.zeros(11, 11)
    image[5, 8] = 1.0
    center = Point(5, 5)

    rotated = rotate(image, 90.0, center=center)
    target = rotate_point(Point(5, 8), center, 90.0).rounded()

    assert target == Point(8, 5)
    assert rotated[target.row, target.column] == 1.0
    assert rotated.sum() == 1.0


def test_rotate_quarter_turn_matches_rot90(random_image):
    image = random_image[:31, :31]
    expected = torch.rot90(image, 1, dims=(0, 1))
    assert torch.equal(rotate(image, -90.0), expected)


def test_rotate_accepts_string_interpolation(random_image):
    image = random_image[:15, :15]
    assert torch.equal(
        rotate(image, 30.0, interpolation="nearest"),
        rotate(image, 30.0, interpolation=Interpolation.NEAREST),
    )
    with pytest.raises(ConfigurationError):
        rotate(image, 30.0, interpolation="bicubic")


# --- Patch extraction ---


def test_extract_patch_skips_border_keypoint():
    image = torch.rand(100, 100)
    assert extract_patch(image, KeyPoint(Point(0, 0)), 31) is None


def test_extract_patch_at_zero_angle_is_a_crop(random_image):
    patch = extract_patch(random_image, KeyPoint(Point(40, 60), angle=0.0), 31)
    assert patch.shape == (31, 31)
    assert torch.equal(patch, random_image[25:56, 45:76])


@pytest.mark.parametrize("angle", [90.0, 180.0, 270.0])
def test_extract_patch_is_canonical(random_image, angle):
    """Patch offset d maps to image position origin + R(angle) d."""
    origin = Point(50, 50)
    patch = extract_patch(random_image, KeyPoint(origin, angle=angle), 11)
    center = Point(5, 5)

    for d_row, d_column in [(0, 1), (2, -3), (-4, 4), (0, 0)]:
        source = rotate_point(
            origin.translate(d_row, d_column), origin, angle
        ).rounded()
        assert patch[center.row + d_row, center.column + d_column].item() == pytest.approx(
            random_image[source.row, source.column].item()
        )


def test_extract_patch_bilinear_shape(random_image):
    patch = extract_patch(
        random_image,
        KeyPoint(Point(50, 50), angle=33.0),
        31,
        interpolation=Interpolation.BILINEAR,
    )
    assert patch.shape == (31, 31)


def test_extract_patch_corner_policy():
    image = torch.rand(100, 100)
    keypoint = KeyPoint(Point(15, 15), angle=0.0)
    assert extract_patch(image, keypoint, 31, allow_corners=True) is not None
    assert extract_patch(image, keypoint, 31, allow_corners=False) is None


@pytest.mark.parametrize("patch_size", [30, 1, 103])
def test_extract_patch_invalid_size(random_image, patch_size):
    with pytest.raises(ConfigurationError):
        extract_patch(random_image, KeyPoint(Point(50, 50)), patch_size)
