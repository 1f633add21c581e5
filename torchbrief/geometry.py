import math
from typing import NamedTuple


class Point(NamedTuple):
    """
    Pixel coordinate in an image frame.

    Rows grow downwards and columns grow to the right. Patch-local points use
    the same convention with the patch's top-left pixel as origin.
    """

    row: float
    column: float

    def translate(self, d_row: float, d_column: float) -> "Point":
        """Return the point shifted by the given offsets."""
        return Point(self.row + d_row, self.column + d_column)

    def rounded(self) -> "Point":
        """Return the nearest integer pixel."""
        return Point(int(round(self.row)), int(round(self.column)))


def euclidean_distance(point1: Point, point2: Point) -> float:
    """
    Compute the distance between two points.

    Args:
        point1: First point
        point2: Second point

    Returns:
        Euclidean distance
    """
    return math.sqrt(
        (point1.row - point2.row) ** 2 + (point1.column - point2.column) ** 2
    )


def rotate_point(point: Point, center: Point, angle: float) -> Point:
    """
    Rotate a point about a center.

    Positive angles turn the column axis towards the row axis, which is
    clockwise on screen. This is where the content at ``point`` ends up after
    ``rotate(image, angle, center)``.

    Args:
        point: Point to rotate
        center: Center of rotation
        angle: Rotation angle in degrees

    Returns:
        Rotated point (not rounded)
    """
    rad = math.radians(angle)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    dx = point.column - center.column
    dy = point.row - center.row
    return Point(
        center.row + dx * sin_a + dy * cos_a,
        center.column + dx * cos_a - dy * sin_a,
    )


def image_center(height: int, width: int) -> Point:
    """Center pixel of an image. Exact for odd dimensions."""
    return Point((height - 1) // 2, (width - 1) // 2)
