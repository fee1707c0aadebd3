from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, Mapping, NamedTuple, Tuple

import numpy as np

from .exceptions import DegenerateGeometryError, InvalidCornerCountError, InvalidInputError

CORNER_COUNT = 4
# Sine of the smallest angle a corner triple may span before it counts as collinear.
COLLINEAR_TOLERANCE = 1e-6


class Point2D(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class Quadrilateral:
    top_left: Point2D
    top_right: Point2D
    bottom_right: Point2D
    bottom_left: Point2D

    @property
    def corners(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def as_array(self) -> np.ndarray:
        """Returns the corners as a 4x2 float64 array in TL, TR, BR, BL order."""
        return np.array(self.corners, dtype=np.float64)

    def edge_lengths(self) -> Tuple[float, float, float, float]:
        """Returns (top, bottom, left, right) edge lengths."""
        tl, tr, br, bl = self.corners
        top = math.hypot(tr.x - tl.x, tr.y - tl.y)
        bottom = math.hypot(br.x - bl.x, br.y - bl.y)
        left = math.hypot(bl.x - tl.x, bl.y - tl.y)
        right = math.hypot(br.x - tr.x, br.y - tr.y)
        return top, bottom, left, right

    def scaled(self, sx: float, sy: float) -> 'Quadrilateral':
        return Quadrilateral(*(Point2D(p.x * sx, p.y * sy) for p in self.corners))

    def signed_area(self) -> float:
        pts = self.as_array()
        xs, ys = pts[:, 0], pts[:, 1]
        return 0.5 * float(np.dot(xs, np.roll(ys, -1)) - np.dot(np.roll(xs, -1), ys))


@dataclass(frozen=True)
class OutputDimensions:
    width: int
    height: int

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _coerce_point(point) -> Point2D:
    if isinstance(point, Mapping):
        if 'x' not in point or 'y' not in point:
            raise InvalidInputError("Each corner must provide 'x' and 'y' coordinates.")
        raw = (point['x'], point['y'])
    else:
        try:
            raw = tuple(point)
        except TypeError as exc:
            raise InvalidInputError(f"Corner {point!r} is not a coordinate pair.") from exc
        if len(raw) != 2:
            raise InvalidInputError(f"Corner {point!r} must have exactly two coordinates.")

    coords = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise InvalidInputError(f"Corner coordinate {value!r} is not a number.")
        if not math.isfinite(value):
            raise InvalidInputError(f"Corner coordinate {value!r} is not finite.")
        coords.append(float(value))
    return Point2D(*coords)


def normalize_corners(points: Iterable) -> Quadrilateral:
    """Builds a quadrilateral from exactly four points given as TL, TR, BR, BL.

    The ordering is trusted: nothing is sorted and no collinearity check is
    done here (see ``validate_quadrilateral``).
    """
    try:
        items = list(points)
    except TypeError as exc:
        raise InvalidInputError('Corners must be a list of points.') from exc
    if len(items) != CORNER_COUNT:
        raise InvalidCornerCountError(f"Expected {CORNER_COUNT} corners, got {len(items)}.")
    return Quadrilateral(*(_coerce_point(point) for point in items))


def estimate_output_dimensions(quad: Quadrilateral) -> OutputDimensions:
    """Sizes the output from the longer edge of each parallel pair."""
    top, bottom, left, right = quad.edge_lengths()
    return OutputDimensions(
        width=round_half_up(max(top, bottom)),
        height=round_half_up(max(left, right)),
    )


def validate_quadrilateral(quad: Quadrilateral) -> None:
    """Raises DegenerateGeometryError unless the corners span a proper quadrilateral."""
    corners = quad.as_array()
    if not np.isfinite(corners).all():
        raise DegenerateGeometryError('Quadrilateral corners must be finite.')

    names = ('top-left', 'top-right', 'bottom-right', 'bottom-left')
    for i, j, k in combinations(range(CORNER_COUNT), 3):
        ab = corners[j] - corners[i]
        ac = corners[k] - corners[i]
        cross = abs(ab[0] * ac[1] - ab[1] * ac[0])
        scale = float(np.linalg.norm(ab) * np.linalg.norm(ac))
        if cross <= COLLINEAR_TOLERANCE * scale:
            raise DegenerateGeometryError(
                f"Corners {names[i]}, {names[j]} and {names[k]} are collinear."
            )

    if abs(quad.signed_area()) <= 0.0:
        raise DegenerateGeometryError('Quadrilateral encloses no area.')
