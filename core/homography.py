"""Planar homography estimation by Direct Linear Transform.

The solver builds the 8x9 augmented system for four point correspondences,
with ``h9`` fixed to 1, and reduces it with Gauss-Jordan elimination using
partial pivoting. Every elimination step is a pure function returning a new
matrix so each pivot and elimination can be checked on its own.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .exceptions import SingularSystemError
from .geometry import OutputDimensions

Point = Tuple[float, float]

UNKNOWNS = 8
# Pivots smaller than this fraction of the largest coefficient are treated as zero.
PIVOT_TOLERANCE = 1e-12


def rectangle_corners(dims: OutputDimensions) -> np.ndarray:
    """Returns the destination rectangle corners in TL, TR, BR, BL order."""
    w, h = float(dims.width), float(dims.height)
    return np.array([[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]], dtype=np.float64)


def build_dlt_system(dst_points: Sequence[Point], src_points: Sequence[Point]) -> np.ndarray:
    """Builds the augmented system whose solution maps dst_points onto src_points."""
    dst = np.asarray(dst_points, dtype=np.float64).reshape(-1, 2)
    src = np.asarray(src_points, dtype=np.float64).reshape(-1, 2)
    if dst.shape != (4, 2) or src.shape != (4, 2):
        raise ValueError('Homography estimation needs exactly four correspondences')

    system = np.zeros((UNKNOWNS, UNKNOWNS + 1), dtype=np.float64)
    for i, ((x, y), (u, v)) in enumerate(zip(dst, src)):
        system[2 * i] = [x, y, 1.0, 0.0, 0.0, 0.0, -x * u, -y * u, u]
        system[2 * i + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -x * v, -y * v, v]
    return system


def select_pivot_row(matrix: np.ndarray, col: int) -> int:
    """Returns the row at or below ``col`` with the largest magnitude in that column."""
    return col + int(np.argmax(np.abs(matrix[col:, col])))


def swap_rows(matrix: np.ndarray, a: int, b: int) -> np.ndarray:
    swapped = matrix.copy()
    if a != b:
        swapped[[a, b]] = swapped[[b, a]]
    return swapped


def eliminate_column(matrix: np.ndarray, col: int) -> np.ndarray:
    """Normalises the pivot row and clears ``col`` from every other row."""
    reduced = matrix.copy()
    reduced[col] = reduced[col] / reduced[col, col]
    factors = reduced[:, col].copy()
    factors[col] = 0.0
    reduced -= np.outer(factors, reduced[col])
    return reduced


def gauss_jordan(system: np.ndarray, tolerance: float = PIVOT_TOLERANCE) -> np.ndarray:
    """Reduces an augmented system to [I | x] or raises SingularSystemError."""
    rows = system.shape[0]
    scale = max(1.0, float(np.abs(system[:, :rows]).max()))
    threshold = tolerance * scale

    reduced = np.array(system, dtype=np.float64)
    for col in range(rows):
        pivot_row = select_pivot_row(reduced, col)
        pivot = reduced[pivot_row, col]
        if not np.isfinite(pivot) or abs(pivot) < threshold:
            raise SingularSystemError(
                f"Homography system is singular: pivot {pivot:.3e} in column {col} "
                f"is below {threshold:.3e}"
            )
        reduced = swap_rows(reduced, col, pivot_row)
        reduced = eliminate_column(reduced, col)
    return reduced


def solve_homography(
    dst_points: Sequence[Point],
    src_points: Sequence[Point],
    tolerance: float = PIVOT_TOLERANCE,
) -> np.ndarray:
    """Returns the 3x3 homography (h9 == 1) taking dst_points to src_points."""
    reduced = gauss_jordan(build_dlt_system(dst_points, src_points), tolerance)
    coefficients = np.append(reduced[:, UNKNOWNS], 1.0)
    homography = coefficients.reshape(3, 3)
    _check_invertible(homography, tolerance)
    return homography


def _check_invertible(homography: np.ndarray, tolerance: float) -> None:
    scale = float(np.abs(homography).max())
    det = float(np.linalg.det(homography))
    if not np.isfinite(det) or abs(det) <= tolerance * scale ** 3:
        raise SingularSystemError(f"Homography is singular (determinant {det:.3e})")


def invert_homography(homography: np.ndarray) -> np.ndarray:
    try:
        inverse = np.linalg.inv(homography)
    except np.linalg.LinAlgError as exc:
        raise SingularSystemError('Homography is not invertible') from exc
    if abs(inverse[2, 2]) < PIVOT_TOLERANCE:
        raise SingularSystemError('Inverse homography cannot be normalised')
    return inverse / inverse[2, 2]


def project_points(homography: np.ndarray, points: Sequence[Point]) -> np.ndarray:
    """Applies the homography with a perspective divide; returns an Nx2 array."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    homogeneous = np.column_stack([pts, np.ones(len(pts))]) @ homography.T
    return homogeneous[:, :2] / homogeneous[:, 2:3]
