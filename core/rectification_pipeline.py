from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
from django.conf import settings

from .codec import DEFAULT_JPEG_QUALITY, encode_jpeg
from .exceptions import DegenerateGeometryError, InvalidInputError, OutputTooLargeError
from .geometry import (
    OutputDimensions,
    Quadrilateral,
    estimate_output_dimensions,
    normalize_corners,
    validate_quadrilateral,
)
from .homography import rectangle_corners, solve_homography
from .resampler import DEFAULT_ROWS_PER_TASK, warp_perspective

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RectificationLimits:
    max_dimension: int = 8000
    max_output_pixels: int = 40_000_000
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    workers: int | None = None
    rows_per_task: int = DEFAULT_ROWS_PER_TASK
    deadline_seconds: float | None = 30.0

    @classmethod
    def from_settings(cls) -> 'RectificationLimits':
        defaults = cls()
        return cls(
            max_dimension=getattr(settings, 'RECTIFIER_MAX_DIMENSION', defaults.max_dimension),
            max_output_pixels=getattr(settings, 'RECTIFIER_MAX_OUTPUT_PIXELS', defaults.max_output_pixels),
            jpeg_quality=getattr(settings, 'RECTIFIER_JPEG_QUALITY', defaults.jpeg_quality),
            workers=getattr(settings, 'RECTIFIER_WORKERS', defaults.workers),
            rows_per_task=getattr(settings, 'RECTIFIER_ROWS_PER_TASK', defaults.rows_per_task),
            deadline_seconds=getattr(settings, 'RECTIFIER_DEADLINE_SECONDS', defaults.deadline_seconds),
        )


@dataclass
class RectificationResult:
    image: np.ndarray
    dimensions: OutputDimensions
    homography: np.ndarray
    jpeg_bytes: bytes | None
    quad: Quadrilateral


def _rescale_to_image(quad: Quadrilateral, source_size: Tuple[int, int] | None, image_shape) -> Quadrilateral:
    """Maps corners picked on a source_size-sized image into decoded pixel space."""
    if source_size is None:
        return quad
    declared_w, declared_h = source_size
    if declared_w <= 0 or declared_h <= 0:
        raise InvalidInputError('Source dimensions must be positive.')
    img_h, img_w = image_shape[:2]
    if (declared_w, declared_h) == (img_w, img_h):
        return quad
    logger.info(
        'Scaling corners from declared %dx%d to decoded %dx%d',
        declared_w, declared_h, img_w, img_h,
    )
    return quad.scaled(img_w / declared_w, img_h / declared_h)


def _check_dimensions(dims: OutputDimensions, limits: RectificationLimits) -> None:
    if dims.width <= 0 or dims.height <= 0:
        raise DegenerateGeometryError(
            f"Quadrilateral yields an empty {dims.width}x{dims.height} output."
        )
    if dims.width > limits.max_dimension or dims.height > limits.max_dimension:
        raise OutputTooLargeError(
            f"Output {dims.width}x{dims.height} exceeds the {limits.max_dimension}px edge limit."
        )
    if dims.pixel_count > limits.max_output_pixels:
        raise OutputTooLargeError(
            f"Output {dims.width}x{dims.height} exceeds the {limits.max_output_pixels} pixel limit."
        )


def run_rectification_pipeline(
    image: np.ndarray,
    corners: Quadrilateral | Iterable,
    *,
    source_size: Tuple[int, int] | None = None,
    limits: RectificationLimits | None = None,
    deadline: float | None = None,
    encode: bool = True,
) -> RectificationResult:
    """Rectifies the quadrilateral given by ``corners`` (TL, TR, BR, BL) into a rectangle.

    ``deadline`` is a ``time.monotonic()`` instant; when omitted it starts now.
    With ``encode=False`` the JPEG is left to the caller and ``jpeg_bytes`` is None.
    """
    if limits is None:
        limits = RectificationLimits.from_settings()
    if deadline is None and limits.deadline_seconds is not None:
        deadline = time.monotonic() + limits.deadline_seconds

    started = time.perf_counter()
    quad = corners if isinstance(corners, Quadrilateral) else normalize_corners(corners)
    quad = _rescale_to_image(quad, source_size, image.shape)
    validate_quadrilateral(quad)

    dims = estimate_output_dimensions(quad)
    _check_dimensions(dims, limits)

    homography = solve_homography(rectangle_corners(dims), quad.as_array())
    warped = warp_perspective(
        image,
        homography,
        dims,
        workers=limits.workers,
        rows_per_task=limits.rows_per_task,
        deadline=deadline,
    )
    jpeg_bytes = encode_jpeg(warped, limits.jpeg_quality) if encode else None

    logger.info(
        'Rectified %dx%d source into %dx%d in %.1f ms',
        image.shape[1], image.shape[0], dims.width, dims.height,
        (time.perf_counter() - started) * 1000.0,
    )
    return RectificationResult(
        image=warped,
        dimensions=dims,
        homography=homography,
        jpeg_bytes=jpeg_bytes,
        quad=quad,
    )
