from __future__ import annotations

import concurrent.futures
import logging
import os
import time

import numpy as np

from .exceptions import RectificationTimeoutError
from .geometry import OutputDimensions

logger = logging.getLogger(__name__)

DEFAULT_ROWS_PER_TASK = 64


def _resolve_workers(workers: int | None) -> int:
    cpus = os.cpu_count() or 1
    if workers is None:
        return cpus
    return max(1, min(int(workers), cpus))


def _check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise RectificationTimeoutError('Rectification exceeded its deadline')


def _warp_rows(
    src: np.ndarray,
    h_inv: np.ndarray,
    out: np.ndarray,
    row_start: int,
    row_stop: int,
) -> None:
    """Fills out[row_start:row_stop] by bilinear sampling through h_inv.

    Pixels whose 2x2 neighbourhood falls outside the source stay zero.
    """
    src_h, src_w = src.shape[:2]
    out_w = out.shape[1]
    oy, ox = np.mgrid[row_start:row_stop, 0:out_w].astype(np.float64)

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        denom = h_inv[2, 0] * ox + h_inv[2, 1] * oy + h_inv[2, 2]
        sx = (h_inv[0, 0] * ox + h_inv[0, 1] * oy + h_inv[0, 2]) / denom
        sy = (h_inv[1, 0] * ox + h_inv[1, 1] * oy + h_inv[1, 2]) / denom

    finite = np.isfinite(sx) & np.isfinite(sy)
    sx = np.where(finite, sx, -1.0)
    sy = np.where(finite, sy, -1.0)
    x0f = np.floor(sx)
    y0f = np.floor(sy)
    valid = finite & (x0f >= 0) & (x0f + 1 < src_w) & (y0f >= 0) & (y0f + 1 < src_h)
    if not valid.any():
        return

    x0 = x0f[valid].astype(np.intp)
    y0 = y0f[valid].astype(np.intp)
    fx = (sx[valid] - x0f[valid])[:, None]
    fy = (sy[valid] - y0f[valid])[:, None]

    v00 = src[y0, x0].astype(np.float64)
    v10 = src[y0, x0 + 1].astype(np.float64)
    v01 = src[y0 + 1, x0].astype(np.float64)
    v11 = src[y0 + 1, x0 + 1].astype(np.float64)

    top = v00 + (v10 - v00) * fx
    bot = v01 + (v11 - v01) * fx
    blended = np.floor(top + (bot - top) * fy + 0.5)

    band = out[row_start:row_stop]
    band[valid] = blended.astype(out.dtype)


def warp_perspective(
    src: np.ndarray,
    h_inv: np.ndarray,
    dims: OutputDimensions,
    *,
    workers: int | None = None,
    rows_per_task: int | None = None,
    deadline: float | None = None,
) -> np.ndarray:
    """Resamples ``src`` into a new ``dims``-sized buffer.

    ``h_inv`` maps destination pixel coordinates to source coordinates. Row
    bands are warped on a thread pool bounded by the CPU count; each band
    writes a disjoint slice of the output. ``deadline`` is a
    ``time.monotonic()`` instant after which the warp is abandoned.
    """
    grayscale = src.ndim == 2
    source = src[:, :, None] if grayscale else src
    out = np.zeros((dims.height, dims.width, source.shape[2]), dtype=source.dtype)

    _check_deadline(deadline)
    rows_per_task = max(1, int(rows_per_task or DEFAULT_ROWS_PER_TASK))
    bands = [
        (start, min(start + rows_per_task, dims.height))
        for start in range(0, dims.height, rows_per_task)
    ]
    max_workers = min(_resolve_workers(workers), max(1, len(bands)))

    if max_workers == 1:
        for start, stop in bands:
            _check_deadline(deadline)
            _warp_rows(source, h_inv, out, start, stop)
    else:
        _warp_bands_in_pool(source, h_inv, out, bands, max_workers, deadline)
    # a band that was already running may have finished past the deadline
    _check_deadline(deadline)

    logger.debug(
        'Warped %dx%d output in %d band(s) on %d worker(s)',
        dims.width, dims.height, len(bands), max_workers,
    )
    return out[:, :, 0] if grayscale else out


def _warp_bands_in_pool(source, h_inv, out, bands, max_workers, deadline) -> None:
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_band = {
            executor.submit(_warp_rows, source, h_inv, out, start, stop): (start, stop)
            for start, stop in bands
        }
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            for future in concurrent.futures.as_completed(future_to_band, timeout=timeout):
                future.result()
        except concurrent.futures.TimeoutError as exc:
            for future in future_to_band:
                future.cancel()
            raise RectificationTimeoutError('Rectification exceeded its deadline') from exc
