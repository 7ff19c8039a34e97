"""Geometric primitives for lattice curves and pyramid layers.

Provides:
    - Circular re-indexing of a point sequence (re-anchoring)
    - Exact 90-degree-multiple rotation about the origin
    - Copy-then-transform placement of a point block into a larger array

Used by:
    - Curve generator: re-anchor and place the four quadrant sub-curves
    - Pyramid generator: stitch sub-pyramid layers around the inverted layer

Points are ``numpy`` arrays of shape ``(N, 2)``.  Integer arrays stay
integer through every operation here, so lattice curves are transformed
without any floating-point error.
"""

from __future__ import annotations

import numpy as np

# cos / sin of k * 90 degrees, indexed by k % 4
_COSINES = (1, 0, -1, 0)
_SINES = (0, 1, 0, -1)


def circular_shift(points: np.ndarray, start_index: int) -> np.ndarray:
    """Return *points* re-indexed so ``points[start_index]`` comes first.

    Parameters
    ----------
    points : np.ndarray
        Point sequence, shape (N, 2)
    start_index : int
        Index of the element that becomes element 0, taken modulo N

    Returns
    -------
    np.ndarray
        New array, same shape and dtype; cyclic order preserved

    Notes
    -----
    The input is never modified.  An empty input returns an empty copy.
    """
    n = len(points)
    if n == 0:
        return points.copy()
    return np.roll(points, -(start_index % n), axis=0)


def rotate_quadrant(points: np.ndarray, k: int) -> np.ndarray:
    """Rotate every point counter-clockwise by ``90 * k`` degrees.

    Parameters
    ----------
    points : np.ndarray
        Point sequence, shape (N, 2)
    k : int
        Number of quarter turns; any integer, taken modulo 4

    Returns
    -------
    np.ndarray
        Rotated copy with the dtype of *points*

    Notes
    -----
    rotated_x = x cos(t) - y sin(t)
    rotated_y = x sin(t) + y cos(t)
    """
    c = _COSINES[k % 4]
    s = _SINES[k % 4]
    x = points[:, 0]
    y = points[:, 1]
    return np.stack([x * c - y * s, x * s + y * c], axis=1).astype(
        points.dtype, copy=False
    )


def _copy_block(
    source: np.ndarray,
    dest: np.ndarray,
    dest_start: int,
    src_range: tuple[int, int] | None,
) -> slice:
    start, stop = (0, len(source)) if src_range is None else src_range
    block = slice(dest_start, dest_start + (stop - start))
    dest[block] = source[start:stop]
    return block


def place_with_offset(
    source: np.ndarray,
    dest: np.ndarray,
    dest_start: int,
    dx: float,
    dy: float,
    src_range: tuple[int, int] | None = None,
) -> int:
    """Copy ``source[src_range]`` into *dest* at *dest_start*, then translate.

    Parameters
    ----------
    source : np.ndarray
        Points to copy, shape (M, 2); never modified
    dest : np.ndarray
        Pre-allocated destination, shape (N, 2); written in place
    dest_start : int
        First destination row
    dx, dy : float
        Translation applied to the copied rows
    src_range : tuple[int, int], optional
        ``(start, stop)`` slice of *source*; ``None`` copies all of it

    Returns
    -------
    int
        Destination index one past the placed block
    """
    block = _copy_block(source, dest, dest_start, src_range)
    dest[block] += (dx, dy)
    return block.stop


def place_with_rotation_and_offset(
    source: np.ndarray,
    dest: np.ndarray,
    dest_start: int,
    dx: float,
    dy: float,
    k: int,
    src_range: tuple[int, int] | None = None,
) -> int:
    """Copy into *dest*, rotate the copied rows by *k* quarter turns, translate.

    Same parameters as :func:`place_with_offset` plus *k*.  Rotation is
    applied to the freshly copied destination rows, never to *source*.

    Returns
    -------
    int
        Destination index one past the placed block
    """
    block = _copy_block(source, dest, dest_start, src_range)
    dest[block] = rotate_quadrant(dest[block], k)
    dest[block] += (dx, dy)
    return block.stop
