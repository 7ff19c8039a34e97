"""Sierpinski curve generator -- self-similar lattice curves, memoized by level.

Every curve lives on an integer lattice measured in **quarter grid-steps**.
Level 0 is the 4-point diamond (west, south, east, north); level ``n`` is
four re-anchored copies of level ``n - 1``, one per quadrant, rotated in
90-degree increments and joined by single connector vertices::

    +-------+-------+
    |  UL   ^   UR  |      LL: level n-1, no rotation
    |  270  |  180  |      LR: rotated  90
    +<------+------>+      UR: rotated 180
    |  LL   |   LR  |      UL: rotated 270
    |   0   v   90  |
    +-------+-------+

The result is one closed, non-self-crossing path with
``len(curve(n)) == 4 * (len(curve(n - 1)) + 1)``.

Cache discipline:
    ``CurveGenerator`` owns its cache.  Levels are appended strictly in
    order (each level consumes the previous one), cached arrays are
    read-only, and callers always receive copies.

Capacity:
    Coordinates and lengths are ``int64``.  ``MAX_LEVEL`` is the highest
    level whose point count still fits; requests above it raise
    ``CapacityError``.  Memory runs out long before that in practice:
    level 12 already holds ~90 million points.
"""

from __future__ import annotations

import logging

import numpy as np

from sierpinski_pyramid.geometry.primitives import (
    circular_shift,
    place_with_offset,
    place_with_rotation_and_offset,
)

logger = logging.getLogger(__name__)

COORD_DTYPE = np.int64

MAX_LEVEL = 30
"""Highest level whose point count ``(4**(n+2) - 4) / 3`` fits in int64."""

_BASE_DIAMOND = ((-1, 0), (0, -1), (1, 0), (0, 1))


class GenerationError(Exception):
    """Raised when curve or pyramid generation cannot proceed."""

    pass


class CapacityError(GenerationError):
    """Raised when a requested level exceeds ``MAX_LEVEL``."""

    pass


# ---------------------------------------------------------------------------
# Closed-form helpers
# ---------------------------------------------------------------------------


def curve_length(level: int) -> int:
    """Number of points in the level-*level* curve (0 below level -1)."""
    if level < -1:
        return 0
    if level == -1:
        return 1
    return (4 ** (level + 2) - 4) // 3


def entry_index(n_points: int) -> int:
    """Index of the canonical entry point of a closed curve of *n_points*.

    Used both to re-anchor a sub-curve before it is embedded one level up
    and as the entry offset of the base pyramid layers.
    """
    return n_points // 2 + (n_points // 4 + 1) // 2


def side_length(level: int) -> int:
    """Side of the bounding square in lattice steps (0 for negative levels)."""
    return 1 << level if level >= 0 else 0


def check_capacity(level: int) -> None:
    """Raise ``CapacityError`` if *level* is not representable."""
    if level > MAX_LEVEL:
        raise CapacityError(
            f"Level {level} exceeds the maximum supported level {MAX_LEVEL} "
            f"for {np.dtype(COORD_DTYPE).name} coordinates"
        )


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class CurveGenerator:
    """Build and memoize Sierpinski lattice curves.

    Examples
    --------
    >>> curves = CurveGenerator()
    >>> curves.get_curve(1).shape
    (20, 2)
    """

    def __init__(self) -> None:
        self._levels: list[np.ndarray] = []

    @property
    def highest_level(self) -> int:
        """Highest cached level, ``-1`` when the cache is empty."""
        return len(self._levels) - 1

    def ensure(self, level: int) -> None:
        """Extend the cache, one level at a time, up to *level*."""
        check_capacity(level)
        for n in range(len(self._levels), level + 1):
            curve = self._build(n)
            assert len(curve) == curve_length(n), (
                f"curve level {n} has {len(curve)} points, "
                f"expected {curve_length(n)}"
            )
            curve.flags.writeable = False
            self._levels.append(curve)
            logger.debug("Cached Sierpinski curve level %d (%d points)", n, len(curve))

    def get_curve(self, level: int) -> np.ndarray:
        """Return the lattice curve for *level*.

        Parameters
        ----------
        level : int
            Recursion level.  ``-1`` yields the single point (0, 0); lower
            levels yield an empty array.

        Returns
        -------
        np.ndarray
            Writable copy, shape (N, 2), dtype int64, quarter-step units

        Raises
        ------
        CapacityError
            If *level* exceeds ``MAX_LEVEL``.
        """
        if level == -1:
            return np.zeros((1, 2), dtype=COORD_DTYPE)
        if level < -1:
            return np.empty((0, 2), dtype=COORD_DTYPE)
        self.ensure(level)
        return self._levels[level].copy()

    def cached(self, level: int) -> np.ndarray:
        """Read-only cached curve; *level* must already be cached."""
        return self._levels[level]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build(self, n: int) -> np.ndarray:
        if n == 0:
            return np.array(_BASE_DIAMOND, dtype=COORD_DTYPE)

        prev = self._levels[n - 1]
        small = circular_shift(prev, entry_index(len(prev)))
        offset = 1 << n

        curve = np.empty((4 * (len(small) + 1), 2), dtype=COORD_DTYPE)
        i = 0
        curve[i] = (-2, 0)
        i = place_with_offset(small, curve, i + 1, -offset, -offset)
        curve[i] = (0, -2)
        i = place_with_rotation_and_offset(small, curve, i + 1, offset, -offset, 1)
        curve[i] = (2, 0)
        i = place_with_rotation_and_offset(small, curve, i + 1, offset, offset, 2)
        curve[i] = (0, 2)
        i = place_with_rotation_and_offset(small, curve, i + 1, -offset, offset, 3)
        assert i == len(curve)
        return curve
