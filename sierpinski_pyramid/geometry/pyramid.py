"""Sierpinski pyramid generator -- stacked layer curves, memoized by level.

A pyramid of level ``e`` is ``layers_per_base * 2**(e-1)`` horizontal layers,
each a single closed curve in physical units (mm), centred on the origin.

Level 1 (base case)
    Every layer is a scaled lattice curve.  The lower third of the layers
    uses the level-1 curve, the rest the (doubled) level-0 diamond, and each
    layer shrinks linearly toward the apex.

Level e > 1
    The **top half** is the whole level ``e-1`` pyramid, unchanged.
    Each **bottom-half** layer stitches four copies of the matching
    level ``e-1`` layer (re-anchored at its entry point, rotated into the
    four quadrants) into the complementary layer of an upside-down level
    ``e-1`` pyramid occupying the centre::

        1/8 inv -> LL -> 1/4 inv -> LR(90) -> 1/4 inv -> UR(180)
                -> 1/4 inv -> UL(270) -> rest of inv

    The entry offset of the new layer is the middle of the upper-right
    copy, i.e. the north face entered through the upper-right quadrant.

Ordering:
    Building level ``e`` requires the curve cache to cover level ``e`` and
    this generator's cache to cover level ``e-1``.  ``get_pyramid`` enforces
    both before assembling anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from sierpinski_pyramid.geometry.curve import (
    CurveGenerator,
    check_capacity,
    entry_index,
    side_length,
)
from sierpinski_pyramid.geometry.primitives import (
    circular_shift,
    place_with_offset,
    place_with_rotation_and_offset,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Pyramid:
    """Generated pyramid handed to consumers.

    Parameters
    ----------
    layers : tuple[np.ndarray, ...]
        One ``(N, 2)`` float64 array per layer, bottom first, in mm
    entry_offsets : tuple[int, ...]
        Canonical entry index of each layer
    side_length : int
        Side of the bounding square in lattice steps (``2**level``)
    """

    layers: tuple[np.ndarray, ...]
    entry_offsets: tuple[int, ...]
    side_length: int

    @property
    def total_layers(self) -> int:
        return len(self.layers)

    @property
    def total_points(self) -> int:
        return sum(len(layer) for layer in self.layers)


# ---------------------------------------------------------------------------
# Per-layer formulas
# ---------------------------------------------------------------------------


def total_layers(level: int, layers_per_base: int) -> int:
    """Layer count of a level-*level* pyramid (0 for the reserved level 0)."""
    if level < 1:
        return 0
    return layers_per_base * (1 << (level - 1))


def base_curve_level(layer_index: int, layers_per_base: int) -> int:
    """Curve level used by a base-pyramid layer.

    Splits the smallest pyramid into thirds of its height; the bottom third
    uses the level-1 curve and everything above it the level-0 diamond.
    """
    return max(0, (3 * (layers_per_base - 1 - layer_index)) // layers_per_base - 1)


def layer_scale_factor(layer_index: int, layers_per_base: int) -> float:
    """Linear taper from 1.0 at the base to ``1/layers_per_base`` at the apex."""
    return (layers_per_base - layer_index) / layers_per_base


def _stitch_layer(
    small: np.ndarray, inverted: np.ndarray, offset: float,
) -> tuple[np.ndarray, int]:
    """Wrap four placed copies of *small* around *inverted*.

    Returns the new layer and its entry offset.
    """
    n_small = len(small)
    n_inv = len(inverted)
    quarter = n_inv // 4
    first_eighth = (quarter - 1) // 2 + 1

    layer = np.empty((4 * n_small + n_inv, 2), dtype=np.float64)
    j = first_eighth
    i = place_with_offset(inverted, layer, 0, 0.0, 0.0, (0, j))

    # lower-left
    i = place_with_offset(small, layer, i, -offset, -offset)
    i = place_with_offset(inverted, layer, i, 0.0, 0.0, (j, j + quarter))
    j += quarter

    # lower-right
    i = place_with_rotation_and_offset(small, layer, i, offset, -offset, 1)
    i = place_with_offset(inverted, layer, i, 0.0, 0.0, (j, j + quarter))
    j += quarter

    # upper-right, which also carries the entry point
    entry = i + n_small // 2
    i = place_with_rotation_and_offset(small, layer, i, offset, offset, 2)
    i = place_with_offset(inverted, layer, i, 0.0, 0.0, (j, j + quarter))
    j += quarter

    # upper-left
    i = place_with_rotation_and_offset(small, layer, i, -offset, offset, 3)
    i = place_with_offset(inverted, layer, i, 0.0, 0.0, (j, n_inv))

    assert i == len(layer), f"stitched {i} of {len(layer)} points"
    return layer, entry


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class PyramidGenerator:
    """Build and memoize Sierpinski pyramids.

    Parameters
    ----------
    grid_step : float
        Physical length of one lattice step (mm).  The smallest pyramids
        have a ``2 * grid_step`` square base.
    layers_per_base : int
        Number of layers of a level-1 pyramid.
    curves : CurveGenerator, optional
        Curve cache to draw base layers from; a private one is created when
        omitted.

    Examples
    --------
    >>> gen = PyramidGenerator(grid_step=0.85, layers_per_base=6)
    >>> gen.get_pyramid(2).total_layers
    12
    """

    def __init__(
        self,
        grid_step: float,
        layers_per_base: int,
        curves: CurveGenerator | None = None,
    ) -> None:
        if grid_step <= 0:
            raise ValueError(f"grid_step must be > 0, got {grid_step}")
        if layers_per_base < 1:
            raise ValueError(
                f"layers_per_base must be >= 1, got {layers_per_base}"
            )
        self.grid_step = float(grid_step)
        self.layers_per_base = int(layers_per_base)
        self.curves = curves if curves is not None else CurveGenerator()
        # Index 0 is the reserved level and never holds geometry.
        self._levels: list[tuple[tuple[np.ndarray, ...], tuple[int, ...]] | None] = [None]

        seed = np.array(((-1, 0), (0, -1), (1, 0), (0, 1)), dtype=np.float64)
        self._seed_diamond = seed * (2 * 0.25 * self.grid_step)
        self._seed_diamond.flags.writeable = False

    @property
    def highest_level(self) -> int:
        """Highest cached pyramid level, ``0`` when nothing is cached."""
        return len(self._levels) - 1

    def get_pyramid(self, level: int) -> Pyramid:
        """Return the pyramid for *level*.

        Parameters
        ----------
        level : int
            Pyramid level; values below 1 give an empty pyramid.

        Returns
        -------
        Pyramid
            Copies of the cached layers, their entry offsets and the side
            length ``2**level``.

        Raises
        ------
        CapacityError
            If *level* exceeds ``MAX_LEVEL``.
        """
        if level < 1:
            return Pyramid(layers=(), entry_offsets=(), side_length=0)

        check_capacity(level)
        self.curves.ensure(level)
        for e in range(len(self._levels), level + 1):
            assert self.curves.highest_level >= e
            layers, offsets = self._build_base() if e == 1 else self._build_level(e)
            for layer, entry in zip(layers, offsets):
                assert 0 <= entry < len(layer), f"entry {entry} outside layer"
                layer.flags.writeable = False
            assert len(layers) == total_layers(e, self.layers_per_base)
            self._levels.append((tuple(layers), tuple(offsets)))
            logger.debug(
                "Cached pyramid level %d (%d layers, %d points)",
                e, len(layers), sum(len(layer) for layer in layers),
            )

        layers, offsets = self._levels[level]
        return Pyramid(
            layers=tuple(layer.copy() for layer in layers),
            entry_offsets=offsets,
            side_length=side_length(level),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_base(self) -> tuple[list[np.ndarray], list[int]]:
        n_layers = self.layers_per_base
        layers: list[np.ndarray] = []
        offsets: list[int] = []
        for layer_index in range(n_layers):
            curve_level = base_curve_level(layer_index, n_layers)
            lattice = self.curves.cached(curve_level)
            if curve_level == 0:
                # level 0 is one unit coarser than level 1
                lattice = lattice * 2

            scale = layer_scale_factor(layer_index, n_layers)
            # lattice coordinates are quarter grid-steps
            layers.append(0.25 * scale * self.grid_step * lattice.astype(np.float64))
            offsets.append(entry_index(len(lattice)))
        return layers, offsets

    def _build_level(self, level: int) -> tuple[list[np.ndarray], list[int]]:
        prev_layers, prev_offsets = self._levels[level - 1]
        half = len(prev_layers)
        offset = (1 << level) * 0.25 * self.grid_step

        layers: list[np.ndarray] = []
        offsets: list[int] = []
        for layer_index in range(half):
            small = circular_shift(prev_layers[layer_index], prev_offsets[layer_index])
            # The inverted layer is deliberately left unshifted.
            if layer_index == 0:
                inverted = self._seed_diamond
            else:
                inverted = prev_layers[half - 1 - layer_index]
            layer, entry = _stitch_layer(small, inverted, offset)
            layers.append(layer)
            offsets.append(entry)

        layers.extend(prev_layers)
        offsets.extend(prev_offsets)
        return layers, offsets
