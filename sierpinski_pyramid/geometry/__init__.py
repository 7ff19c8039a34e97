"""
Sierpinski geometry module.

Recursive lattice curves and the stacked pyramid layers built from them.
All generation is in-memory and memoized per generator instance.
"""

from sierpinski_pyramid.geometry.curve import (
    MAX_LEVEL,
    CapacityError,
    CurveGenerator,
    GenerationError,
    curve_length,
    entry_index,
)
from sierpinski_pyramid.geometry.primitives import (
    circular_shift,
    place_with_offset,
    place_with_rotation_and_offset,
    rotate_quadrant,
)
from sierpinski_pyramid.geometry.pyramid import (
    Pyramid,
    PyramidGenerator,
    base_curve_level,
    layer_scale_factor,
    total_layers,
)

__all__ = [
    "MAX_LEVEL",
    "CapacityError",
    "CurveGenerator",
    "GenerationError",
    "Pyramid",
    "PyramidGenerator",
    "base_curve_level",
    "circular_shift",
    "curve_length",
    "entry_index",
    "layer_scale_factor",
    "place_with_offset",
    "place_with_rotation_and_offset",
    "rotate_quadrant",
    "total_layers",
]
