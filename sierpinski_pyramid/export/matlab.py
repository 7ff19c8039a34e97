"""MATLAB / Octave plot scripts for inspecting generated geometry.

Three views:
    - curve:   one lattice curve, ``plot(x, y)``
    - pyramid: every layer at its print height, ``plot3(x, y, z)``
    - layer:   one layer, with its first point (blue) and entry point (green)

The scripts are self-contained (coordinates inlined), so they can be run
on a machine that never saw this package.  Open them with ``octave`` or
MATLAB and the figure appears.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from sierpinski_pyramid.geometry.pyramid import Pyramid
from sierpinski_pyramid.utils import fs

logger = logging.getLogger(__name__)

CURVE_PLOT_NAME = "SierpinskiCurve_plot.m"
PYRAMID_PLOT_NAME = "SierpinskiPyramid_plot.m"
LAYER_PLOT_NAME = "SierpinskiPyramidOneLayer_plot.m"

_PREAMBLE = "close all\nclear all\nclc\n"


def _vector(name: str, values) -> str:
    return f"{name} = [" + " ".join(str(v) for v in values) + " ];\n"


def curve_plot_script(curve: np.ndarray) -> str:
    """2D plot of a lattice curve."""
    return (
        _PREAMBLE
        + _vector("xCoords", curve[:, 0].tolist())
        + _vector("yCoords", curve[:, 1].tolist())
        + "plot(xCoords, yCoords, 'r-');\n"
        + "axis equal;\n"
    )


def pyramid_plot_script(pyramid: Pyramid, layer_height: float) -> str:
    """3D plot of all layers, layer ``i`` drawn at ``z = i * layer_height``."""
    xs: list[float] = []
    ys: list[float] = []
    zs: list[float] = []
    for layer_number, layer in enumerate(pyramid.layers):
        xs.extend(layer[:, 0].tolist())
        ys.extend(layer[:, 1].tolist())
        zs.extend([layer_number * layer_height] * len(layer))
    return (
        _PREAMBLE
        + _vector("xCoords", xs)
        + _vector("yCoords", ys)
        + _vector("zCoords", zs)
        + "plot3(xCoords, yCoords, zCoords, 'r-');\n"
        + "axis equal;\n"
    )


def layer_plot_script(pyramid: Pyramid, layer_index: int) -> str:
    """2D plot of one layer with its start and entry points marked.

    Raises
    ------
    IndexError
        If *layer_index* is not a layer of *pyramid*.
    """
    if not 0 <= layer_index < pyramid.total_layers:
        raise IndexError(
            f"layer {layer_index} out of range [0, {pyramid.total_layers})"
        )
    layer = pyramid.layers[layer_index]
    entry = pyramid.entry_offsets[layer_index]
    x0, y0 = layer[0].tolist()
    xe, ye = layer[entry].tolist()
    return (
        _PREAMBLE
        + _vector("xCoords", layer[:, 0].tolist())
        + _vector("yCoords", layer[:, 1].tolist())
        + "plot(xCoords, yCoords, 'r-');\n"
        + "hold on\n"
        + f"plot({x0}, {y0}, 'bo');\n"
        + f"plot({xe}, {ye}, 'go');\n"
        + f"title('Layer {layer_index}')\n"
        + "axis equal;\n"
    )


def write_plots(
    directory: str | Path,
    curve: np.ndarray,
    pyramid: Pyramid,
    layer_height: float,
    layer_index: int = 0,
) -> list[Path]:
    """Write the three plot scripts into *directory*.

    Returns
    -------
    list[Path]
        Paths written, in the order curve, pyramid, layer.
    """
    directory = fs.ensure_dir(directory)
    scripts = (
        (CURVE_PLOT_NAME, curve_plot_script(curve)),
        (PYRAMID_PLOT_NAME, pyramid_plot_script(pyramid, layer_height)),
        (LAYER_PLOT_NAME, layer_plot_script(pyramid, layer_index)),
    )
    paths = []
    for name, text in scripts:
        path = directory / name
        fs.atomic_write_text(path, text)
        logger.info("Wrote %s (%.1f kB)", path, len(text) / 1024)
        paths.append(path)
    return paths
