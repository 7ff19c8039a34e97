"""Visualization export (MATLAB/Octave plot scripts)."""

from sierpinski_pyramid.export.matlab import (
    curve_plot_script,
    layer_plot_script,
    pyramid_plot_script,
    write_plots,
)

__all__ = [
    "curve_plot_script",
    "layer_plot_script",
    "pyramid_plot_script",
    "write_plots",
]
