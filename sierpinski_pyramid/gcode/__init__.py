"""
G-code generation module.

Turns a generated pyramid into a printable program: print-time estimate,
M73 progress updates, border, continuous layer path and filament change.
"""

from sierpinski_pyramid.gcode.generator import GCodeError, GCodeGenerator
from sierpinski_pyramid.gcode.progress import (
    PrintTimeEstimate,
    ProgressTracker,
    estimate_print_time,
    output_filename,
)

__all__ = [
    "GCodeError",
    "GCodeGenerator",
    "PrintTimeEstimate",
    "ProgressTracker",
    "estimate_print_time",
    "output_filename",
]
