"""
Sierpinski Pyramid Package.

Generates a Sierpinski pyramid as one continuous 3D-printer toolpath: every
layer is a single closed space-filling curve, and consecutive layers are
joined so the nozzle never lifts.

Subpackages:
    geometry: Lattice curves, quadrant primitives, pyramid layer stacks
    configs: Print profile loading and validation
    gcode: Print-time estimate, progress display, G-code emission
    export: MATLAB/Octave plot scripts for inspecting the geometry
    utils: Atomic file writes, YAML helpers, logging setup
"""

__version__ = "0.1.0"

__all__ = ["geometry", "configs", "gcode", "export", "utils"]
