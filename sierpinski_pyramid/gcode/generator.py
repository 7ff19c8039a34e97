"""G-code generator -- pyramid layers to one continuous print.

Program layout::

    header      machine limits, heat up, home + mesh level, intro line
    border      square around the print area, primes the nozzle
    layers      every curve vertex as ``G1 X Y E``; between layers a
                ``G1 Z E`` ramp so the path never breaks
    [change]    optional filament change after layer 0 (``M600``)
    footer      raise, cool down, park

Coordinate convention:
    Layer points are centred on the origin; this module adds the bed
    centre from the profile.  Every extruding move is checked against the
    bed size, so a profile that places the pyramid off the bed fails here
    rather than on the printer.

Extrusion convention:
    Relative extrusion (``M83``).  ``E = extrusion.rate_per_mm * distance``
    for each move; the layer ramp extrudes ``rate_per_mm * layer_height``.
"""

from __future__ import annotations

import logging
import math
from io import StringIO

from sierpinski_pyramid.configs.loader import PrintProfile
from sierpinski_pyramid.gcode.progress import (
    PrintTimeEstimate,
    ProgressTracker,
    estimate_print_time,
    format_m73,
)
from sierpinski_pyramid.geometry.pyramid import Pyramid

logger = logging.getLogger(__name__)


class GCodeError(Exception):
    """Raised when G-code generation fails due to invalid input."""

    pass


# Prusa MK3S start sequence, independent of the profile.
_MACHINE_LIMITS = (
    "M201 X9000 Y9000 Z500 E10000 ; sets maximum accelerations, mm/sec^2",
    "M203 X500 Y500 Z12 E120 ; sets maximum feedrates, mm/sec",
    "M204 P1500 R1500 T1500 ; sets acceleration (P, T) and retract acceleration (R), mm/sec^2",
    "M205 X10.00 Y10.00 Z0.20 E2.50 ; sets the jerk limits, mm/sec",
    "M205 S0 T0 ; sets the minimum extruding and travel feed rate, mm/sec",
    "M107",
    "M115 U3.3.1 ; tell printer latest fw version",
    "M201 X1000 Y1000 Z1000 E9000 ; sets maximum accelerations, mm/sec^2",
    "M203 X200 Y200 Z12 E120 ; sets maximum feedrates, mm/sec",
    "M204 S1250 T1250 ; sets acceleration (S) and retract acceleration (T)",
    "M205 X8 Y8 Z0.4 E1.5 ; sets the jerk limits, mm/sec",
    "M205 S0 T0 ; sets the minimum extruding and travel feed rate, mm/sec",
    "M83  ; extruder relative mode",
)

_INTRO_LINE = (
    "G92 E0.0",
    "G1 X60.0 E9.0  F1000.0 ; intro line",
    "G1 X100.0 E12.5  F1000.0 ; intro line",
)

# (dx, dy, e) relative to where the first layer ends
_WIPE_MOVES = (
    (-0.603, -0.603, -0.19691),
    (-1.143, -0.603, -0.12474),
    (-0.17, 0.37, -0.31790),
    (-0.17, 0.892, -0.12046),
)

_TRAVEL_FEED_Z = 10800.0
_PARK_Z = 210.0
_FILAMENT_CHANGE_Z = 10.0


class GCodeGenerator:
    """Convert a ``Pyramid`` into a complete G-code program.

    Parameters
    ----------
    profile : PrintProfile
        Validated print profile.
    """

    def __init__(self, profile: PrintProfile) -> None:
        self._profile = profile
        self._layer_height = profile.pyramid.layer_height_mm
        self._x = 0.0
        self._y = 0.0
        self._steps = 0
        self._progress = ProgressTracker(0.0)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self, pyramid: Pyramid, estimate: PrintTimeEstimate | None = None,
    ) -> str:
        """Generate the full program for *pyramid*.

        Parameters
        ----------
        pyramid : Pyramid
            Layers to print, bottom first, centred on the origin (mm).
        estimate : PrintTimeEstimate, optional
            Reuse an existing estimate; computed from the profile otherwise.

        Returns
        -------
        str
            Complete G-code program.

        Raises
        ------
        GCodeError
            If the pyramid is empty, too short for a filament change, or
            any extruding move leaves the bed.
        """
        if pyramid.total_layers == 0:
            raise GCodeError("Cannot generate G-code for an empty pyramid")
        if self._profile.filament_change.enabled and pyramid.total_layers < 2:
            raise GCodeError("Filament change needs at least two layers")

        if estimate is None:
            estimate = estimate_print_time(pyramid, self._profile)

        self._steps = 0
        self._progress = ProgressTracker(estimate.total_minutes)

        buf = StringIO()
        self._write_header(buf, pyramid, estimate)
        self._write_border(buf, pyramid)
        self._write_approach(buf, pyramid, estimate)
        self._write_layers(buf, pyramid, estimate)
        self._write_footer(buf, pyramid)

        logger.info(
            "Generated G-code: %d layers, %d extruding moves, ~%d min",
            pyramid.total_layers, self._steps, estimate.rounded_minutes,
        )
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _write_header(
        self, buf: StringIO, pyramid: Pyramid, estimate: PrintTimeEstimate,
    ) -> None:
        p = self._profile
        timing = p.timing
        buf.write("; Generated by sierpinski_pyramid G-code generator\n")
        buf.write(
            f"; side {pyramid.side_length} steps, {pyramid.total_layers} layers, "
            f"grid step {p.pyramid.grid_step_mm:.3f} mm, "
            f"layer height {self._layer_height:.3f} mm\n"
        )
        buf.write(f"; filament extrusion rate = {p.extrusion.rate_per_mm}\n")
        buf.write("\n")
        for line in _MACHINE_LIMITS:
            buf.write(line + "\n")
        buf.write(f"M104 S{p.temperatures.nozzle_c} ; set extruder temp\n")
        buf.write(f"M140 S{p.temperatures.bed_c} ; set bed temp\n")
        buf.write(f"M190 S{p.temperatures.bed_c} ; wait for bed temp\n")
        buf.write(f"M109 S{p.temperatures.nozzle_c} ; wait for extruder temp\n")
        buf.write(format_m73(0, estimate.rounded_minutes, annotate=True))
        buf.write("G28 W ; home all without mesh bed level\n")
        buf.write("G80 ; mesh bed leveling\n")
        buf.write(self._progress.update(timing.home_and_calibrate_minutes, force=True, annotate=True))

        buf.write("G1 Y-3.0 F1000.0 ; go outside print area\n")
        for line in _INTRO_LINE:
            buf.write(line + "\n")
        buf.write(self._progress.update(
            timing.home_and_calibrate_minutes + timing.intro_line_minutes,
            force=True, annotate=True,
        ))
        buf.write("G92 E0.0\n")
        buf.write("M221 S95\n")
        buf.write("M900 K30 ; filament gcode\n")
        buf.write("G21 ; set units to millimeters\n")
        buf.write("G90 ; use absolute coordinates\n")
        buf.write("M83 ; use relative distances for extrusion\n")
        buf.write("G92 E0.0\n")
        buf.write("\n")
        self._write_retract_and_lift(buf, self._profile.extrusion.lift_z_mm)

    def _write_border(self, buf: StringIO, pyramid: Pyramid) -> None:
        p = self._profile
        half = 0.5 * pyramid.side_length * p.pyramid.grid_step_mm + p.bed.border_padding_mm
        cx = p.bed.center_x_mm
        cy = p.bed.center_y_mm

        self._travel_to(buf, cx, cy - half, "go to extrusion start position")
        self._write_lower_and_prime(buf, "bring tip back down to first layer")

        buf.write("; Draw border\n")
        for bx, by in (
            (cx + half, cy - half),
            (cx + half, cy + half),
            (cx - half, cy + half),
            (cx - half, cy - half),
            (cx, cy - half),
        ):
            self._extrude_to(buf, bx, by)
        self._write_retract_and_lift(buf, p.extrusion.lift_z_mm)

    def _write_approach(
        self, buf: StringIO, pyramid: Pyramid, estimate: PrintTimeEstimate,
    ) -> None:
        x0, y0 = pyramid.layers[0][0]
        self._travel_to(buf, *self._to_bed(x0, y0))
        self._write_lower_and_prime(buf, "bring tip back down to first layer")
        buf.write(self._progress.update(self._pattern_start_minutes(estimate), force=True, annotate=True))
        buf.write("; PURGING FINISHED\n")
        buf.write("\n")
        buf.write(
            f"; pattern centre = ({self._profile.bed.center_x_mm}, "
            f"{self._profile.bed.center_y_mm})\n"
        )
        buf.write("\n")
        buf.write("; Sierpinski pyramid pattern\n")

    def _write_layers(
        self, buf: StringIO, pyramid: Pyramid, estimate: PrintTimeEstimate,
    ) -> None:
        p = self._profile
        h = self._layer_height
        change = p.filament_change.enabled
        start = self._pattern_start_minutes(estimate)
        steps_per_minute = p.timing.steps_per_minute
        intro = p.timing.intro_line_minutes

        for layer_number, layer in enumerate(pyramid.layers):
            if layer_number > 0:
                buf.write("M106 S255 ; turn on the fan\n")
            extra = intro if change and layer_number > 0 else 0.0

            for vertex, (x, y) in enumerate(layer.tolist()):
                if vertex == 0:
                    if layer_number == 0 or (change and layer_number == 1):
                        # already standing on this vertex
                        continue
                    # climb to the next layer while extruding
                    buf.write(f"G1 Z{(layer_number + 1) * h:.3f} E{p.extrusion.rate_per_mm * h:.5f}\n")

                self._extrude_to(buf, *self._to_bed(x, y))
                self._steps += 1
                buf.write(self._progress.update(start + self._steps / steps_per_minute + extra))

            if change and layer_number == 0:
                self._write_filament_change(buf, pyramid, start)

    def _write_filament_change(self, buf: StringIO, pyramid: Pyramid, start: float) -> None:
        p = self._profile
        h = self._layer_height
        first, second = pyramid.layers[0], pyramid.layers[1]

        # re-trace the start of layer 0 so the seam is covered
        for x, y in first[: p.filament_change.first_layer_extra_steps].tolist():
            self._extrude_to(buf, *self._to_bed(x, y))

        buf.write(f"G1 Z{2 * h:.3f}\n")
        buf.write("; retracting extruder\n")
        for dx, dy, e in _WIPE_MOVES:
            buf.write("G1 F8640 ;_WIPE\n")
            buf.write(f"G1 X{self._x + dx:.3f} Y{self._y + dy:.3f} E{e:.5f}\n")
        buf.write(f"G1 E-0.04000 F{p.extrusion.retract_feed_mm_min:.5f}\n")
        buf.write(f"G1 Z{_FILAMENT_CHANGE_Z:.3f}\n")

        elapsed = start + self._steps / p.timing.steps_per_minute
        buf.write(self._progress.update(elapsed, force=True))
        buf.write("M600\n")

        # second intro line, 3 mm in front of the first one
        buf.write("G28 W ; home all without mesh bed level\n")
        buf.write("G1 Y0.0 F1000.0 ; go outside print area\n")
        buf.write(f"G1 E{p.extrusion.retract_mm:.5f} F{p.extrusion.retract_feed_mm_min:.5f} ; ready filament\n")
        for line in _INTRO_LINE:
            buf.write(line + "\n")
        buf.write("G92 E0.0\n")
        self._write_retract_and_lift(buf, p.extrusion.lift_z_mm + h)

        x1, y1 = second[0]
        self._travel_to(buf, *self._to_bed(x1, y1))
        self._write_lower_and_prime(buf, "second layer", z=2 * h)
        buf.write(self._progress.update(elapsed + p.timing.intro_line_minutes, force=True))

    def _write_footer(self, buf: StringIO, pyramid: Pyramid) -> None:
        p = self._profile
        top = round((pyramid.total_layers + 1) * self._layer_height, 3)
        buf.write(f"G1 Z{top:.3f}\n")
        buf.write(
            f"G1 E-{p.extrusion.retract_mm:.5f} F{p.extrusion.retract_feed_mm_min:.5f} ; retract filament\n"
        )
        buf.write(f"G1 Z{top + 10:.3f} F{_TRAVEL_FEED_Z:.3f} ; lift tip up 10 more mm\n")
        buf.write("\n")
        buf.write(format_m73(100, 0, annotate=True))
        buf.write("\n")
        buf.write("; Filament-specific end gcode\n")
        buf.write("M221 S100\n")
        buf.write("M104 S0 ; turn off temperature\n")
        buf.write("M140 S0 ; turn off heatbed\n")
        buf.write("M107 ; turn off fan\n")
        buf.write(f"G1 Z{_PARK_Z:.0f} ; move print head up to the top\n")
        buf.write("G1 X0 Y200 ; home X axis\n")
        buf.write("M84 ; disable motors\n")

    # ------------------------------------------------------------------
    # Move helpers
    # ------------------------------------------------------------------

    def _pattern_start_minutes(self, estimate: PrintTimeEstimate) -> float:
        timing = self._profile.timing
        return (
            timing.home_and_calibrate_minutes
            + timing.intro_line_minutes
            + estimate.border_minutes
        )

    def _to_bed(self, x: float, y: float) -> tuple[float, float]:
        return x + self._profile.bed.center_x_mm, y + self._profile.bed.center_y_mm

    def _travel_to(self, buf: StringIO, x: float, y: float, comment: str = "") -> None:
        self._validate_xy(x, y)
        suffix = f" ; {comment}" if comment else ""
        buf.write(f"G1 X{x:.3f} Y{y:.3f}{suffix}\n")
        self._x, self._y = x, y

    def _extrude_to(self, buf: StringIO, x: float, y: float) -> None:
        self._validate_xy(x, y)
        distance = math.hypot(x - self._x, y - self._y)
        e = self._profile.extrusion.rate_per_mm * distance
        buf.write(f"G1 X{x:.3f} Y{y:.3f} E{e:.5f}\n")
        self._x, self._y = x, y

    def _write_retract_and_lift(self, buf: StringIO, z: float) -> None:
        ext = self._profile.extrusion
        buf.write(f"G1 E-{ext.retract_mm:.5f} F{ext.retract_feed_mm_min:.5f} ; retract filament\n")
        buf.write(f"G1 Z{z:.3f} F{_TRAVEL_FEED_Z:.3f} ; lift tip up\n")

    def _write_lower_and_prime(self, buf: StringIO, comment: str, z: float | None = None) -> None:
        ext = self._profile.extrusion
        z = self._layer_height if z is None else z
        buf.write(f"G1 Z{z:.3f} ; {comment}\n")
        buf.write(f"G1 E{ext.retract_mm:.5f} F{ext.retract_feed_mm_min:.5f} ; ready filament\n")
        buf.write("M204 S1000\n")
        buf.write(f"G1 F{ext.print_feed_mm_min:.3f} ; restore print feed rate\n")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_xy(self, x: float, y: float) -> None:
        """Reject positions outside the printable bed.

        Raises
        ------
        GCodeError
            If either coordinate is out of bounds.
        """
        bed = self._profile.bed
        if x < 0 or x > bed.width_mm:
            raise GCodeError(f"X={x:.3f} mm outside bed [0, {bed.width_mm:.1f}]")
        if y < 0 or y > bed.depth_mm:
            raise GCodeError(f"Y={y:.3f} mm outside bed [0, {bed.depth_mm:.1f}]")
