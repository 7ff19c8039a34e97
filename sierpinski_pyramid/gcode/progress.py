"""Print-time estimate and ``M73`` progress display.

The estimate is deliberately simple: every curve vertex is one "step" of
roughly constant duration (``timing.steps_per_second``, measured on the
printer), plus fixed allowances for homing, the intro line(s) and the
border square.  That is accurate enough for the printer's progress display
and for the time stamp baked into the output filename.

Prusa firmware reads two progress lines: ``M73 Q.. S..`` (silent mode)
and ``M73 P.. R..`` (normal mode).  Both are always written together.
"""

from __future__ import annotations

from dataclasses import dataclass

from sierpinski_pyramid.configs.loader import PrintProfile
from sierpinski_pyramid.geometry.pyramid import Pyramid


@dataclass(frozen=True)
class PrintTimeEstimate:
    """Minutes spent in each phase of the print."""

    curve_minutes: float
    border_minutes: float
    total_minutes: float
    minutes_until_filament_change: float

    @property
    def rounded_minutes(self) -> int:
        return int(round(self.total_minutes))

    @property
    def hours_minutes(self) -> tuple[int, int]:
        """Rounded total split as ``(hours, minutes)``."""
        return divmod(self.rounded_minutes, 60)


def curve_steps(pyramid: Pyramid) -> int:
    """Vertices printed across all layers, counting each layer change."""
    return sum(len(layer) + 1 for layer in pyramid.layers)


def border_length_mm(pyramid: Pyramid, profile: PrintProfile) -> float:
    """Perimeter of the border square drawn before the first layer."""
    side = pyramid.side_length * profile.pyramid.grid_step_mm
    return 4 * (side + 2 * profile.bed.border_padding_mm)


def estimate_print_time(pyramid: Pyramid, profile: PrintProfile) -> PrintTimeEstimate:
    """Estimate how long *pyramid* takes to print with *profile*."""
    timing = profile.timing
    fixed = timing.home_and_calibrate_minutes + timing.intro_line_minutes
    curve_minutes = curve_steps(pyramid) / timing.steps_per_minute
    border_minutes = border_length_mm(pyramid, profile) / profile.extrusion.print_feed_mm_min

    total = curve_minutes + border_minutes + fixed
    if profile.filament_change.enabled:
        total += timing.intro_line_minutes

    first_layer = len(pyramid.layers[0]) + 1 if pyramid.layers else 0
    until_change = first_layer / timing.steps_per_minute + border_minutes + fixed

    return PrintTimeEstimate(
        curve_minutes=curve_minutes,
        border_minutes=border_minutes,
        total_minutes=total,
        minutes_until_filament_change=until_change,
    )


def output_filename(profile: PrintProfile, estimate: PrintTimeEstimate) -> str:
    """File name carrying layer height, material, printer and duration.

    Example: ``SierpinskiPyramid_0.2mm_PLA_MK3S_5h41m.gcode``
    """
    hours, minutes = estimate.hours_minutes
    return (
        f"SierpinskiPyramid_{profile.pyramid.layer_height_mm:.1f}mm_"
        f"{profile.output.material}_{profile.output.printer}_"
        f"{hours}h{minutes}m.gcode"
    )


class ProgressTracker:
    """Emit ``M73`` lines whenever the displayed progress changes.

    Parameters
    ----------
    total_minutes : float
        Estimated duration of the whole print.
    """

    def __init__(self, total_minutes: float) -> None:
        self.total_minutes = total_minutes
        self.percent_done = 0
        self.minutes_remaining = int(round(total_minutes))

    def status(self, minutes_elapsed: float) -> tuple[int, int]:
        """Rounded ``(percent_done, minutes_remaining)`` at *minutes_elapsed*."""
        if self.total_minutes <= 0:
            return 100, 0
        remaining = int(round(self.total_minutes - minutes_elapsed))
        percent = int(round(100 * minutes_elapsed / self.total_minutes))
        return min(percent, 100), max(remaining, 0)

    def update(
        self, minutes_elapsed: float, *, force: bool = False, annotate: bool = False,
    ) -> str:
        """Return the ``M73`` pair for *minutes_elapsed*, or ``""`` if unchanged.

        ``force`` writes the pair even when nothing changed; ``annotate``
        adds a human-readable comment to each line.
        """
        percent, remaining = self.status(minutes_elapsed)
        if not force and (percent, remaining) == (self.percent_done, self.minutes_remaining):
            return ""
        self.percent_done = percent
        self.minutes_remaining = remaining
        return format_m73(percent, remaining, annotate=annotate)


def format_m73(percent: int, remaining: int, *, annotate: bool = False) -> str:
    """Both ``M73`` progress lines, newline-terminated."""
    comment = ""
    if annotate:
        comment = (
            f" ; updating progress display ({percent}% done, "
            f"{remaining} minutes remaining)"
        )
    return (
        f"M73 Q{percent} S{remaining}{comment}\n"
        f"M73 P{percent} R{remaining}{comment}\n"
    )
