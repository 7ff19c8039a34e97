"""Print profile loader.

Loads ``print_profile.yaml`` and validates it with pydantic into frozen
models.  Everything the G-code side needs (bed position, extrusion, feed
rates, timing constants, temperatures) comes from the profile; the
geometry only needs ``pyramid.grid_step_mm`` and
``pyramid.layers_per_base_pyramid``.

Feed rates here are **mm/min**, the unit of the G-code ``F`` word, because
the target firmware (Prusa MK3S / Marlin) is configured in those units.

Usage::

    from sierpinski_pyramid.configs.loader import load_config
    profile = load_config()                        # shipped default
    profile = load_config("/custom/profile.yaml")  # explicit path
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from sierpinski_pyramid.geometry.curve import MAX_LEVEL
from sierpinski_pyramid.utils.fs import load_yaml

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "print_profile.v1"

DEFAULT_PROFILE_PATH = Path(__file__).parent / "print_profile.yaml"


class ConfigError(Exception):
    """Raised when the print profile is missing or invalid."""

    pass


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PyramidSection(_Section):
    """Geometry parameters."""

    level: int = Field(7, ge=1, le=MAX_LEVEL, description="Pyramid level (side = 2**level steps)")
    grid_step_mm: float = Field(0.85, gt=0, description="Length of one lattice step (mm)")
    layers_per_base_pyramid: int = Field(6, ge=1, description="Layers in a level-1 pyramid")

    @property
    def grid_height_mm(self) -> float:
        """Height of the smallest pyramid (mm)."""
        return self.grid_step_mm * math.sqrt(2)

    @property
    def layer_height_mm(self) -> float:
        """Layer height; each smallest pyramid is a whole number of layers."""
        return self.grid_height_mm / self.layers_per_base_pyramid


class BedSection(_Section):
    """Print position on the bed (mm)."""

    center_x_mm: float = Field(125.0, description="X of the pyramid centre")
    center_y_mm: float = Field(105.0, description="Y of the pyramid centre")
    border_padding_mm: float = Field(5.0, ge=0, description="Gap between pyramid and border")
    width_mm: float = Field(250.0, gt=0, description="Printable X extent")
    depth_mm: float = Field(210.0, gt=0, description="Printable Y extent")

    @model_validator(mode='after')
    def validate_center_on_bed(self) -> 'BedSection':
        if not (0.0 < self.center_x_mm < self.width_mm):
            raise ValueError(
                f"center_x_mm ({self.center_x_mm}) must lie inside the bed [0, {self.width_mm}]"
            )
        if not (0.0 < self.center_y_mm < self.depth_mm):
            raise ValueError(
                f"center_y_mm ({self.center_y_mm}) must lie inside the bed [0, {self.depth_mm}]"
            )
        return self


class ExtrusionSection(_Section):
    """Extruder behaviour."""

    rate_per_mm: float = Field(0.032715, gt=0, description="Filament E units per mm travelled")
    print_feed_mm_min: float = Field(1200.0, gt=0, description="Printing feed rate (mm/min)")
    retract_mm: float = Field(0.8, ge=0, description="Retraction length")
    retract_feed_mm_min: float = Field(2100.0, gt=0, description="Retraction feed rate (mm/min)")
    lift_z_mm: float = Field(0.6, ge=0, description="Z while travelling with the tip lifted")


class TimingSection(_Section):
    """Constants for the print-time estimate."""

    steps_per_second: float = Field(58.69, gt=0, description="Curve vertices printed per second")
    home_and_calibrate_minutes: float = Field(0.5, ge=0)
    intro_line_minutes: float = Field(0.12, ge=0)

    @property
    def steps_per_minute(self) -> float:
        return 60 * self.steps_per_second


class TemperatureSection(_Section):
    nozzle_c: int = Field(215, ge=0, le=300)
    bed_c: int = Field(60, ge=0, le=120)


class FilamentChangeSection(_Section):
    """Optional colour change after the first layer."""

    enabled: bool = True
    first_layer_extra_steps: int = Field(3, ge=0, description="Vertices re-traced before the change")


class OutputSection(_Section):
    directory: str = "output"
    material: str = "PLA"
    printer: str = "MK3S"

    @field_validator('material', 'printer')
    @classmethod
    def validate_filename_safe(cls, v: str) -> str:
        if not v or any(c in v for c in '/\\ '):
            raise ValueError(f"must be a non-empty filename fragment, got {v!r}")
        return v


class PrintProfile(_Section):
    """Complete print profile (print_profile.v1 schema)."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    schema_version: str = Field(SCHEMA_VERSION, alias="schema")
    pyramid: PyramidSection = PyramidSection()
    bed: BedSection = BedSection()
    extrusion: ExtrusionSection = ExtrusionSection()
    timing: TimingSection = TimingSection()
    temperatures: TemperatureSection = TemperatureSection()
    filament_change: FilamentChangeSection = FilamentChangeSection()
    output: OutputSection = OutputSection()

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != SCHEMA_VERSION:
            raise ValueError(f"Expected schema '{SCHEMA_VERSION}', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_pyramid_fits_bed(self) -> 'PrintProfile':
        half = 0.5 * (1 << self.pyramid.level) * self.pyramid.grid_step_mm
        half += self.bed.border_padding_mm
        b = self.bed
        if (
            b.center_x_mm - half < 0 or b.center_x_mm + half > b.width_mm
            or b.center_y_mm - half < 0 or b.center_y_mm + half > b.depth_mm
        ):
            raise ValueError(
                f"Level {self.pyramid.level} pyramid with border "
                f"({2 * half:.1f} mm square) does not fit the "
                f"{b.width_mm} x {b.depth_mm} mm bed around "
                f"({b.center_x_mm}, {b.center_y_mm})"
            )
        return self

    def with_overrides(
        self,
        level: int | None = None,
        filament_change: bool | None = None,
        output_dir: str | None = None,
    ) -> 'PrintProfile':
        """Return a validated copy with command-line overrides applied."""
        data = self.model_dump(by_alias=True)
        if level is not None:
            data["pyramid"]["level"] = level
        if filament_change is not None:
            data["filament_change"]["enabled"] = filament_change
        if output_dir is not None:
            data["output"]["directory"] = output_dir
        try:
            return PrintProfile.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid profile override: {e}") from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PrintProfile:
    """Load and validate a print profile.

    Parameters
    ----------
    path : str | Path | None
        Path to a profile YAML.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    PrintProfile
        Validated, immutable profile.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigError
        If the file is empty or fails validation.
    """
    path = DEFAULT_PROFILE_PATH if path is None else Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Print profile not found: {path}")

    logger.info("Loading print profile from %s", path)
    data = load_yaml(path)
    if not data:
        raise ConfigError(f"Empty print profile: {path}")

    try:
        profile = PrintProfile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Print profile validation failed at {path}: {e}") from e

    logger.debug(
        "Profile: level=%d grid_step=%.3f mm layer_height=%.4f mm",
        profile.pyramid.level,
        profile.pyramid.grid_step_mm,
        profile.pyramid.layer_height_mm,
    )
    return profile
