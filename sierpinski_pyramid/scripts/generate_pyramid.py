#!/usr/bin/env python3
"""
Generate Pyramid Script.

Build a Sierpinski pyramid and write it out as a single G-code file, plus a
YAML manifest and (optionally) MATLAB/Octave plot scripts.

Usage:
    python -m sierpinski_pyramid.scripts.generate_pyramid
    python -m sierpinski_pyramid.scripts.generate_pyramid --level 5 --plots
    python -m sierpinski_pyramid.scripts.generate_pyramid --config my.yaml --dry-run
    sierpinski-pyramid --no-filament-change --output-dir /tmp/prints
"""

from __future__ import annotations

import argparse
import logging
import sys

from sierpinski_pyramid import __version__
from sierpinski_pyramid.configs.loader import ConfigError, PrintProfile, load_config
from sierpinski_pyramid.export.matlab import write_plots
from sierpinski_pyramid.gcode.generator import GCodeError, GCodeGenerator
from sierpinski_pyramid.gcode.progress import (
    PrintTimeEstimate,
    estimate_print_time,
    output_filename,
)
from sierpinski_pyramid.geometry.curve import CurveGenerator, GenerationError
from sierpinski_pyramid.geometry.pyramid import Pyramid, PyramidGenerator
from sierpinski_pyramid.utils import fs
from sierpinski_pyramid.utils.logging_config import push_context, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a Sierpinski pyramid as one continuous G-code toolpath",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Print profile YAML (default: shipped print_profile.yaml)",
    )
    parser.add_argument(
        "--level",
        "-l",
        type=int,
        help="Pyramid level, overrides pyramid.level",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        type=str,
        help="Output directory, overrides output.directory",
    )
    parser.add_argument(
        "--no-filament-change",
        action="store_true",
        help="Print in one colour (skip M600 after the first layer)",
    )
    parser.add_argument(
        "--plots",
        action="store_true",
        help="Also write MATLAB/Octave plot scripts",
    )
    parser.add_argument(
        "--plot-layer",
        type=int,
        default=0,
        help="Layer shown by the single-layer plot (default: 0)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate and report, but write nothing",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also log to this file (JSON lines)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_manifest(
    profile: PrintProfile,
    pyramid: Pyramid,
    estimate: PrintTimeEstimate,
    gcode_name: str,
) -> dict:
    """Job summary written next to the G-code."""
    return {
        "generator": f"sierpinski_pyramid {__version__}",
        "gcode": gcode_name,
        "pyramid": {
            "level": profile.pyramid.level,
            "side_length_steps": pyramid.side_length,
            "grid_size_mm": round(pyramid.side_length * profile.pyramid.grid_step_mm, 3),
            "layers": pyramid.total_layers,
            "layer_height_mm": round(profile.pyramid.layer_height_mm, 4),
            "points": pyramid.total_points,
        },
        "time_minutes": {
            "curve": round(estimate.curve_minutes, 2),
            "border": round(estimate.border_minutes, 2),
            "total": round(estimate.total_minutes, 2),
            "until_filament_change": (
                round(estimate.minutes_until_filament_change, 2)
                if profile.filament_change.enabled
                else None
            ),
        },
        "profile": profile.model_dump(by_alias=True),
    }


def run(args: argparse.Namespace) -> int:
    profile = load_config(args.config).with_overrides(
        level=args.level,
        filament_change=False if args.no_filament_change else None,
        output_dir=args.output_dir,
    )
    level = profile.pyramid.level
    push_context(level=level)

    curves = CurveGenerator()
    generator = PyramidGenerator(
        grid_step=profile.pyramid.grid_step_mm,
        layers_per_base=profile.pyramid.layers_per_base_pyramid,
        curves=curves,
    )
    pyramid = generator.get_pyramid(level)
    if args.plots and not 0 <= args.plot_layer < pyramid.total_layers:
        raise ConfigError(
            f"--plot-layer {args.plot_layer} out of range, "
            f"level {level} has layers 0..{pyramid.total_layers - 1}"
        )
    estimate = estimate_print_time(pyramid, profile)
    hours, minutes = estimate.hours_minutes

    logger.info(
        "Grid size (mm): %.3f, %d layers, %d points",
        pyramid.side_length * profile.pyramid.grid_step_mm,
        pyramid.total_layers,
        pyramid.total_points,
    )
    if profile.filament_change.enabled:
        logger.info(
            "Minutes until filament change: %.2f",
            estimate.minutes_until_filament_change,
        )
    logger.info("Estimated print time: %dh%02dm", hours, minutes)

    gcode = GCodeGenerator(profile).generate(pyramid, estimate)
    name = output_filename(profile, estimate)

    if args.dry_run:
        logger.info("Dry run: %s not written (%d lines)", name, gcode.count("\n"))
        return 0

    out_dir = fs.ensure_dir(profile.output.directory)
    gcode_path = out_dir / name
    fs.atomic_write_text(gcode_path, gcode)
    logger.info("Wrote %s", gcode_path)

    manifest_path = gcode_path.with_suffix(".yaml")
    fs.atomic_yaml_dump(build_manifest(profile, pyramid, estimate, name), manifest_path)
    logger.info("Wrote %s", manifest_path)

    if args.plots:
        write_plots(
            out_dir,
            curves.get_curve(level),
            pyramid,
            profile.pyramid.layer_height_mm,
            layer_index=args.plot_layer,
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json_format=args.log_file is not None,
        context={"app": "pyramid"},
    )

    try:
        return run(args)
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Configuration error: %s", e)
    except GenerationError as e:
        logger.error("Generation failed: %s", e)
    except GCodeError as e:
        logger.error("G-code generation failed: %s", e)
    return 1


if __name__ == "__main__":
    sys.exit(main())
