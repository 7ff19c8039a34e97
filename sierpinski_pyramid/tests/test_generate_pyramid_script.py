"""End-to-end tests for the generate_pyramid command-line script."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from sierpinski_pyramid.scripts.generate_pyramid import build_parser, main
from sierpinski_pyramid.utils import fs
from sierpinski_pyramid.utils.logging_config import pop_context


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    pop_context()


def _run(tmp_path: Path, *extra: str) -> int:
    return main(["--level", "2", "--output-dir", str(tmp_path), *extra])


class TestParser:
    def test_defaults(self) -> None:
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.level is None
        assert args.plot_layer == 0
        assert not args.dry_run
        assert args.log_level == "INFO"


class TestGenerate:
    def test_writes_gcode_and_manifest(self, tmp_path: Path) -> None:
        assert _run(tmp_path) == 0
        gcode_files = list(tmp_path.glob("SierpinskiPyramid_*.gcode"))
        assert len(gcode_files) == 1
        assert "M600" in gcode_files[0].read_text()

        manifest = fs.load_yaml(gcode_files[0].with_suffix(".yaml"))
        assert manifest["gcode"] == gcode_files[0].name
        assert manifest["pyramid"]["level"] == 2
        assert manifest["pyramid"]["layers"] == 12
        assert manifest["pyramid"]["side_length_steps"] == 4
        assert manifest["profile"]["schema"] == "print_profile.v1"

    def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        out = tmp_path / "out"
        assert main(["--level", "2", "--output-dir", str(out), "--dry-run"]) == 0
        assert not out.exists()

    def test_single_colour(self, tmp_path: Path) -> None:
        assert _run(tmp_path, "--no-filament-change") == 0
        gcode = next(tmp_path.glob("*.gcode")).read_text()
        assert "M600" not in gcode
        manifest = fs.load_yaml(next(tmp_path.glob("*.yaml")))
        assert manifest["time_minutes"]["until_filament_change"] is None

    def test_plots(self, tmp_path: Path) -> None:
        assert _run(tmp_path, "--plots", "--plot-layer", "3") == 0
        assert len(list(tmp_path.glob("*.m"))) == 3

    def test_log_file_is_json(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "run.jsonl"
        assert _run(tmp_path, "--log-file", str(log_file)) == 0
        assert log_file.read_text().startswith('{"t": ')


class TestFailures:
    def test_missing_config(self, tmp_path: Path) -> None:
        assert _run(tmp_path, "--config", str(tmp_path / "absent.yaml")) == 1

    def test_pyramid_too_large_for_bed(self, tmp_path: Path) -> None:
        assert main(["--level", "9", "--output-dir", str(tmp_path)]) == 1
        assert not list(tmp_path.glob("*.gcode"))

    @pytest.mark.parametrize("layer", ["12", "40", "-1"])
    def test_plot_layer_out_of_range(self, tmp_path: Path, layer: str) -> None:
        assert _run(tmp_path, "--plots", "--plot-layer", layer) == 1
        assert not list(tmp_path.glob("*.gcode"))
        assert not list(tmp_path.glob("*.yaml"))
        assert not list(tmp_path.glob("*.m"))

    def test_plot_layer_ignored_without_plots(self, tmp_path: Path) -> None:
        assert _run(tmp_path, "--plot-layer", "40") == 0
        assert len(list(tmp_path.glob("*.gcode"))) == 1
