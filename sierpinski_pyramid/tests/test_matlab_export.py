"""Tests for MATLAB/Octave plot script export."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from sierpinski_pyramid.export.matlab import (
    CURVE_PLOT_NAME,
    LAYER_PLOT_NAME,
    PYRAMID_PLOT_NAME,
    curve_plot_script,
    layer_plot_script,
    pyramid_plot_script,
    write_plots,
)
from sierpinski_pyramid.geometry.curve import CurveGenerator
from sierpinski_pyramid.geometry.pyramid import Pyramid, PyramidGenerator


@pytest.fixture()
def pyramid() -> Pyramid:
    return PyramidGenerator(grid_step=0.85, layers_per_base=6).get_pyramid(1)


def _vector(script: str, name: str) -> list[float]:
    line = next(l for l in script.splitlines() if l.startswith(f"{name} = ["))
    return [float(v) for v in line.split("[", 1)[1].rstrip("];").split()]


class TestScripts:
    def test_curve_coordinates(self) -> None:
        curve = CurveGenerator().get_curve(0)
        script = curve_plot_script(curve)
        assert _vector(script, "xCoords") == [-1, 0, 1, 0]
        assert _vector(script, "yCoords") == [0, -1, 0, 1]
        assert "plot(xCoords, yCoords" in script

    def test_preamble(self) -> None:
        script = curve_plot_script(CurveGenerator().get_curve(1))
        assert script.startswith("close all\nclear all\nclc\n")

    def test_pyramid_heights(self, pyramid: Pyramid) -> None:
        script = pyramid_plot_script(pyramid, layer_height=0.2)
        z = _vector(script, "zCoords")
        assert len(z) == pyramid.total_points
        assert z[0] == 0.0
        assert z[-1] == pytest.approx(0.2 * (pyramid.total_layers - 1))
        assert "plot3(" in script

    def test_layer_marks_entry(self, pyramid: Pyramid) -> None:
        script = layer_plot_script(pyramid, 0)
        xe, ye = pyramid.layers[0][pyramid.entry_offsets[0]].tolist()
        assert f"plot({xe}, {ye}, 'go');" in script
        assert "title('Layer 0')" in script
        np.testing.assert_allclose(_vector(script, "xCoords"), pyramid.layers[0][:, 0])

    @pytest.mark.parametrize("index", [-1, 6])
    def test_layer_out_of_range(self, pyramid: Pyramid, index: int) -> None:
        with pytest.raises(IndexError):
            layer_plot_script(pyramid, index)


class TestWritePlots:
    def test_writes_three_files(self, tmp_path: Path, pyramid: Pyramid) -> None:
        curve = CurveGenerator().get_curve(1)
        paths = write_plots(tmp_path / "plots", curve, pyramid, 0.2, layer_index=2)
        assert [p.name for p in paths] == [CURVE_PLOT_NAME, PYRAMID_PLOT_NAME, LAYER_PLOT_NAME]
        assert all(p.exists() for p in paths)
        assert "title('Layer 2')" in paths[2].read_text()

    def test_no_tmp_files_left(self, tmp_path: Path, pyramid: Pyramid) -> None:
        write_plots(tmp_path, CurveGenerator().get_curve(0), pyramid, 0.2)
        assert not list(tmp_path.glob(".*.part"))
