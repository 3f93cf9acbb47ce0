"""
Tests for QC figures.
"""

import matplotlib.pyplot as plt
from matplotlib.colors import to_hex
import numpy as np
import pytest

from quantmeta.viz import Figure, PALETTES, Palette, QCVisualizer
from quantmeta.viz.qc import fmt_num


@pytest.fixture
def viz():
    return QCVisualizer()


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


class TestPalette:

    def test_control_levels_are_gray(self):
        palette = Palette()
        colors = palette.for_groups(["naive", "IFNg", "TNF"])
        assert colors[0] == palette.control
        assert colors[1] == palette.treated
        assert colors[2] not in (palette.control, palette.treated)

    def test_named_palettes(self):
        assert QCVisualizer("colorblind").palette == PALETTES["colorblind"]
        assert QCVisualizer("unknown").palette == PALETTES["default"]


class TestFigure:

    def test_save_infers_format(self, tmp_path):
        figure = Figure(fig=plt.figure(), title="t", description="d")
        path = figure.save(tmp_path / "sub" / "plot.svg")
        assert path.exists()
        assert "created_at" in figure.metadata

    def test_unknown_extension_falls_back_to_png(self, tmp_path):
        figure = Figure(fig=plt.figure(), title="t", description="d")
        path = figure.save(tmp_path / "plot.out", dpi=50)
        assert path.read_bytes()[:4] == b"\x89PNG"


class TestQCVisualizer:

    def test_library_sizes(self, viz, small_experiment):
        figure = viz.plot_library_sizes(small_experiment, color_by="condition")
        assert figure.title == "Library sizes"
        assert figure.metadata["median"] == pytest.approx(np.median(small_experiment.assay("counts").sum(axis=0)))

    def test_library_sizes_median_line_uses_highlight(self, small_experiment):
        palette = PALETTES["colorblind"]
        figure = QCVisualizer(palette).plot_library_sizes(small_experiment)
        median_line = figure.fig.axes[0].lines[0]
        assert to_hex(median_line.get_color()) == to_hex(palette.highlight)

    def test_library_sizes_unknown_column(self, viz, small_experiment):
        with pytest.raises(KeyError, match="not in sample metadata"):
            viz.plot_library_sizes(small_experiment, color_by="batch")

    def test_sample_correlation(self, viz, small_experiment):
        figure = viz.plot_sample_correlation(small_experiment, annotate_by="line")
        # the constant transcript is excluded
        assert figure.metadata["n_features"] == 3

    def test_sample_correlation_two_samples(self, viz, small_experiment):
        two = small_experiment.select_samples(np.array([True, True, False, False]))
        figure = viz.plot_sample_correlation(two, assay="counts")
        assert figure.metadata["assay"] == "counts"

    def test_sample_correlation_single_sample(self, viz, small_experiment):
        one = small_experiment.select_samples(np.array([True, False, False, False]))
        with pytest.raises(ValueError, match="at least 2 samples"):
            viz.plot_sample_correlation(one)

    def test_mapping_rates(self, viz, small_experiment):
        se = small_experiment.with_metadata(quant_info={"SAMP1": {"percent_mapped": 91.5}})
        figure = viz.plot_mapping_rates(se)
        assert figure.metadata["missing"] == ["SAMP2", "SAMP3", "SAMP4"]

    def test_mapping_rates_missing(self, viz, small_experiment):
        with pytest.raises(ValueError, match="No mapping rates"):
            viz.plot_mapping_rates(small_experiment)


def test_fmt_num():
    assert fmt_num(12.34) == "12.3"
    assert fmt_num(12345) == "12,345"
    assert fmt_num(2.5e6) == "2.50e+06"
