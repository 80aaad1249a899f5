"""Tests for the descent profile chart in profile_plot.py"""

import matplotlib.pyplot as plt

from cdfa_core import compute_glide_path
from profile_plot import ProfileChart

EXAMPLE_FIXES = [(5000, 12.0), (4000, 8.3), (3400, 6.1), (2360, 2.8)]


def example_result():
    return compute_glide_path(EXAMPLE_FIXES, 1200, 1.0, 1800, 4.0, runway_id="RWY27")


class TestProfileChart:
    """Tests for the ProfileChart component."""

    def test_reversed_distance_axis(self):
        chart = ProfileChart()
        chart.draw(example_result())
        assert chart.ax.xaxis_inverted()
        chart.close()

    def test_series(self):
        """Ideal path, SDFs, MDA and threshold are all plotted."""
        chart = ProfileChart()
        chart.draw(example_result())
        labels = [t.get_text() for t in chart.ax.get_legend().get_texts()]
        assert any(l.startswith("Ideal Descent Path") for l in labels)
        assert "Step-Down Fixes (SDF)" in labels
        assert "MDA" in labels
        assert "Threshold" in labels
        chart.close()

    def test_path_matches_table(self):
        result = example_result()
        chart = ProfileChart()
        chart.draw(result)
        line = chart.ax.get_lines()[0]
        assert list(line.get_xdata()) == [c.distance for c in result.checkpoints]
        assert list(line.get_ydata()) == [c.altitude for c in result.checkpoints]
        chart.close()

    def test_redraw_closes_previous_figure(self):
        chart = ProfileChart()
        first = chart.draw(example_result())
        chart.draw(example_result())
        assert not plt.fignum_exists(first.number)
        chart.close()
        assert chart.fig is None

    def test_png_bytes(self):
        chart = ProfileChart()
        assert chart.to_png() is None
        chart.draw(example_result())
        assert chart.to_png().startswith(b"\x89PNG")
        chart.close()

    def test_start_altitude_line(self):
        """A supplied start altitude is drawn as a reference line."""
        result = compute_glide_path(EXAMPLE_FIXES, 1200, 1.0, 1800, 4.0, start_altitude=5200)
        chart = ProfileChart()
        chart.draw(result)
        labels = [t.get_text() for t in chart.ax.get_legend().get_texts()]
        assert "Start Altitude" in labels
        chart.close()

    def test_no_start_altitude_line_by_default(self):
        chart = ProfileChart()
        chart.draw(example_result())
        labels = [t.get_text() for t in chart.ax.get_legend().get_texts()]
        assert "Start Altitude" not in labels
        chart.close()
