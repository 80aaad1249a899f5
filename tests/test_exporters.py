"""Tests for CSV/PDF exports in exporters.py"""

from cdfa_core import compute_glide_path
from exporters import dme_csv, report_pdf, rod_csv, rod_frame
from profile_plot import ProfileChart

EXAMPLE_FIXES = [(5000, 12.0), (4000, 8.3), (3400, 6.1), (2360, 2.8)]


def example_result():
    return compute_glide_path(EXAMPLE_FIXES, 1200, 1.0, 1800, 4.0, start_altitude=5000, runway_id="RWY27")


class TestCsv:
    """Tests for the CSV exporters."""

    def test_dme_csv(self):
        lines = dme_csv(example_result()).decode("utf-8").splitlines()
        assert lines[0] == "DME (NM),Altitude (ft)"
        assert lines[1] == "12.0,5000"
        assert lines[2].startswith("11.0,")
        assert len(lines) == 1 + 8

    def test_rod_csv_groundspeeds_across(self):
        lines = rod_csv(example_result()).decode("utf-8").splitlines()
        assert lines[0] == "GS (kts),80,100,120,140,160"
        assert lines[1].startswith("ROD (ft/min),")
        assert lines[2] == "FAF->MAPt Time,03:00,02:24,02:00,01:43,01:30"

    def test_rod_frame_shape(self):
        rod = rod_frame(example_result())
        assert rod.shape == (2, 5)


class TestPdf:
    """Tests for the PDF report."""

    def test_report_is_pdf(self):
        data = report_pdf(example_result())
        assert data.startswith(b"%PDF")

    def test_report_with_chart(self):
        result = example_result()
        chart = ProfileChart()
        chart.draw(result)
        png = chart.to_png()
        chart.close()
        with_chart = report_pdf(result, png)
        assert with_chart.startswith(b"%PDF")
        assert len(with_chart) > len(report_pdf(result))
