"""Tests for approach chart field matching in chart_parser.py"""

import pytest

from chart_parser import ChartParser, parsed_fields

CHART_TEXT = """VOR RWY 27
GP 3.00°
MDA 1800 ft
FAF D6.0 2500ft
THR ELEV 120
DME at THR 0.8
MAPt D1.2 NM
SDF1 D4.5 1900 ft
SDF2 D3.0 1400 ft
"""


@pytest.fixture
def parser():
    return ChartParser()


class TestParseText:
    """Tests for ChartParser.parse_text."""

    def test_extracts_core_fields(self, parser):
        out = parser.parse_text(CHART_TEXT)
        assert out["mda_ft"] == 1800
        assert out["gp_angle"] == pytest.approx(3.0)
        assert out["faf_dme_nm"] == pytest.approx(6.0)
        assert out["faf_alt_ft"] == 2500
        assert out["thr_elev_ft"] == 120
        assert out["dme_thr_nm"] == pytest.approx(0.8)
        assert out["mapt_dme_nm"] == pytest.approx(1.2)

    def test_faf_mapt_from_dme_difference(self, parser):
        """Without an explicit leg length, FAF-MAPt comes from the two DMEs."""
        out = parser.parse_text(CHART_TEXT)
        assert out["faf_mapt_nm"] == pytest.approx(4.8)

    def test_explicit_faf_mapt_is_not_mapt_dme(self, parser):
        out = parser.parse_text("FAF D6.0 2500ft FAF to MAPt 5.2 NM MAPt D1.2")
        assert out["faf_mapt_nm"] == pytest.approx(5.2)
        assert out["mapt_dme_nm"] == pytest.approx(1.2)

    def test_sdfs(self, parser):
        out = parser.parse_text(CHART_TEXT)
        assert out["sdfs"] == [{"alt": 1900, "dme": 4.5}, {"alt": 1400, "dme": 3.0}]

    def test_bare_angle_fallback(self, parser):
        """A lone x.x° figure is taken as the GP angle."""
        out = parser.parse_text("descent 3.5° to MDA 1240")
        assert out["gp_angle"] == pytest.approx(3.5)
        assert out["mda_ft"] == 1240

    def test_fields_only_when_matched(self, parser):
        """Unmatched fields are absent, never defaulted."""
        out = parser.parse_text("Hello world")
        assert parsed_fields(out) == {}
        assert out["snippet"] == "Hello world"

    def test_empty_text(self, parser):
        assert parser.parse_text("") == {}

    def test_snippet_truncated(self, parser):
        out = parser.parse_text("x" * 1500)
        assert out["snippet"].endswith("...")
        assert len(out["snippet"]) == 1003


class TestParse:
    """Tests for ChartParser.parse on raw bytes."""

    def test_unreadable_bytes_degrade(self, parser):
        """A corrupted file yields a parse_error, not an exception."""
        out = parser.parse(b"not a pdf")
        assert "parse_error" in out
        assert parsed_fields(out) == {}

    def test_reports_backend(self, parser, monkeypatch):
        monkeypatch.setattr(parser, "_text_pdfplumber", lambda b: "MDA 1800 ft")
        out = parser.parse(b"%PDF-fake")
        assert out["source"] == "pdfplumber"
        assert out["mda_ft"] == 1800

    def test_falls_back_to_next_backend(self, parser, monkeypatch):
        monkeypatch.setattr(parser, "_text_pdfplumber", lambda b: "")
        monkeypatch.setattr(parser, "_text_pymupdf", lambda b: "THR ELEV 55")
        out = parser.parse(b"%PDF-fake")
        assert out["source"] == "pymupdf"
        assert out["thr_elev_ft"] == 55
