"""CSV and PDF exports built straight from a GlidePathResult."""

from __future__ import annotations

from io import BytesIO
from typing import Optional

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos

from cdfa_core import GlidePathResult, summary


def dme_csv(result: GlidePathResult) -> bytes:
    df = result.dme_dataframe()
    df["DME (NM)"] = df["DME (NM)"].map(lambda d: f"{d:.1f}")
    return df.to_csv(index=False).encode("utf-8")


def rod_frame(result: GlidePathResult) -> pd.DataFrame:
    """Groundspeeds across, ROD and time down, as the printed planner tables read."""
    rod = result.rod_dataframe().set_index("GS (kt)").T
    rod.columns = [str(c) for c in rod.columns]
    rod.index.name = "GS (kts)"
    return rod


def rod_csv(result: GlidePathResult) -> bytes:
    return rod_frame(result).to_csv().encode("utf-8")


def _line(pdf: FPDF, h: float, text: str) -> None:
    pdf.cell(0, h, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _table(pdf: FPDF, header, rows, col_w: float = 28.0) -> None:
    pdf.set_font("Helvetica", "B", 10)
    for h in header:
        pdf.cell(col_w, 7, str(h), border=1, align="C")
    pdf.ln(7)
    pdf.set_font("Helvetica", "", 10)
    for row in rows:
        for v in row:
            pdf.cell(col_w, 7, str(v), border=1, align="C")
        pdf.ln(7)


def report_pdf(result: GlidePathResult, chart_png: Optional[bytes] = None) -> bytes:
    info = summary(result)
    title = f"CDFA Descent Planning Report {info['runway']}".strip()

    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 14)
    _line(pdf, 10, title)
    pdf.set_font("Helvetica", "", 11)
    _line(pdf, 7, f"GP Angle: {info['gp_angle_deg']:.2f}°   Gradient: {info['gp_percent']:.2f}%   "
                  f"{info['ft_per_nm']} ft/NM")
    _line(pdf, 7, f"FAF: {info['faf_dme_nm']:.1f} NM at {info['faf_alt_ft']:.0f} ft   "
                  f"MDA: {result.params.minimum_descent_altitude:.0f} ft   "
                  f"FAF-MAPt: {result.params.faf_to_mapt_distance:.2f} NM")
    if result.params.start_altitude is not None:
        _line(pdf, 7, f"Start altitude: {result.params.start_altitude:.0f} ft")

    pdf.ln(3)
    pdf.set_font("Helvetica", "B", 12)
    _line(pdf, 8, "DME Table")
    _table(pdf, ["DIST (NM)", "ALT (ft)"],
           [(f"{c.distance:.1f}", c.altitude) for c in result.checkpoints])

    pdf.ln(3)
    pdf.set_font("Helvetica", "B", 12)
    _line(pdf, 8, "ROD Table")
    rod = rod_frame(result)
    _table(pdf, ["GS (kts)"] + list(rod.columns),
           [[idx] + list(row) for idx, row in zip(rod.index, rod.values.tolist())], col_w=30.0)

    if chart_png:
        pdf.ln(4)
        pdf.image(BytesIO(chart_png), w=pdf.epw)

    pdf.ln(2)
    pdf.set_font("Helvetica", "I", 8)
    pdf.multi_cell(0, 5, "Planner output only. Always cross-check with official charts and AIP.")
    return bytes(pdf.output())
