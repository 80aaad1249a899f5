"""
CDFA-PLANNER
- Optional approach chart upload: pdfplumber / PyMuPDF text, OCR fallback; parsed fields need confirmation
- SDF altitude/DME pairs -> least-squares glide path
- DME table (FAF, then whole-mile steps inbound, stops at MDA / threshold)
- ROD / time table per GS preset for the FAF->MAPt leg
- Profile plot, CSV and PDF export
"""

import logging
import traceback

import streamlit as st

from cdfa_core import (CDFAError, DEFAULT_GS_PRESET, compute_glide_path, estimate_faf_to_mapt_distance,
                       parse_sdf_text, run_sanity_checks)
from chart_parser import ChartParser, parsed_fields
from exporters import dme_csv, report_pdf, rod_csv
from profile_plot import ProfileChart

# =========================
# Developer toggle / config
# =========================
RUN_AUTO_TESTS = False  # If True, sanity checks are shown under the generated tables

if not logging.getLogger().hasHandlers():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

# Form defaults; confirmed chart values overwrite these in session state
FORM_DEFAULTS = {
    "rw_id": "",
    "thr_elev": 100.0,
    "dme_thr": 0.0,
    "mda": 1000.0,
    "start_alt": 0.0,
    "faf_mapt": 5.0,
    "sdf_text": "",
}
for key, value in FORM_DEFAULTS.items():
    st.session_state.setdefault(key, value)


def _apply_parsed():
    """Copy confirmed chart candidates into the form."""
    fields = st.session_state.get("parsed_chart", {})
    mapping = {"thr_elev_ft": "thr_elev", "dme_thr_nm": "dme_thr", "mda_ft": "mda",
               "faf_alt_ft": "start_alt", "faf_mapt_nm": "faf_mapt"}
    for src, dst in mapping.items():
        if src in fields:
            st.session_state[dst] = float(fields[src])
    if fields.get("sdfs"):
        st.session_state["sdf_text"] = "\n".join(f"{s['alt']},{s['dme']}" for s in fields["sdfs"])


# =========================
# Streamlit UI
# =========================
st.set_page_config(page_title="CDFA-PLANNER", layout="wide")
st.title("CDFA-PLANNER — DME & ROD Generator")

# Sidebar: upload & presets
st.sidebar.header("Upload & Presets")
uploaded = st.sidebar.file_uploader("Upload IAC / Approach Chart PDF (optional)", type=["pdf"])
gs_input = st.sidebar.text_input("ROD GS preset (comma-separated kts)", value=",".join(str(x) for x in DEFAULT_GS_PRESET))
show_checks = st.sidebar.checkbox("Show sanity checks (dev)", value=RUN_AUTO_TESTS)

if uploaded is not None and st.session_state.get("parsed_name") != uploaded.name:
    parsed = ChartParser().parse(uploaded.read())
    st.session_state["parsed_chart"] = parsed_fields(parsed)
    st.session_state["parsed_raw"] = parsed
    st.session_state["parsed_name"] = uploaded.name

if uploaded is not None:
    parsed = st.session_state.get("parsed_raw", {})
    fields = st.session_state.get("parsed_chart", {})
    with st.sidebar:
        if parsed.get("parse_error") or not fields:
            st.warning(parsed.get("parse_error") or "No fields recognised in the chart; please enter values manually.")
        else:
            st.success("Chart parsing attempted — verify parsed fields before using them")
            st.json(fields)
            st.button("Use parsed values", on_click=_apply_parsed)
        if parsed.get("snippet"):
            with st.expander("Extracted text"):
                st.text(parsed["snippet"])

# Main form
with st.form("main_form"):
    st.header("Approach Inputs")
    col1, col2, col3 = st.columns(3)
    with col1:
        rw_id = st.text_input("Runway / Procedure ID", key="rw_id")
        thr_elev = st.number_input("Threshold Elevation (ft)", step=1.0, key="thr_elev")
    with col2:
        dme_thr = st.number_input("DME at Threshold (NM)", step=0.1, key="dme_thr")
        mda = st.number_input("MDA (ft)", step=10.0, key="mda")
    with col3:
        start_alt = st.number_input("Start Altitude (ft) (optional, 0 = none)", step=10.0, key="start_alt")
        faf_mapt = st.number_input("Distance FAF to MAPt (NM)", step=0.1, format="%.2f", key="faf_mapt")

    st.markdown("**Step-Down Fixes / SDFs**")
    st.markdown("One fix per line in the format: `alt_ft,dme_nm` (at least two)")
    sdf_text = st.text_area("SDFs", key="sdf_text", height=160)

    submit = st.form_submit_button("Generate CDFA profile")

if submit:
    try:
        gs_list = [int(x.strip()) for x in gs_input.split(",") if x.strip()] or DEFAULT_GS_PRESET
        result = compute_glide_path(
            parse_sdf_text(sdf_text),
            threshold_elevation=thr_elev,
            dme_at_threshold=dme_thr,
            minimum_descent_altitude=mda,
            faf_to_mapt_distance=faf_mapt,
            start_altitude=start_alt if start_alt > 0 else None,
            runway_id=rw_id,
            gs_list=gs_list,
        )
        st.session_state["result"] = result
    except CDFAError as e:
        st.session_state.pop("result", None)
        st.error(str(e))
    except Exception as e:
        st.session_state.pop("result", None)
        st.error("Generation error: " + str(e))
        st.text(traceback.format_exc())

result = st.session_state.get("result")
if result is not None:
    for w in result.warnings:
        st.warning(w)

    m1, m2, m3 = st.columns(3)
    m1.metric("GP Angle", f"{result.fit.angle_degrees:.2f}°")
    m2.metric("Gradient", f"{result.fit.percent_grade:.2f}%")
    m3.metric("Descent gradient", f"{result.feet_per_nm} ft/NM")

    suggested = estimate_faf_to_mapt_distance(result.fit, result.faf, result.params.threshold_elevation,
                                              result.params.dme_at_threshold,
                                              result.params.minimum_descent_altitude)
    st.caption(f"Fitted path reaches MDA {suggested:.2f} NM after the FAF (50 ft TCH); "
               f"FAF-MAPt used: {result.params.faf_to_mapt_distance:.2f} NM")

    left, right = st.columns(2)
    with left:
        st.subheader(f"DME / Alt Table {result.params.runway_id}".strip())
        st.dataframe(result.dme_dataframe().style.format({"DME (NM)": "{:.1f}", "Altitude (ft)": "{:.0f}"}),
                     hide_index=True)
    with right:
        st.subheader("ROD Table — FAF -> MAPt")
        st.dataframe(result.rod_dataframe(), hide_index=True)

    chart = ProfileChart()
    fig = chart.draw(result)
    st.pyplot(fig)
    chart_png = chart.to_png()
    chart.close()

    if show_checks:
        st.subheader("Sanity checks")
        for name, passed, info in run_sanity_checks(result):
            if passed:
                st.success(f"✅ {name} — {info}")
            else:
                st.error(f"❌ {name} — {info}")

    proc = result.params.runway_id or "procedure"
    c1, c2, c3 = st.columns(3)
    with c1:
        st.download_button("Download DME CSV", data=dme_csv(result), file_name=f"dme_table_{proc}.csv", mime="text/csv")
    with c2:
        st.download_button("Download ROD CSV", data=rod_csv(result), file_name=f"rod_table_{proc}.csv", mime="text/csv")
    with c3:
        st.download_button("Download PDF report", data=report_pdf(result, chart_png),
                           file_name=f"cdfa_report_{proc}.pdf", mime="application/pdf")

# Footer
st.markdown("""
**Notes**
- This tool produces planner outputs. Always cross-check with official charts and AIP.
- Chart parsing is best-effort. Verify parsed fields and correct them before generating profiles.
- For OCR to work, ensure `tesseract-ocr` and `poppler-utils` are installed.
""")
