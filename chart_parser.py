# chart_parser.py
"""
Best-effort approach chart (IAC) scraper.

Text is pulled with pdfplumber, then PyMuPDF, then OCR (pdf2image + pytesseract) as a
last resort. Fields are matched with conservative regexes and returned only when found;
the result is a set of candidates the user must confirm before generating a profile.
"""

import logging
import re
from io import BytesIO
from typing import Dict, List, Tuple

import fitz
import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes
from PIL import ImageOps

SNIPPET_CHARS = 1000
MAX_SDFS = 6


class ChartParser:
    def __init__(self, ocr_dpi: int = 220, ocr_max_pages: int = 2):
        self.ocr_dpi = ocr_dpi
        self.ocr_max_pages = ocr_max_pages
        # Patterns are intentionally conservative; parser returns candidates for user confirmation
        self.re_mda = re.compile(r"\bMDA(?:\s*\(H\))?[\s:=]*([0-9]{3,5})", re.IGNORECASE)
        self.re_gp = re.compile(r"\b(?:Glide\s*Path|GP|GS|VPA)\b[\s:=]*([0-9]\.[0-9]{1,2})\s*[°º]", re.IGNORECASE)
        self.re_angle = re.compile(r"\b([2-4]\.[0-9]{1,2})\s*[°º]")
        self.re_faf_dme = re.compile(r"\bFAF\b[\s:=]*D?\s*([0-9]{1,2}\.[0-9])\s*(?:NM|DME)?", re.IGNORECASE)
        self.re_faf_alt = re.compile(r"\bFAF\b.{0,40}?\b([0-9]{3,5})\s*(?:ft\b|')", re.IGNORECASE)
        self.re_thr_elev = re.compile(r"\b(?:THR|Threshold)\s*(?:ELEV|Elevation)\b[\s:=]*(-?[0-9]{1,4})", re.IGNORECASE)
        self.re_tdze = re.compile(r"\bTDZE\b[\s:=]*(-?[0-9]{1,4})", re.IGNORECASE)
        self.re_dme_thr = re.compile(r"\bDME\s*(?:at\s*)?(?:THR|Threshold)\b[\s:=]*(-?[0-9]{1,2}(?:\.[0-9]{1,2})?)", re.IGNORECASE)
        self.re_mapt_dme = re.compile(r"\bMAPt?\b[\s:=]*(?:DME\s*|D\s?)?([0-9]{1,2}\.[0-9])\s*(?:NM|DME)?", re.IGNORECASE)
        self.re_faf_mapt = re.compile(r"\bFAF\s*(?:to|-|–)\s*MAPt?\b[\s:=]*([0-9]{1,2}\.[0-9]{1,2})\s*NM", re.IGNORECASE)
        self.re_sdf = re.compile(r"\bSDF\s*\d?\b[\s:=]*D?\s*([0-9]{1,2}\.[0-9])\s*(?:NM|DME)?[\s/,]*([0-9]{3,5})\s*(?:ft\b|')", re.IGNORECASE)
        self.re_dme_alt = re.compile(r"\bD\s?([0-9]{1,2}\.[0-9])\s*(?:NM)?[\s/,]*([0-9]{3,5})\s*(?:ft\b|')", re.IGNORECASE)

    # -------------------------
    # Text extraction
    # -------------------------
    def _text_pdfplumber(self, file_bytes: bytes) -> str:
        pages = []
        with pdfplumber.open(BytesIO(file_bytes)) as pdf:
            for page in pdf.pages:
                txt = page.extract_text()
                if txt:
                    pages.append(txt)
        return "\n".join(pages).strip()

    def _text_pymupdf(self, file_bytes: bytes) -> str:
        pages = []
        with fitz.open(stream=file_bytes, filetype="pdf") as doc:
            for page in doc:
                pages.append(page.get_text("text"))
        return "\n".join(pages).strip()

    def _text_ocr(self, file_bytes: bytes) -> str:
        images = convert_from_bytes(file_bytes, dpi=self.ocr_dpi, first_page=1, last_page=self.ocr_max_pages)
        return "\n".join(pytesseract.image_to_string(ImageOps.grayscale(im)) for im in images).strip()

    def extract_text(self, file_bytes: bytes) -> Tuple[str, str]:
        """Return (text, backend name); ("", "") when every backend fails."""
        for name, backend in (("pdfplumber", self._text_pdfplumber),
                              ("pymupdf", self._text_pymupdf),
                              ("ocr", self._text_ocr)):
            try:
                text = backend(file_bytes)
            except Exception as e:
                logging.warning(f"Chart text extraction via {name} failed: {e}")
                continue
            if text:
                logging.info(f"Chart text extracted via {name} ({len(text)} chars)")
                return text, name
        return "", ""

    # -------------------------
    # Field matching
    # -------------------------
    def _sdfs(self, t: str) -> List[Dict]:
        pairs = self.re_sdf.findall(t) or self.re_dme_alt.findall(t)
        sdfs = []
        for dme_s, alt_s in pairs[:MAX_SDFS]:
            sdfs.append({"alt": int(alt_s), "dme": float(dme_s)})
        return sdfs

    def parse_text(self, doc: str) -> Dict:
        out = {}
        if not doc:
            return out
        t = re.sub(r"\s+", " ", doc)

        m = self.re_mda.search(t)
        if m:
            out["mda_ft"] = int(m.group(1))

        m = self.re_gp.search(t) or self.re_angle.search(t)
        if m:
            out["gp_angle"] = float(m.group(1))

        m = self.re_faf_dme.search(t)
        if m:
            out["faf_dme_nm"] = float(m.group(1))
        m = self.re_faf_alt.search(t)
        if m:
            out["faf_alt_ft"] = int(m.group(1))

        m = self.re_thr_elev.search(t) or self.re_tdze.search(t)
        if m:
            out["thr_elev_ft"] = int(m.group(1))

        m = self.re_dme_thr.search(t)
        if m:
            out["dme_thr_nm"] = float(m.group(1))

        # "FAF to MAPt 4.8 NM" is a leg length, not a MAPt DME
        m = self.re_mapt_dme.search(self.re_faf_mapt.sub(" ", t))
        if m:
            out["mapt_dme_nm"] = float(m.group(1))

        m = self.re_faf_mapt.search(t)
        if m:
            out["faf_mapt_nm"] = float(m.group(1))
        elif "faf_dme_nm" in out and "mapt_dme_nm" in out and out["faf_dme_nm"] > out["mapt_dme_nm"]:
            out["faf_mapt_nm"] = round(out["faf_dme_nm"] - out["mapt_dme_nm"], 2)

        sdfs = self._sdfs(t)
        if sdfs:
            out["sdfs"] = sdfs

        out["snippet"] = (doc[:SNIPPET_CHARS] + "...") if len(doc) > SNIPPET_CHARS else doc
        return out

    def parse(self, file_bytes: bytes) -> Dict:
        text, source = self.extract_text(file_bytes)
        if not text:
            return {"parse_error": "No text could be extracted from the chart; please enter values manually."}
        out = self.parse_text(text)
        out["source"] = source
        found = sorted(k for k in out if k not in ("snippet", "source"))
        logging.info(f"Chart fields matched: {', '.join(found) if found else 'none'}")
        return out


def parsed_fields(parsed: Dict) -> Dict:
    """Only the scalar/list fields a user can confirm into the form."""
    return {k: v for k, v in (parsed or {}).items() if k not in ("snippet", "source", "parse_error")}
