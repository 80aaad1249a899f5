"""
CDFA core
- Input normalization for step-down fixes (SDFs) and approach parameters
- Least-squares glide path fit in the threshold-relative frame
- FAF selection and whole-mile DME checkpoint table with MDA floor
- ROD / time-to-fly table per groundspeed preset
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

# =========================
# Constants & config
# =========================
NM_TO_FT = 6076.118
DEFAULT_GS_PRESET = [80, 100, 120, 140, 160]
MAX_CHECKPOINTS = 8
MAX_CHECKPOINT_ITERATIONS = 64
GP_WARN_MIN_DEG = 2.5
GP_WARN_MAX_DEG = 4.5
ALTITUDE_ROUNDING_FT = 10
DEFAULT_TCH_FT = 50.0


# =========================
# Errors
# =========================
class CDFAError(ValueError):
    """Base class for input/fit errors surfaced to the user."""
    pass

class MissingParameter(CDFAError):
    pass

class InsufficientFixes(CDFAError):
    pass

class InsufficientValidFixes(CDFAError):
    pass

class DegenerateFit(CDFAError):
    pass


# =========================
# Data model
# =========================
@dataclass(frozen=True)
class Fix:
    altitude: float         # ft MSL
    slant_distance: float   # NM, DME slant range


@dataclass(frozen=True)
class ApproachParameters:
    threshold_elevation: float
    dme_at_threshold: float
    minimum_descent_altitude: float
    faf_to_mapt_distance: float
    start_altitude: Optional[float] = None
    runway_id: str = ""


@dataclass(frozen=True)
class FittedGlidePath:
    slope: float            # ft per ft
    angle_degrees: float
    percent_grade: float

    @property
    def feet_per_nm(self) -> int:
        return feet_per_nautical_mile(self.slope)


@dataclass(frozen=True)
class Checkpoint:
    distance: float     # NM slant, as read on the DME
    altitude: int       # ft, rounded to nearest 10


@dataclass(frozen=True)
class DerivedRow:
    groundspeed: int
    descent_rate: int   # ft/min, rounded to nearest 10
    time_to_fly: str    # MM:SS


@dataclass
class GlidePathResult:
    fit: FittedGlidePath
    faf: Fix
    checkpoints: List[Checkpoint]
    derived_rows: List[DerivedRow]
    feet_per_nm: int
    fixes: List[Fix]
    params: ApproachParameters
    excluded_fixes: List[Fix] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def dme_dataframe(self) -> pd.DataFrame:
        rows = [{"DME (NM)": round(c.distance, 1), "Altitude (ft)": c.altitude} for c in self.checkpoints]
        return pd.DataFrame(rows, columns=["DME (NM)", "Altitude (ft)"])

    def rod_dataframe(self) -> pd.DataFrame:
        rows = [{"GS (kt)": r.groundspeed, "ROD (ft/min)": r.descent_rate, "FAF->MAPt Time": r.time_to_fly}
                for r in self.derived_rows]
        return pd.DataFrame(rows, columns=["GS (kt)", "ROD (ft/min)", "FAF->MAPt Time"])


# =========================
# Helpers
# =========================
def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))

def round_to_nearest(x: float, step: int = ALTITUDE_ROUNDING_FT) -> int:
    return round_half_up(x / step) * step

def _as_finite(value) -> Optional[float]:
    """float(value) if it is a finite number, else None. Empty strings and None are not numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None

def _candidate_values(candidate) -> Tuple[object, object]:
    """Pull (altitude, distance) out of a Fix, a mapping, or a 2-sequence."""
    if isinstance(candidate, Fix):
        return candidate.altitude, candidate.slant_distance
    if isinstance(candidate, dict):
        alt = candidate.get("altitude", candidate.get("alt", candidate.get("alt_ft")))
        dist = candidate.get("slant_distance", candidate.get("dist", candidate.get("dme")))
        return alt, dist
    try:
        alt, dist = candidate
    except (TypeError, ValueError):
        return None, None
    return alt, dist

def parse_sdf_text(text: str) -> List[Tuple[str, str]]:
    """Split `alt,dme` lines (comma/semicolon/space separated) into raw candidate pairs."""
    pairs = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        parts = [p for p in re.split(r"[,;\s]+", line) if p]
        if len(parts) < 2:
            continue
        pairs.append((parts[0], parts[1]))
    return pairs

def to_mmss(minutes: float) -> str:
    mm = int(math.floor(minutes))
    ss = round_half_up((minutes - mm) * 60.0)
    if ss >= 60:
        mm += 1
        ss -= 60
    return f"{mm:02d}:{ss:02d}"

def feet_per_nautical_mile(slope: float) -> int:
    return round_half_up(slope * NM_TO_FT)


# =========================
# Stage 1: input normalizer
# =========================
def normalize_fixes(raw_fixes: Iterable) -> List[Fix]:
    fixes = []
    for candidate in raw_fixes or []:
        alt, dist = _candidate_values(candidate)
        alt, dist = _as_finite(alt), _as_finite(dist)
        if alt is None or dist is None:
            continue
        fixes.append(Fix(altitude=alt, slant_distance=dist))
    if len(fixes) < 2:
        raise InsufficientFixes(
            f"Please provide at least two valid Step-Down Fixes to calculate a glide path (got {len(fixes)}).")
    return fixes

def normalize_inputs(raw_fixes: Iterable,
                     threshold_elevation,
                     dme_at_threshold,
                     minimum_descent_altitude,
                     faf_to_mapt_distance,
                     start_altitude=None,
                     runway_id: str = "") -> Tuple[List[Fix], ApproachParameters]:
    required = {
        "threshold elevation": threshold_elevation,
        "DME at threshold": dme_at_threshold,
        "MDA": minimum_descent_altitude,
        "FAF-MAPt distance": faf_to_mapt_distance,
    }
    values = {}
    missing = []
    for name, raw in required.items():
        v = _as_finite(raw)
        if v is None:
            missing.append(name)
        values[name] = v
    start = None
    if start_altitude is not None and not (isinstance(start_altitude, str) and not start_altitude.strip()):
        start = _as_finite(start_altitude)
        if start is None:
            missing.append("start altitude")
    if values["FAF-MAPt distance"] is not None and values["FAF-MAPt distance"] <= 0:
        missing.append("FAF-MAPt distance (must be positive)")
    if missing:
        raise MissingParameter("Please fill all primary input fields: " + ", ".join(missing) + ".")

    params = ApproachParameters(
        threshold_elevation=values["threshold elevation"],
        dme_at_threshold=values["DME at threshold"],
        minimum_descent_altitude=values["MDA"],
        faf_to_mapt_distance=values["FAF-MAPt distance"],
        start_altitude=start,
        runway_id=str(runway_id or ""),
    )
    return normalize_fixes(raw_fixes), params


# =========================
# Stage 2: glide path estimator
# =========================
def fit_glide_path(fixes: Sequence[Fix], threshold_elevation: float, dme_at_threshold: float) -> FittedGlidePath:
    """
    OLS slope of height above threshold (ft) against ground distance from threshold (ft).
    Only fixes strictly outside and strictly above the threshold take part in the fit.
    """
    if not fixes:
        raise InsufficientValidFixes("Not enough valid SDF data points above threshold to calculate a reliable path.")
    x = (np.array([f.slant_distance for f in fixes], dtype=float) - dme_at_threshold) * NM_TO_FT
    y = np.array([f.altitude for f in fixes], dtype=float) - threshold_elevation
    keep = (x > 0) & (y > 0)
    x, y = x[keep], y[keep]
    n = int(keep.sum())
    if n < 2:
        raise InsufficientValidFixes(
            "Not enough valid SDF data points above threshold to calculate a reliable path "
            f"({n} usable, 2 required).")

    sum_x, sum_y = float(x.sum()), float(y.sum())
    sum_xy, sum_x2 = float((x * y).sum()), float((x * x).sum())
    den = n * sum_x2 - sum_x * sum_x
    if abs(den) <= 1e-12 * n * sum_x2:
        raise DegenerateFit("All usable SDFs share the same ground distance; the glide path is undefined.")
    slope = (n * sum_xy - sum_x * sum_y) / den
    if not math.isfinite(slope) or slope <= 0.0:
        raise DegenerateFit(f"Fitted slope {slope:.5f} is not a descent toward the threshold.")

    return FittedGlidePath(
        slope=slope,
        angle_degrees=math.degrees(math.atan(slope)),
        percent_grade=slope * 100.0,
    )


# =========================
# Stage 3: FAF + checkpoints
# =========================
def select_faf(fixes: Sequence[Fix]) -> Fix:
    """Outermost fix; ties on distance go to the highest altitude, then to the first seen."""
    if not fixes:
        raise InsufficientFixes("No fixes to select a FAF from.")
    best = fixes[0]
    for f in fixes[1:]:
        if f.slant_distance > best.slant_distance or (
                f.slant_distance == best.slant_distance and f.altitude > best.altitude):
            best = f
    return best

def generate_checkpoints(faf: Fix,
                         fit: FittedGlidePath,
                         params: ApproachParameters,
                         warn_messages: Optional[List[str]] = None) -> List[Checkpoint]:
    warn = warn_messages if warn_messages is not None else []
    points = [Checkpoint(distance=faf.slant_distance, altitude=round_to_nearest(faf.altitude))]
    if faf.altitude < params.minimum_descent_altitude:
        warn.append(f"FAF altitude {faf.altitude:.0f} ft is below MDA {params.minimum_descent_altitude:.0f} ft.")

    slope = fit.slope
    slant_factor = math.sqrt(1.0 + slope * slope)
    current = float(math.floor(faf.slant_distance))
    # A whole-mile FAF would otherwise be listed twice (12.0 then 12); stepping from FAF - 1
    # keeps distances strictly decreasing at the cost of the floor(FAF) start.
    if current >= faf.slant_distance:
        current -= 1.0

    iterations = 0
    while len(points) < MAX_CHECKPOINTS:
        if iterations >= MAX_CHECKPOINT_ITERATIONS:
            warn.append("Checkpoint generation stopped at the iteration cap.")
            logging.warning(f"Checkpoint loop hit cap of {MAX_CHECKPOINT_ITERATIONS} iterations")
            break
        iterations += 1

        ground_nm = current / slant_factor
        from_thr_ft = (ground_nm - params.dme_at_threshold) * NM_TO_FT
        if from_thr_ft < 0:
            warn.append(f"DME table ends at {points[-1].distance:.1f} NM: next point would be past the threshold.")
            break

        ideal_alt = params.threshold_elevation + from_thr_ft * slope
        rounded = round_to_nearest(ideal_alt)
        if ideal_alt < params.minimum_descent_altitude or rounded < params.minimum_descent_altitude:
            warn.append(f"DME table ends at {points[-1].distance:.1f} NM: next point would be below MDA.")
            break

        points.append(Checkpoint(distance=current, altitude=rounded))
        current -= 1.0
    return points


# =========================
# Stage 4: derived ROD table
# =========================
def build_rod_table(angle_degrees: float, distance_nm: float, gs_list: Optional[List[int]] = None) -> List[DerivedRow]:
    if gs_list is None or len(gs_list) == 0:
        gs_list = DEFAULT_GS_PRESET
    if not distance_nm > 0:
        raise MissingParameter("FAF-MAPt distance must be a positive number.")
    speeds = [_as_finite(gs) for gs in gs_list]
    if any(gs is None or gs <= 0 for gs in speeds):
        raise MissingParameter("Groundspeeds must be positive numbers.")
    tan_gp = math.tan(math.radians(angle_degrees))
    rows = []
    for gs in speeds:
        rod = (gs / 60.0) * NM_TO_FT * tan_gp
        minutes = (distance_nm / gs) * 60.0
        rows.append(DerivedRow(groundspeed=int(gs), descent_rate=round_to_nearest(rod), time_to_fly=to_mmss(minutes)))
    return rows

def estimate_faf_to_mapt_distance(fit: FittedGlidePath,
                                  faf: Fix,
                                  threshold_elevation: float,
                                  dme_at_threshold: float,
                                  minimum_descent_altitude: float,
                                  tch_ft: float = DEFAULT_TCH_FT) -> float:
    """
    Ground distance (NM) from the FAF to where a path of the fitted slope, crossing the
    threshold at `tch_ft`, reaches the MDA. Suggestion only; never fed in silently.
    """
    faf_ground_nm = faf.slant_distance - dme_at_threshold
    mapt_ground_nm = (minimum_descent_altitude - threshold_elevation - tch_ft) / fit.slope / NM_TO_FT
    return round(max(0.0, faf_ground_nm - max(0.0, mapt_ground_nm)), 2)


# =========================
# CDFA generator (one run)
# =========================
class CDFAGenerator:
    def __init__(self,
                 fixes: List[Fix],
                 params: ApproachParameters,
                 gs_list: Optional[List[int]] = None):
        self.fixes = list(fixes)
        self.params = params
        self.gs_list = list(gs_list) if gs_list else list(DEFAULT_GS_PRESET)
        self.warn_messages: List[str] = []

    def excluded_fixes(self) -> List[Fix]:
        p = self.params
        return [f for f in self.fixes
                if not ((f.slant_distance - p.dme_at_threshold) > 0 and (f.altitude - p.threshold_elevation) > 0)]

    def fit(self) -> FittedGlidePath:
        excluded = self.excluded_fixes()
        if excluded:
            self.warn_messages.append(
                f"{len(excluded)} SDF(s) at/behind the threshold or at/below threshold elevation excluded from the fit.")
        fit = fit_glide_path(self.fixes, self.params.threshold_elevation, self.params.dme_at_threshold)
        if fit.angle_degrees < GP_WARN_MIN_DEG:
            self.warn_messages.append(f"Fitted GP {fit.angle_degrees:.2f}° is below {GP_WARN_MIN_DEG}°; check the SDFs.")
        elif fit.angle_degrees > GP_WARN_MAX_DEG:
            self.warn_messages.append(f"Fitted GP {fit.angle_degrees:.2f}° exceeds {GP_WARN_MAX_DEG}°; steep approach.")
        return fit

    def build_dme_table(self, fit: FittedGlidePath) -> Tuple[Fix, List[Checkpoint]]:
        faf = select_faf(self.fixes)
        return faf, generate_checkpoints(faf, fit, self.params, self.warn_messages)

    def compute_rod_table(self, fit: FittedGlidePath) -> List[DerivedRow]:
        return build_rod_table(fit.angle_degrees, self.params.faf_to_mapt_distance, self.gs_list)

    def run(self) -> GlidePathResult:
        fit = self.fit()
        faf, checkpoints = self.build_dme_table(fit)
        rows = self.compute_rod_table(fit)
        logging.info(f"GP fit {fit.angle_degrees:.2f}° over {len(self.fixes)} SDFs; "
                     f"{len(checkpoints)} DME rows from FAF {faf.slant_distance:.1f} NM")
        return GlidePathResult(
            fit=fit,
            faf=faf,
            checkpoints=checkpoints,
            derived_rows=rows,
            feet_per_nm=fit.feet_per_nm,
            fixes=self.fixes,
            params=self.params,
            excluded_fixes=self.excluded_fixes(),
            warnings=list(self.warn_messages),
        )


def compute_glide_path(fixes: Iterable,
                       threshold_elevation,
                       dme_at_threshold,
                       minimum_descent_altitude,
                       faf_to_mapt_distance,
                       start_altitude=None,
                       runway_id: str = "",
                       gs_list: Optional[List[int]] = None) -> GlidePathResult:
    valid, params = normalize_inputs(fixes, threshold_elevation, dme_at_threshold,
                                     minimum_descent_altitude, faf_to_mapt_distance,
                                     start_altitude=start_altitude, runway_id=runway_id)
    return CDFAGenerator(valid, params, gs_list=gs_list).run()


# =========================
# Sanity checks (dev)
# =========================
def run_sanity_checks(result: GlidePathResult) -> List[Tuple[str, bool, str]]:
    cps = result.checkpoints
    dists = [c.distance for c in cps]
    mda = result.params.minimum_descent_altitude
    results = []
    results.append(("At most 8 DME points", len(cps) <= MAX_CHECKPOINTS, f"{len(cps)} rows"))
    results.append(("Monotonic DME", all(a > b for a, b in zip(dists, dists[1:])), "DME should be ordered outer->inner"))
    steps = np.diff(dists[1:]) if len(dists) > 2 else np.array([-1.0])
    results.append(("1 NM spacing", bool(np.allclose(steps, -1.0)), "Whole-mile steps after the FAF"))
    below = [c for c in cps[1:] if c.altitude < mda]
    results.append(("Above MDA", not below, f"MDA = {mda:.0f} ft"))
    slope_ok = math.isclose(result.fit.slope, math.tan(math.radians(result.fit.angle_degrees)), rel_tol=1e-9)
    results.append(("Slope matches angle", slope_ok, f"GP = {result.fit.angle_degrees:.2f}°"))
    results.append(("Positive slope", result.fit.slope > 0, f"{result.fit.percent_grade:.2f}%"))
    return results


def summary(result: GlidePathResult) -> Dict[str, object]:
    return {
        "runway": result.params.runway_id,
        "gp_angle_deg": round(result.fit.angle_degrees, 2),
        "gp_percent": round(result.fit.percent_grade, 2),
        "ft_per_nm": result.feet_per_nm,
        "faf_dme_nm": result.faf.slant_distance,
        "faf_alt_ft": result.faf.altitude,
    }
