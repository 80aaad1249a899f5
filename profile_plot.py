"""Descent profile chart: ideal path, SDFs, MDA and threshold on a reversed DME axis."""

from __future__ import annotations

from io import BytesIO
from typing import Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from cdfa_core import GlidePathResult

MDA_LINE_MIN_NM = 20.0


class ProfileChart:
    """Owns one matplotlib figure; drawing again closes the previous one."""

    def __init__(self, figsize=(11, 4)):
        self.figsize = figsize
        self.fig = None
        self.ax = None

    def close(self) -> None:
        if self.fig is not None:
            plt.close(self.fig)
        self.fig = None
        self.ax = None

    def draw(self, result: GlidePathResult):
        self.close()
        fig, ax = plt.subplots(figsize=self.figsize)
        params = result.params
        gp = result.fit.angle_degrees

        x = [c.distance for c in result.checkpoints]
        y = [c.altitude for c in result.checkpoints]
        ax.plot(x, y, marker="o", linewidth=2, color="tab:blue", label=f"Ideal Descent Path ({gp:.2f}°)")

        ax.scatter([f.slant_distance for f in result.fixes], [f.altitude for f in result.fixes],
                   marker="^", s=60, color="gold", edgecolors="black", zorder=3, label="Step-Down Fixes (SDF)")

        mda_right = max(MDA_LINE_MIN_NM, result.faf.slant_distance)
        ax.plot([mda_right, 0.0], [params.minimum_descent_altitude] * 2,
                color="red", linestyle="--", linewidth=1.5, label="MDA")

        ax.scatter([params.dme_at_threshold], [params.threshold_elevation],
                   marker="s", s=70, color="tab:green", zorder=3, label="Threshold")

        if params.start_altitude is not None:
            ax.axhline(params.start_altitude, color="tab:gray", linestyle=":", linewidth=1.2, label="Start Altitude")

        ax.invert_xaxis()
        ax.set_xlabel("DME Distance (NM)")
        ax.set_ylabel("Altitude (ft)")
        title = f"CDFA Profile {params.runway_id} — GP {gp:.2f}°".replace("  ", " ")
        ax.set_title(title)
        ax.grid(True, linestyle="--", alpha=0.6)
        ax.legend()
        fig.tight_layout()

        self.fig, self.ax = fig, ax
        return fig

    def to_png(self, dpi: int = 150) -> Optional[bytes]:
        if self.fig is None:
            return None
        buf = BytesIO()
        self.fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
        return buf.getvalue()

