# src/tcrit_pipeline/analysis/plotting.py
"""
Diagnostic plotting: one PNG per sample and a run-level Tcrit summary.
"""
from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import font_manager as fm

from .core import SampleAnalysis


PAPER_FIGSIZE_SINGLE = (3.5, 2.6)
PAPER_FIGSIZE_WIDE = (5.0, 2.6)

_SAFE_STEM_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def apply_paper_style() -> dict:
    """
    Return matplotlib rcParams dict for paper-grade figures.

    Usage:
        with plt.rc_context(apply_paper_style()):
            fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
    """
    available = {f.name for f in fm.fontManager.ttflist}
    font_priority = ["Arial", "Helvetica", "Liberation Sans", "DejaVu Sans"]
    chosen = next((f for f in font_priority if f in available), "DejaVu Sans")
    return {
        "font.family": "sans-serif",
        "font.sans-serif": [chosen] + [f for f in font_priority if f != chosen],
        "font.size": 7,
        "axes.titlesize": 8,
        "axes.labelsize": 7,
        "xtick.labelsize": 6,
        "ytick.labelsize": 6,
        "legend.fontsize": 6,
        "lines.linewidth": 0.7,
        "lines.markersize": 3,
        "axes.linewidth": 0.6,
        "axes.edgecolor": "0.3",
        "axes.labelcolor": "0.15",
        "xtick.major.width": 0.5,
        "ytick.major.width": 0.5,
        "xtick.color": "0.3",
        "ytick.color": "0.3",
        "axes.grid": False,
        "legend.frameon": True,
        "legend.framealpha": 0.9,
        "legend.edgecolor": "0.7",
        "figure.facecolor": "white",
        "savefig.dpi": 600,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.02,
        "savefig.format": "png",
    }


def paper_savefig(fig: Any, path: Path, **kwargs) -> None:
    """Save figure as PNG at 600 dpi with tight bbox."""
    defaults = {
        "dpi": 600,
        "bbox_inches": "tight",
        "pad_inches": 0.02,
        "facecolor": "white",
        "edgecolor": "white",
    }
    defaults.update(kwargs)
    fig.savefig(path, **defaults)


def safe_stem(text: str, *, max_len: int = 80) -> str:
    """
    Filesystem-safe ASCII stem for a sample id.
    A short hash is appended when characters were replaced or the id was truncated,
    so distinct sample ids never share a plot file.
    """
    raw = "" if text is None else str(text).strip()
    base = _SAFE_STEM_RE.sub("_", raw).strip("_") or "sample"
    needs_hash = base != raw
    if len(base) > max_len:
        base = base[:max_len].rstrip("_")
        needs_hash = True
    if needs_hash:
        base = f"{base}__{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:8]}"
    return base


def sample_plot_path(plot_dir: Path, sample_id: str) -> Path:
    return Path(plot_dir) / f"{safe_stem(sample_id)}.png"


def _draw_tcrit_diagnostic_on_ax(
    *,
    ax: Any,
    analysis: SampleAnalysis,
    deg_min: Optional[float],
    deg_max: Optional[float],
) -> None:
    c_point = "#0072B2"
    c_window = "#009E73"
    c_fit = "#E07020"
    c_edge = "#2D2D2D"

    curve = analysis.curve
    window = analysis.window
    if curve is not None:
        t = np.asarray(curve.temperature, dtype=float)
        y = np.asarray(curve.value, dtype=float)
        ok = np.isfinite(t) & np.isfinite(y)
        ax.plot(t[ok], y[ok], linewidth=0.4, alpha=0.35, color="0.5", zorder=2)
        ax.scatter(t[ok], y[ok], s=6, color=c_point, edgecolors="none", alpha=0.6, zorder=3)

    if window is not None:
        ax.axvspan(window.lower, window.upper, facecolor="0.85", alpha=0.25, zorder=1)
        ax.scatter(
            window.temperature,
            window.value,
            s=9,
            color=c_window,
            edgecolors=c_edge,
            linewidths=0.3,
            alpha=0.95,
            zorder=4,
        )

    fit = analysis.fit
    if fit is not None and window is not None:
        xx = np.linspace(window.lower, window.upper, 200)
        ax.plot(xx, fit.predict(xx), linewidth=0.9, color=c_fit, zorder=5)

    info_lines = []
    if analysis.ok and analysis.result is not None:
        res = analysis.result
        ax.axvline(res.tcrit, linestyle=(0, (2, 2)), linewidth=0.7, color=c_fit, zorder=5)
        info_lines.append(f"Tcrit: {res.tcrit:.2f} ± {res.tcrit_error:.2f} °C")
        if fit is not None:
            info_lines.append(f"n: {fit.n}")
    else:
        info_lines.append("status: excluded")
        if analysis.exclude_reason:
            info_lines.append(analysis.exclude_reason.split(":", 1)[0])

    if deg_min is not None and deg_max is not None and float(deg_max) > float(deg_min):
        ax.set_xlim(float(deg_min), float(deg_max))

    title = str(analysis.sample_id)
    if not analysis.ok:
        title = f"{title} | EXCLUDED"
    ax.set_title(title, pad=4)
    ax.set_xlabel("Temperature (°C)")
    ax.set_ylabel("Normalized fluorescence")
    ax.annotate(
        "\n".join(info_lines),
        xy=(0, 1),
        xycoords="axes fraction",
        xytext=(4, -4),
        textcoords="offset points",
        ha="left",
        va="top",
        fontsize=6,
        bbox=dict(boxstyle="round,pad=0.3", facecolor="white", alpha=0.9, edgecolor="none"),
        zorder=10,
    )


def plot_tcrit_diagnostic(
    analysis: SampleAnalysis,
    out_png: Path,
    *,
    deg_min: Optional[float] = None,
    deg_max: Optional[float] = None,
) -> Path:
    """
    Diagnostic plot for one sample: full normalized curve, shaded analysis
    window, fitted broken line and the Tcrit marker.
    The output directory is created when missing.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    with plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
        _draw_tcrit_diagnostic_on_ax(ax=ax, analysis=analysis, deg_min=deg_min, deg_max=deg_max)
        fig.tight_layout(pad=0.3)
        paper_savefig(fig, out_png)
        plt.close(fig)
    return out_png


def plot_tcrit_summary(analyses: Sequence[SampleAnalysis], out_png: Path, *, run_id: str = "") -> Optional[Path]:
    """Tcrit ± SE per sample in column order; excluded samples are labeled but not drawn."""
    labels = [str(a.sample_id) for a in analyses]
    if not labels:
        return None
    x = np.arange(len(labels), dtype=float)
    tc = np.array([a.result.tcrit if a.ok else np.nan for a in analyses], dtype=float)
    err = np.array([a.result.tcrit_error if a.ok else np.nan for a in analyses], dtype=float)
    if not np.any(np.isfinite(tc)):
        return None

    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)
    with plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_WIDE)
        ok = np.isfinite(tc)
        ax.errorbar(
            x[ok],
            tc[ok],
            yerr=np.nan_to_num(err[ok]),
            fmt="o",
            color="#0072B2",
            ecolor="0.3",
            elinewidth=0.6,
            capsize=1.5,
            markersize=3,
        )
        ax.set_xticks(x)
        ax.set_xticklabels(labels, rotation=90)
        ax.set_ylabel("Tcrit (°C)")
        ax.set_title(f"{run_id} | Tcrit per sample" if run_id else "Tcrit per sample", pad=4)
        fig.tight_layout(pad=0.3)
        paper_savefig(fig, out_png)
        plt.close(fig)
    return out_png
