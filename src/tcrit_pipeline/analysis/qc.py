# src/tcrit_pipeline/analysis/qc.py
"""
QC report generation for breakpoint fit assessment.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from .core import SampleAnalysis
from .plotting import plot_tcrit_summary


QC_COLUMNS = [
    "sample",
    "status",
    "exclude_reason",
    "exclude_reason_norm",
    "tcrit",
    "tcrit_error",
    "tcrit_raw",
    "tcrit_se_raw",
    "tcrit_ci_low",
    "tcrit_ci_high",
    "slope_left",
    "slope_right",
    "slope_change_pvalue",
    "window_lower",
    "window_upper",
    "window_n",
    "temp50",
    "temp50_threshold",
    "max_temp",
    "iterations",
    "rss",
]


def _normalize_exclude_reason(reason: object) -> str:
    """
    Bucket an exclude_reason ("ErrorName: message") into coarse categories.

    Buckets:
      - Constant / empty column
      - Too few window points
      - No convergence
      - No breakpoint
      - Other
    """
    s = "" if reason is None else str(reason).strip()
    if (not s) or (s.lower() in {"nan", "none"}):
        return ""
    name = s.split(":", 1)[0].strip()
    return {
        "DegenerateRangeError": "Constant / empty column",
        "InsufficientWindowDataError": "Too few window points",
        "NonConvergenceError": "No convergence",
        "NoBreakpointDetectedError": "No breakpoint",
    }.get(name, "Other")


def build_tcrit_qc_table(analyses: Sequence[SampleAnalysis]) -> pd.DataFrame:
    rows = []
    for a in analyses:
        w = a.window
        f = a.fit
        r = a.result
        rows.append(
            {
                "sample": a.sample_id,
                "status": a.status,
                "exclude_reason": a.exclude_reason,
                "exclude_reason_norm": _normalize_exclude_reason(a.exclude_reason),
                "tcrit": r.tcrit if r is not None else np.nan,
                "tcrit_error": r.tcrit_error if r is not None else np.nan,
                "tcrit_raw": f.psi if f is not None else np.nan,
                "tcrit_se_raw": f.psi_se if f is not None else np.nan,
                "tcrit_ci_low": f.psi_ci[0] if f is not None else np.nan,
                "tcrit_ci_high": f.psi_ci[1] if f is not None else np.nan,
                "slope_left": f.slope_left if f is not None else np.nan,
                "slope_right": f.slope_right if f is not None else np.nan,
                "slope_change_pvalue": f.f_pvalue if f is not None else np.nan,
                "window_lower": w.lower if w is not None else np.nan,
                "window_upper": w.upper if w is not None else np.nan,
                "window_n": w.n if w is not None else 0,
                "temp50": w.temp50 if w is not None else np.nan,
                "temp50_threshold": w.temp50_threshold if w is not None else np.nan,
                "max_temp": w.max_temp if w is not None else np.nan,
                "iterations": f.iterations if f is not None else 0,
                "rss": f.rss if f is not None else np.nan,
            }
        )
    return pd.DataFrame(rows, columns=QC_COLUMNS)


def write_tcrit_qc_report(
    analyses: Sequence[SampleAnalysis],
    out_dir: Path,
    run_id: str,
) -> dict[str, Path]:
    """
    Write tcrit_qc__{run_id}.csv and tcrit_summary__{run_id}.png into out_dir.
    The PNG is skipped when no sample produced a Tcrit.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    qc = build_tcrit_qc_table(analyses)
    qc_path = out_dir / f"tcrit_qc__{run_id}.csv"
    qc.to_csv(qc_path, index=False)
    written = {"qc_csv": qc_path}

    png = plot_tcrit_summary(analyses, out_dir / f"tcrit_summary__{run_id}.png", run_id=run_id)
    if png is not None:
        written["summary_png"] = png
    return written
