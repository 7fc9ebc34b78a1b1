# src/tcrit_pipeline/analysis/pipeline.py
"""
Main pipeline: raw table -> per-sample Tcrit table.
"""
from __future__ import annotations

import warnings
from pathlib import Path
from typing import Callable, Optional

import pandas as pd

from .aggregate import TcritAggregator
from .core import BreakpointResult, SampleAnalysis, TcritError
from .plotting import plot_tcrit_diagnostic, sample_plot_path
from .preprocessing import normalize_curve, sample_columns
from .segmented import DEFAULT_MAX_ITER, DEFAULT_TOL, fit_segmented
from .window import select_window


def analyze_sample(
    raw: pd.DataFrame,
    sample_id: str,
    *,
    deg_min: float,
    deg_max: float,
    pre_buffer: float,
    post_buffer: float,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = DEFAULT_TOL,
) -> SampleAnalysis:
    """
    Normalize -> select window -> fit breakpoint for one sample column.

    Per-sample failures (TcritError) are caught and returned as an excluded
    SampleAnalysis carrying whatever stages did complete.
    """
    out = SampleAnalysis(sample_id=str(sample_id))
    try:
        out.curve = normalize_curve(raw, sample_id)
        out.window = select_window(out.curve, deg_min, deg_max, pre_buffer, post_buffer)
        out.fit = fit_segmented(out.window, max_iter=max_iter, tol=tol)
        out.result = BreakpointResult.from_fit(out.fit)
    except TcritError as e:
        out.status = "excluded"
        out.exclude_reason = f"{type(e).__name__}: {e}"
        out.result = None
    return out


def compute_tcrit(
    raw: pd.DataFrame,
    *,
    deg_min: float,
    deg_max: float,
    pre_buffer: float,
    post_buffer: float,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = DEFAULT_TOL,
    plot_dir: Optional[Path] = None,
    on_sample: Optional[Callable[[SampleAnalysis], None]] = None,
) -> tuple[pd.DataFrame, list[SampleAnalysis]]:
    """
    Run every sample column of a raw table through the pipeline.

    Returns (output table, per-sample analyses). The table holds one row per
    sample column in original order; excluded samples have NaN Tcrit/error.
    When plot_dir is given, one diagnostic PNG per sample is written there
    after that sample's result is available.
    """
    sample_ids = sample_columns(raw)
    aggregator = TcritAggregator(sample_ids)
    analyses: list[SampleAnalysis] = []

    for sid in sample_ids:
        analysis = analyze_sample(
            raw,
            sid,
            deg_min=deg_min,
            deg_max=deg_max,
            pre_buffer=pre_buffer,
            post_buffer=post_buffer,
            max_iter=max_iter,
            tol=tol,
        )
        if not analysis.ok:
            warnings.warn(f"Sample {sid} excluded: {analysis.exclude_reason}", UserWarning)
        aggregator.record(sid, analysis.result)
        analyses.append(analysis)

        if plot_dir is not None and analysis.curve is not None:
            plot_tcrit_diagnostic(
                analysis,
                sample_plot_path(plot_dir, sid),
                deg_min=deg_min,
                deg_max=deg_max,
            )
        if on_sample is not None:
            on_sample(analysis)

    return aggregator.finalize(), analyses
