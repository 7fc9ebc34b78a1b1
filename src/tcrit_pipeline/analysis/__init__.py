# src/tcrit_pipeline/analysis/__init__.py
"""
Analysis subpackage: per-sample Tcrit estimation.

  - core: data structures, error taxonomy, OLS helper
  - preprocessing: min-max normalization of sample columns
  - window: analysis window selection around the half-rise point
  - segmented: one-breakpoint broken-line regression
  - aggregate: output table collection and CSV writing
  - plotting: per-sample diagnostic plots and run summary
  - qc: QC report generation
  - pipeline: main pipeline (compute_tcrit)
"""

# Core types and errors
from .core import (
    AnalysisWindow,
    BreakpointResult,
    DegenerateRangeError,
    InsufficientWindowDataError,
    LineFit,
    NoBreakpointDetectedError,
    NonConvergenceError,
    NormalizedCurve,
    SampleAnalysis,
    SegmentedFit,
    TcritError,
)

# Normalizer
from .preprocessing import (
    normalize_column,
    normalize_curve,
    sample_columns,
)

# Window selector
from .window import select_window

# Breakpoint estimator
from .segmented import (
    estimate_breakpoint,
    fit_segmented,
)

# Aggregator
from .aggregate import (
    OUTPUT_COLUMNS,
    TcritAggregator,
    write_tcrit_csv,
)

# Plotting
from .plotting import (
    apply_paper_style,
    plot_tcrit_diagnostic,
    plot_tcrit_summary,
    sample_plot_path,
)

# QC
from .qc import (
    build_tcrit_qc_table,
    write_tcrit_qc_report,
)

# Pipeline
from .pipeline import (
    analyze_sample,
    compute_tcrit,
)

__all__ = [
    # Core
    "AnalysisWindow",
    "BreakpointResult",
    "DegenerateRangeError",
    "InsufficientWindowDataError",
    "LineFit",
    "NoBreakpointDetectedError",
    "NonConvergenceError",
    "NormalizedCurve",
    "SampleAnalysis",
    "SegmentedFit",
    "TcritError",
    # Normalizer
    "normalize_column",
    "normalize_curve",
    "sample_columns",
    # Window
    "select_window",
    # Estimator
    "estimate_breakpoint",
    "fit_segmented",
    # Aggregator
    "OUTPUT_COLUMNS",
    "TcritAggregator",
    "write_tcrit_csv",
    # Plotting
    "apply_paper_style",
    "plot_tcrit_diagnostic",
    "plot_tcrit_summary",
    "sample_plot_path",
    # QC
    "build_tcrit_qc_table",
    "write_tcrit_qc_report",
    # Pipeline
    "analyze_sample",
    "compute_tcrit",
]
