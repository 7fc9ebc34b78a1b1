# src/tcrit_pipeline/analysis/core.py
"""
Core data structures, error taxonomy and small fitting utilities.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np


class TcritError(RuntimeError):
    """Base class for per-sample failures that must not abort a batch."""


class DegenerateRangeError(TcritError):
    """Raised when a fluorescence column has no range to normalize over."""


class InsufficientWindowDataError(TcritError):
    """Raised when the analysis window has too few or ill-conditioned points."""


class NonConvergenceError(TcritError):
    """Raised when the breakpoint iteration does not settle within max_iter."""


class NoBreakpointDetectedError(TcritError):
    """Raised when the window shows no slope change to place a breakpoint on."""


@dataclass(frozen=True)
class LineFit:
    slope: float
    intercept: float
    r2: float
    rss: float
    n: int


@dataclass(frozen=True, eq=False)
class NormalizedCurve:
    sample_id: str
    temperature: np.ndarray
    value: np.ndarray

    def __len__(self) -> int:
        return int(self.temperature.size)


@dataclass(frozen=True, eq=False)
class AnalysisWindow:
    """
    Rows of a normalized curve used for the breakpoint fit.

    lower/upper are the observed temperature extrema of the selected rows.
    The anchors (max_temp, half_rise_value, temp50, temp50_threshold) are kept
    for diagnostics; they are NaN when the window is built directly from arrays.
    """

    sample_id: str
    temperature: np.ndarray
    value: np.ndarray
    lower: float
    upper: float
    max_temp: float = float("nan")
    half_rise_value: float = float("nan")
    temp50: float = float("nan")
    temp50_threshold: float = float("nan")

    @property
    def n(self) -> int:
        return int(self.temperature.size)

    @classmethod
    def from_arrays(cls, temperature, value, *, sample_id: str = "") -> "AnalysisWindow":
        t = np.asarray(temperature, dtype=float)
        y = np.asarray(value, dtype=float)
        if t.shape != y.shape:
            raise ValueError(f"temperature and value must have the same shape: {t.shape} vs {y.shape}")
        finite_t = t[np.isfinite(t)]
        lower = float(np.min(finite_t)) if finite_t.size else float("nan")
        upper = float(np.max(finite_t)) if finite_t.size else float("nan")
        return cls(sample_id=str(sample_id), temperature=t, value=y, lower=lower, upper=upper)


@dataclass(frozen=True)
class SegmentedFit:
    """Converged one-breakpoint broken-line model."""

    psi: float
    psi_se: float
    intercept: float
    slope_left: float
    slope_right: float
    rss: float
    df_resid: int
    n: int
    iterations: int
    start: LineFit
    f_pvalue: float = float("nan")
    psi_ci: tuple[float, float] = field(default=(float("nan"), float("nan")))

    @property
    def slope_diff(self) -> float:
        return float(self.slope_right - self.slope_left)

    def predict(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        return self.intercept + self.slope_left * x + self.slope_diff * np.maximum(x - self.psi, 0.0)


@dataclass(frozen=True)
class BreakpointResult:
    tcrit: float
    tcrit_error: float

    @classmethod
    def from_fit(cls, fit: SegmentedFit) -> "BreakpointResult":
        return cls(tcrit=round(float(fit.psi), 2), tcrit_error=round(float(fit.psi_se), 2))


@dataclass
class SampleAnalysis:
    """Everything known about one sample after the pipeline ran on it."""

    sample_id: str
    curve: Optional[NormalizedCurve] = None
    window: Optional[AnalysisWindow] = None
    fit: Optional[SegmentedFit] = None
    result: Optional[BreakpointResult] = None
    status: str = "ok"
    exclude_reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok" and self.result is not None


def _fit_linear(x: np.ndarray, y: np.ndarray) -> LineFit:
    """
    Ordinary least squares linear fit: y = a*x + b
    Returns slope/intercept, R^2 and the residual sum of squares.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    a, b = np.polyfit(x, y, 1)
    yhat = a * x + b
    ss_res = float(np.sum((y - yhat) ** 2))
    ss_tot = float(np.sum((y - float(np.mean(y))) ** 2))
    r2 = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
    return LineFit(slope=float(a), intercept=float(b), r2=float(r2), rss=ss_res, n=int(len(x)))
