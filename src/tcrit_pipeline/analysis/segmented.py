# src/tcrit_pipeline/analysis/segmented.py
"""
One-breakpoint broken-line (segmented) regression.

Model:
    y = b0 + b1 * x + beta * (x - psi)+

The breakpoint psi is found by iterative relocation: for the current psi the
working model

    y = b0 + b1 * x + beta * (x - psi)+ + gamma * (-I(x > psi))

is fit by OLS and psi moves to psi + h * gamma / beta. gamma is the first-order
correction of psi, so it vanishes at convergence. The step is halved while the
continuous model does not improve or psi would leave at least MIN_SEGMENT_POINTS
observations on either side.

The standard error of psi comes from the covariance s^2 (X'X)^-1 of the final
OLS fit with the last column rescaled to -beta * I(x > psi); the coefficient of
that column is a psi increment, so its standard error is the psi standard error.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
from scipy import stats as scipy_stats

from .core import (
    AnalysisWindow,
    BreakpointResult,
    InsufficientWindowDataError,
    NoBreakpointDetectedError,
    NonConvergenceError,
    SegmentedFit,
    _fit_linear,
)


N_PARAMS = 4  # intercept, left slope, slope change, breakpoint
MIN_SEGMENTED_POINTS = N_PARAMS + 1
MIN_SEGMENT_POINTS = 2

DEFAULT_MAX_ITER = 30
DEFAULT_TOL = 1e-5


def _ols(X: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, float, int]:
    coef, _res, rank, _sv = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ coef
    return coef, float(resid @ resid), int(rank)


def _hinge(x: np.ndarray, psi: float) -> np.ndarray:
    return np.maximum(x - psi, 0.0)


def _step(x: np.ndarray, psi: float) -> np.ndarray:
    return (x > psi).astype(float)


def _broken_line(x: np.ndarray, y: np.ndarray, psi: float) -> tuple[np.ndarray, float, int]:
    """Continuous model at fixed psi; coef = (b0, b1, beta)."""
    X = np.column_stack([np.ones_like(x), x, _hinge(x, psi)])
    return _ols(X, y)


def _is_admissible(x: np.ndarray, psi: float, min_side: int = MIN_SEGMENT_POINTS) -> bool:
    if not np.isfinite(psi):
        return False
    n_left = int(np.sum(x <= psi))
    return n_left >= min_side and (x.size - n_left) >= min_side


def _window_xy(window: AnalysisWindow) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(window.temperature, dtype=float)
    y = np.asarray(window.value, dtype=float)
    mask = np.isfinite(x) & np.isfinite(y)
    x = x[mask]
    y = y[mask]
    order = np.argsort(x, kind="stable")
    return x[order], y[order]


def _slope_change_pvalue(rss_line: float, rss_seg: float, n: int) -> float:
    """F-test of the broken line against the single starting line."""
    df_extra = N_PARAMS - 2
    df_resid = n - N_PARAMS
    if rss_seg <= 0.0:
        return 0.0 if rss_line > 0.0 else 1.0
    f_stat = ((rss_line - rss_seg) / df_extra) / (rss_seg / df_resid)
    if not np.isfinite(f_stat) or f_stat <= 0.0:
        return 1.0
    return float(scipy_stats.f.sf(f_stat, df_extra, df_resid))


def fit_segmented(
    window: AnalysisWindow,
    *,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = DEFAULT_TOL,
    h: float = 1.0,
    max_halving: int = 10,
    psi0: Optional[float] = None,
    alpha: float = 0.05,
) -> SegmentedFit:
    """
    Fit the one-breakpoint broken line to the window.

    Starts from the OLS line and psi0 (median temperature of the window when
    omitted). Converges when the breakpoint moves by at most tol * (temperature
    range) and both slopes change by at most tol * max(1, |slope|).

    Raises:
      InsufficientWindowDataError: fewer than MIN_SEGMENTED_POINTS finite rows
        or no temperature spread
      NoBreakpointDetectedError: no slope change or no admissible breakpoint
      NonConvergenceError: not converged within max_iter iterations
    """
    sid = window.sample_id
    x, y = _window_xy(window)
    n = int(x.size)
    if n < MIN_SEGMENTED_POINTS:
        raise InsufficientWindowDataError(
            f"{sid}: {n} finite window point(s); the broken-line model needs >= {MIN_SEGMENTED_POINTS}"
        )
    x_range = float(np.ptp(x))
    if x_range <= 0.0:
        raise InsufficientWindowDataError(f"{sid}: window has no temperature spread")
    if int(max_iter) < 1:
        raise ValueError("max_iter must be >= 1")

    start = _fit_linear(x, y)
    slope_scale = max(abs(start.slope), float(np.ptp(y)) / x_range, 1e-12)

    psi = float(np.median(x)) if psi0 is None else float(psi0)
    if not _is_admissible(x, psi):
        raise NoBreakpointDetectedError(
            f"{sid}: initial breakpoint {psi:g} leaves fewer than {MIN_SEGMENT_POINTS} points on one side"
        )
    coef, rss, rank = _broken_line(x, y, psi)
    if rank < 3:
        raise NoBreakpointDetectedError(f"{sid}: broken-line design is rank deficient at psi={psi:g}")
    slopes = (float(coef[1]), float(coef[1] + coef[2]))

    iterations = 0
    converged = False
    for it in range(1, int(max_iter) + 1):
        iterations = it
        X = np.column_stack([np.ones_like(x), x, _hinge(x, psi), -_step(x, psi)])
        work, _rss_work, work_rank = _ols(X, y)
        if work_rank < N_PARAMS:
            raise NoBreakpointDetectedError(f"{sid}: working design is rank deficient at psi={psi:g}")
        beta = float(work[2])
        gamma = float(work[3])
        if abs(beta) <= 1e-8 * slope_scale:
            raise NoBreakpointDetectedError(f"{sid}: no slope change around psi={psi:g}")

        step = gamma / beta
        accepted: Optional[tuple[float, np.ndarray, float]] = None
        any_admissible = False
        hh = float(h)
        for _ in range(int(max_halving) + 1):
            cand = psi + hh * step
            if _is_admissible(x, cand):
                any_admissible = True
                cand_coef, cand_rss, cand_rank = _broken_line(x, y, cand)
                if cand_rank == 3 and cand_rss <= rss * (1.0 + 1e-10) + np.finfo(float).tiny:
                    accepted = (cand, cand_coef, cand_rss)
                    break
            hh *= 0.5

        if accepted is None:
            if not any_admissible:
                raise NoBreakpointDetectedError(
                    f"{sid}: breakpoint update from psi={psi:g} leaves the data range"
                )
            # every admissible step worsens the fit: psi is already at the optimum
            accepted = (psi, coef, rss)

        new_psi, coef, rss = accepted
        new_slopes = (float(coef[1]), float(coef[1] + coef[2]))
        d_psi = abs(new_psi - psi)
        d_slopes = max(abs(new_slopes[k] - slopes[k]) / max(1.0, abs(slopes[k])) for k in range(2))
        psi = float(new_psi)
        slopes = new_slopes
        if d_psi <= tol * x_range and d_slopes <= tol:
            converged = True
            break

    if not converged:
        raise NonConvergenceError(f"{sid}: breakpoint did not converge in {max_iter} iterations (psi={psi:g})")

    beta = float(coef[2])
    if abs(beta) <= 1e-8 * slope_scale:
        raise NoBreakpointDetectedError(f"{sid}: converged model has no slope change")

    X_final = np.column_stack([np.ones_like(x), x, _hinge(x, psi), -beta * _step(x, psi)])
    _final, rss_final, final_rank = _ols(X_final, y)
    if final_rank < N_PARAMS:
        raise NoBreakpointDetectedError(f"{sid}: final design is rank deficient at psi={psi:g}")
    df_resid = n - N_PARAMS
    sigma2 = rss_final / df_resid
    cov = sigma2 * np.linalg.pinv(X_final.T @ X_final)
    psi_se = float(np.sqrt(max(float(cov[3, 3]), 0.0)))

    t_crit = float(scipy_stats.t.ppf(1.0 - alpha / 2.0, df_resid))
    psi_ci = (psi - t_crit * psi_se, psi + t_crit * psi_se)

    return SegmentedFit(
        psi=psi,
        psi_se=psi_se,
        intercept=float(coef[0]),
        slope_left=slopes[0],
        slope_right=slopes[1],
        rss=float(rss),
        df_resid=int(df_resid),
        n=n,
        iterations=int(iterations),
        start=start,
        f_pvalue=_slope_change_pvalue(start.rss, float(rss), n),
        psi_ci=(float(psi_ci[0]), float(psi_ci[1])),
    )


def estimate_breakpoint(window: AnalysisWindow, **kwargs) -> BreakpointResult:
    """Tcrit and its standard error (both rounded to 2 decimals) for one window."""
    return BreakpointResult.from_fit(fit_segmented(window, **kwargs))
