# src/tcrit_pipeline/analysis/window.py
"""
Selection of the temperature sub-range used for the breakpoint fit.

The window is anchored on the half-rise point of the pre-peak part of the
normalized curve:

  1. max_temp         : temperature of the global maximum (first on ties)
  2. half_rise_value  : value closest to 0.5 among rows with temperature < max_temp
                        (first row in table order on ties); temp50 is its temperature
  3. temp50_threshold : temperature of the first row of the FULL curve whose value
                        is >= half_rise_value, plus post_buffer
  4. rows kept        : temperature > deg_min
                        AND temperature < temp50_threshold
                        AND temperature > temp50 - pre_buffer

Step 3 scans the whole curve, not the pre-peak rows of step 2. On a curve that
wobbles before the peak the crossing can precede temp50.
"""
from __future__ import annotations

import numpy as np

from .core import AnalysisWindow, InsufficientWindowDataError, NormalizedCurve


HALF_RISE_LEVEL = 0.5
MIN_WINDOW_POINTS = 2


def _first_argmax(values: np.ndarray) -> int:
    finite = np.isfinite(values)
    if not np.any(finite):
        raise InsufficientWindowDataError("curve has no finite values")
    # np.nanargmax returns the first occurrence of the maximum
    return int(np.nanargmax(np.where(finite, values, np.nan)))


def window_mask(
    temperature: np.ndarray,
    *,
    deg_min: float,
    temp50: float,
    temp50_threshold: float,
    pre_buffer: float,
) -> np.ndarray:
    """Row mask of the three open window predicates, applied conjunctively."""
    t = np.asarray(temperature, dtype=float)
    with np.errstate(invalid="ignore"):
        above_min = t > float(deg_min)
        below_threshold = t < float(temp50_threshold)
        after_pre_buffer = t > (float(temp50) - float(pre_buffer))
    return above_min & below_threshold & after_pre_buffer


def select_window(
    curve: NormalizedCurve,
    deg_min: float,
    deg_max: float,
    pre_buffer: float,
    post_buffer: float,
) -> AnalysisWindow:
    """
    Compute the AnalysisWindow for one normalized curve.

    deg_max is accepted for a uniform parameter set but does not restrict the
    rows; the upper edge comes from temp50_threshold only.
    """
    t = np.asarray(curve.temperature, dtype=float)
    y = np.asarray(curve.value, dtype=float)
    sid = curve.sample_id

    max_idx = _first_argmax(y)
    max_temp = float(t[max_idx])

    with np.errstate(invalid="ignore"):
        pre_peak = (t < max_temp) & np.isfinite(y)
    if not np.any(pre_peak):
        raise InsufficientWindowDataError(
            f"{sid}: no rows below the peak temperature {max_temp:g} to locate the half-rise point"
        )

    pre_idx = np.flatnonzero(pre_peak)
    dist = np.abs(y[pre_idx] - HALF_RISE_LEVEL)
    half_idx = int(pre_idx[int(np.argmin(dist))])
    half_rise_value = float(y[half_idx])
    temp50 = float(t[half_idx])

    with np.errstate(invalid="ignore"):
        crossing = np.flatnonzero(y >= half_rise_value)
    cross_idx = int(crossing[0])
    temp50_threshold = float(t[cross_idx]) + float(post_buffer)

    mask = window_mask(
        t,
        deg_min=deg_min,
        temp50=temp50,
        temp50_threshold=temp50_threshold,
        pre_buffer=pre_buffer,
    )
    t_win = t[mask]
    y_win = y[mask]

    if t_win.size < MIN_WINDOW_POINTS:
        raise InsufficientWindowDataError(
            f"{sid}: window ({deg_min:g} < T, T > {temp50 - pre_buffer:g}, T < {temp50_threshold:g}) "
            f"holds {t_win.size} row(s); need >= {MIN_WINDOW_POINTS}"
        )
    lower = float(np.min(t_win))
    upper = float(np.max(t_win))
    if not upper > lower:
        raise InsufficientWindowDataError(f"{sid}: window has no temperature spread (T = {lower:g})")

    return AnalysisWindow(
        sample_id=sid,
        temperature=t_win,
        value=y_win,
        lower=lower,
        upper=upper,
        max_temp=max_temp,
        half_rise_value=half_rise_value,
        temp50=temp50,
        temp50_threshold=temp50_threshold,
    )
