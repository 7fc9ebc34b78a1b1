# src/tcrit_pipeline/analysis/preprocessing.py
"""
Per-sample min-max normalization of raw fluorescence columns.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from .core import DegenerateRangeError, NormalizedCurve


def normalize_column(values) -> np.ndarray:
    """
    Rescale a fluorescence column to [0, 1] using its own finite min/max.
    Missing values stay missing at the same position.
    """
    y = pd.to_numeric(pd.Series(values), errors="coerce").to_numpy(dtype=float)
    finite = y[np.isfinite(y)]
    if finite.size == 0:
        raise DegenerateRangeError("column has no finite values")
    lo = float(np.min(finite))
    hi = float(np.max(finite))
    if hi == lo:
        raise DegenerateRangeError(f"constant column (min == max == {lo:g})")
    out = (y - lo) / (hi - lo)
    out[~np.isfinite(y)] = np.nan
    return out


def sample_columns(raw: pd.DataFrame) -> list[str]:
    """Sample ids in original column order (everything after timestamp/temperature)."""
    return [str(c) for c in raw.columns[2:]]


def normalize_curve(raw: pd.DataFrame, sample_id: str) -> NormalizedCurve:
    """
    Build the NormalizedCurve for one sample column of a raw table.
    The temperature column (second column, whatever its header) is copied verbatim.
    """
    temperature = raw.iloc[:, 1].to_numpy(dtype=float).copy()
    value = normalize_column(raw[sample_id])
    return NormalizedCurve(sample_id=str(sample_id), temperature=temperature, value=value)
