# src/tcrit_pipeline/analysis/aggregate.py
"""
Collect per-sample breakpoint results into the Tcrit output table.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .core import BreakpointResult


OUTPUT_COLUMNS = ["Sample", "Tcrit", "Tcrit.error"]


class TcritAggregator:
    """
    Append-only collector of (sample, Tcrit, Tcrit.error) rows.

    When sample_ids is given, finalize() orders rows by it (original column
    order) whatever order results were recorded in.
    """

    def __init__(self, sample_ids: Optional[Sequence[str]] = None) -> None:
        self._order = [str(s) for s in sample_ids] if sample_ids is not None else None
        self._rows: dict[str, tuple[float, float]] = {}
        self._table: Optional[pd.DataFrame] = None

    def __len__(self) -> int:
        return len(self._rows)

    def record(self, sample_id: str, result: Optional[BreakpointResult]) -> None:
        """Record one sample; result=None marks it missing."""
        if self._table is not None:
            raise RuntimeError("TcritAggregator is finalized; no more results can be recorded")
        sid = str(sample_id)
        if sid in self._rows:
            raise ValueError(f"Sample recorded twice: {sid}")
        if self._order is not None and sid not in self._order:
            raise ValueError(f"Unknown sample id: {sid}")
        if result is None:
            self._rows[sid] = (np.nan, np.nan)
        else:
            self._rows[sid] = (float(result.tcrit), float(result.tcrit_error))

    def finalize(self) -> pd.DataFrame:
        if self._table is None:
            order = self._order if self._order is not None else list(self._rows)
            records = []
            for sid in order:
                tcrit, err = self._rows.get(sid, (np.nan, np.nan))
                records.append({"Sample": sid, "Tcrit": tcrit, "Tcrit.error": err})
            self._table = pd.DataFrame(records, columns=OUTPUT_COLUMNS)
        return self._table.copy()


def write_tcrit_csv(table: pd.DataFrame, path: Path) -> Path:
    """Write the output table: two decimals as text, NA for missing."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    out = table[OUTPUT_COLUMNS]
    out.to_csv(path, index=False, float_format="%.2f", na_rep="NA")
    return path
