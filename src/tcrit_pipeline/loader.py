from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd
import yaml


TIMESTAMP_COL = "timestamp"
TEMPERATURE_COL = "temperature"


def load_yaml(path: Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        obj = yaml.safe_load(f)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"YAML root must be a mapping: {path}")
    return obj


def _read_text_flexible(p: Path) -> str:
    data = p.read_bytes()
    for enc in ("utf-8-sig", "utf-8", "cp1252"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1", errors="ignore")


def read_fluorescence_csv(path: Path) -> pd.DataFrame:
    """
    Read one heating-ramp export and return the raw table:
      [timestamp, temperature, <sample_1>, ..., <sample_k>]

    Column 1 is kept as opaque text, column 2 must be numeric temperature (°C),
    every further column is one leaf-disk sample named by its header.
    Sample values that are not numeric become NaN.

    Raises FileNotFoundError when the file is missing and ValueError when the
    table cannot serve as a temperature backbone.
    """
    from io import StringIO

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Fluorescence CSV not found: {path}")

    text = _read_text_flexible(path)
    try:
        # header=None keeps repeated header names as written
        df = pd.read_csv(StringIO(text), header=None, dtype=str, skipinitialspace=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ValueError(f"Malformed fluorescence CSV: {path}: {e}") from e

    if df.shape[1] < 3:
        raise ValueError(
            f"Fluorescence CSV needs timestamp, temperature and >= 1 sample column, got {df.shape[1]}: {path}"
        )
    header = df.iloc[0].fillna("").astype(str).str.strip().tolist()
    df = df.iloc[1:].reset_index(drop=True)
    if df.empty:
        raise ValueError(f"Fluorescence CSV has no data rows: {path}")

    sample_ids = header[2:]
    if any(not s for s in sample_ids):
        raise ValueError(f"Empty sample header in: {path}")
    reserved = sorted({s for s in sample_ids if s in (TIMESTAMP_COL, TEMPERATURE_COL)})
    if reserved:
        raise ValueError(f"Sample headers {reserved} clash with the timestamp/temperature columns in: {path}")
    if len(set(sample_ids)) != len(sample_ids):
        dup = sorted({s for s in sample_ids if sample_ids.count(s) > 1})
        raise ValueError(f"Duplicate sample headers {dup} in: {path}")

    out = pd.DataFrame(
        {
            TIMESTAMP_COL: df.iloc[:, 0].fillna("").astype(str).str.strip(),
            TEMPERATURE_COL: pd.to_numeric(df.iloc[:, 1], errors="coerce"),
        }
    )
    bad_t = out[TEMPERATURE_COL].isna()
    if bad_t.any():
        first_bad = int(np.flatnonzero(bad_t.to_numpy())[0]) + 2  # 1-based, after header
        raise ValueError(f"Non-numeric or missing temperature at line {first_bad}: {path}")

    for j, sid in enumerate(sample_ids, start=2):
        out[sid] = pd.to_numeric(df.iloc[:, j], errors="coerce")

    if np.any(np.diff(out[TEMPERATURE_COL].to_numpy(dtype=float)) < 0):
        warnings.warn(f"Temperature is not non-decreasing along the ramp: {path}", UserWarning)

    return out
