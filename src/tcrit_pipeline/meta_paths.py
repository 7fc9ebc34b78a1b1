"""
Central definitions for repository input/output locations.

Layout:
  meta/
    config.yml     - assay config (tcrit: deg_min, deg_max, pre_buffer, post_buffer, ...)
  data/
    raw/           - instrument exports, selected by the raw_suffix marker (e.g. *_fluor.csv)
    processed/     - per-run outputs: {run_id}/tcrit__{run_id}.csv, QC table, plots/
"""
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace


def get_meta_paths(repo_root: Path) -> SimpleNamespace:
    """Return standard paths under repo_root."""
    root = Path(repo_root)
    meta = root / "meta"
    data = root / "data"
    return SimpleNamespace(
        config=meta / "config.yml",
        raw_dir=data / "raw",
        processed_dir=data / "processed",
    )


def get_run_paths(processed_dir: Path, run_id: str) -> SimpleNamespace:
    """Output paths for one run under processed_dir/{run_id}/."""
    run_dir = Path(processed_dir) / str(run_id)
    return SimpleNamespace(
        run_dir=run_dir,
        tcrit_csv=run_dir / f"tcrit__{run_id}.csv",
        plot_dir=run_dir / "plots",
    )
