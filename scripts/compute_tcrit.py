#!/usr/bin/env python3
"""
Estimate Tcrit per leaf-disk sample for one fluorescence export or for every
matching export in a raw folder.

Usage:
  python scripts/compute_tcrit.py --raw data/raw [--config meta/config.yml] [--out_dir data/processed]
  python scripts/compute_tcrit.py --raw data/raw/leafA_fluor.csv --deg_min 30 --post_buffer 12

Outputs per run (run_id = file name without the suffix marker):
  {out_dir}/{run_id}/tcrit__{run_id}.csv      Sample,Tcrit,Tcrit.error
  {out_dir}/{run_id}/tcrit_qc__{run_id}.csv   per-sample status, exclude reason, fit details
  {out_dir}/{run_id}/tcrit_summary__{run_id}.png
  {out_dir}/{run_id}/plots/{sample}.png       (unless --write_plots 0)
"""
from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path

# Ensure local src/ is used (avoid importing an older installed package)
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Use non-interactive backend so script does not block on display (headless / IDE / SSH)
import matplotlib
matplotlib.use("Agg")

from tcrit_pipeline.analysis import compute_tcrit, write_tcrit_csv, write_tcrit_qc_report  # noqa: E402
from tcrit_pipeline.config import load_tcrit_config  # noqa: E402
from tcrit_pipeline.loader import read_fluorescence_csv  # noqa: E402
from tcrit_pipeline.meta_paths import get_meta_paths, get_run_paths  # noqa: E402
from tcrit_pipeline.raw_bundle import derive_run_id, list_raw_csv_files  # noqa: E402

META = get_meta_paths(REPO_ROOT)


def _resolve_from_repo_root(p: str | Path, repo_root: Path) -> Path:
    p = Path(p)
    return p if p.is_absolute() else (repo_root / p)


def main() -> None:
    p = argparse.ArgumentParser(description="Estimate Tcrit (fluorescence breakpoint temperature) per sample.")
    p.add_argument(
        "--raw",
        default=str(META.raw_dir),
        help="Fluorescence CSV file OR raw folder (files selected by --raw_suffix).",
    )
    p.add_argument("--config", default=str(META.config), help="Path to config.yml (tcrit: section).")
    p.add_argument("--out_dir", default=str(META.processed_dir), help="Processed root directory.")

    # -------------------------
    # window / fit controls (override config.yml when given)
    # -------------------------
    p.add_argument("--deg_min", type=float, default=None, help="Fit rows must be hotter than this (°C).")
    p.add_argument("--deg_max", type=float, default=None, help="Upper edge of the plotted temperature axis (°C).")
    p.add_argument("--pre_buffer", type=float, default=None, help="Fit rows must be hotter than temp50 - pre_buffer.")
    p.add_argument(
        "--post_buffer",
        type=float,
        default=None,
        help="Fit rows must be cooler than the half-rise crossing + post_buffer.",
    )
    p.add_argument("--max_iter", type=int, default=None, help="Breakpoint iteration budget.")
    p.add_argument("--tol", type=float, default=None, help="Relative convergence tolerance.")
    p.add_argument("--raw_suffix", default=None, help="File name marker used to select raw files in a folder.")
    p.add_argument(
        "--write_plots",
        type=int,
        default=None,
        choices=[0, 1],
        help="Whether to write per-sample diagnostic plots. 1=on, 0=off.",
    )
    p.add_argument("--debug", action="store_true", help="Verbose output.")
    args = p.parse_args()

    config_path = _resolve_from_repo_root(args.config, REPO_ROOT)
    raw_input = _resolve_from_repo_root(args.raw, REPO_ROOT)
    out_dir = _resolve_from_repo_root(args.out_dir, REPO_ROOT)

    cfg = load_tcrit_config(config_path if config_path.is_file() else None)
    cfg = cfg.with_overrides(
        deg_min=args.deg_min,
        deg_max=args.deg_max,
        pre_buffer=args.pre_buffer,
        post_buffer=args.post_buffer,
        max_iter=args.max_iter,
        tol=args.tol,
        raw_suffix=args.raw_suffix,
        write_plots=None if args.write_plots is None else bool(args.write_plots),
    )
    if args.debug:
        print("Config:", cfg.to_dict())

    raw_files = list_raw_csv_files(raw_input, suffix=cfg.raw_suffix)
    if args.debug:
        print("Raw files:", [f.name for f in raw_files])

    n_ok_total = 0
    n_excluded_total = 0
    for raw_file in raw_files:
        run_id = derive_run_id(raw_file, suffix=cfg.raw_suffix)
        run_paths = get_run_paths(out_dir, run_id)
        raw = read_fluorescence_csv(raw_file)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            table, analyses = compute_tcrit(
                raw,
                **cfg.window_params(),
                **cfg.fit_params(),
                plot_dir=run_paths.plot_dir if cfg.write_plots else None,
            )
        for w in caught:
            print(f"[{run_id}] {w.message}", file=sys.stderr)

        tcrit_path = write_tcrit_csv(table, run_paths.tcrit_csv)
        qc_paths = write_tcrit_qc_report(analyses, run_paths.run_dir, run_id)

        n_ok = sum(1 for a in analyses if a.ok)
        n_excluded = len(analyses) - n_ok
        n_ok_total += n_ok
        n_excluded_total += n_excluded
        print(f"[{run_id}] samples={len(analyses)} ok={n_ok} excluded={n_excluded} -> {tcrit_path}")
        if args.debug:
            for key, path in qc_paths.items():
                print(f"[{run_id}] {key}: {path}")

    print(f"Finished: runs={len(raw_files)}, ok={n_ok_total}, excluded={n_excluded_total}")


if __name__ == "__main__":
    main()
