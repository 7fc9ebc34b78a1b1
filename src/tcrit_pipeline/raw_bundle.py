from __future__ import annotations

from pathlib import Path

from tcrit_pipeline.config import DEFAULT_RAW_SUFFIX


def _matches_suffix(p: Path, suffix: str) -> bool:
    return p.is_file() and p.name.lower().endswith(str(suffix).lower())


def list_raw_csv_files(raw_input: Path, *, suffix: str = DEFAULT_RAW_SUFFIX) -> list[Path]:
    """
    Resolve raw input into one or more fluorescence CSV files.

    - file path  -> [file] (must be a .csv; the suffix marker is not required)
    - directory  -> sorted direct children whose name ends with `suffix`
    """
    raw_input = Path(raw_input)
    if raw_input.is_file():
        if raw_input.suffix.lower() != ".csv":
            raise ValueError(f"Raw file must be a .csv: {raw_input}")
        return [raw_input]

    if raw_input.is_dir():
        csvs = sorted(p for p in raw_input.iterdir() if _matches_suffix(p, suffix))
        if not csvs:
            raise FileNotFoundError(f"No files ending with '{suffix}' found in raw folder: {raw_input}")
        return csvs

    raise FileNotFoundError(f"Raw input not found: {raw_input}")


def derive_run_id(raw_file: Path, *, suffix: str = DEFAULT_RAW_SUFFIX) -> str:
    """
    Run ID convention: file name with the suffix marker removed
    (e.g. 'leafA_fluor.csv' -> 'leafA'); falls back to the file stem.
    """
    name = Path(raw_file).name
    if suffix and name.lower().endswith(suffix.lower()) and len(name) > len(suffix):
        return name[: -len(suffix)].rstrip("_-. ") or Path(raw_file).stem
    return Path(raw_file).stem
