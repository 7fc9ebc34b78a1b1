"""
Assay configuration for Tcrit estimation.

meta/config.yml:

  tcrit:
    deg_min: 25        # rows must be hotter than this (°C)
    deg_max: 60        # upper edge of the plotted temperature axis (°C)
    pre_buffer: 10     # rows must be hotter than temp50 - pre_buffer
    post_buffer: 15    # rows must be cooler than the half-rise crossing + post_buffer
    max_iter: 30       # breakpoint iteration budget
    tol: 1.0e-5        # relative convergence tolerance
    raw_suffix: _fluor.csv
    write_plots: true
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np

from tcrit_pipeline.loader import load_yaml


DEFAULT_RAW_SUFFIX = "_fluor.csv"


@dataclass(frozen=True)
class TcritConfig:
    deg_min: float = 25.0
    deg_max: float = 60.0
    pre_buffer: float = 10.0
    post_buffer: float = 15.0
    max_iter: int = 30
    tol: float = 1e-5
    raw_suffix: str = DEFAULT_RAW_SUFFIX
    write_plots: bool = True

    def __post_init__(self) -> None:
        for name in ("deg_min", "deg_max", "pre_buffer", "post_buffer", "tol"):
            v = float(getattr(self, name))
            if not np.isfinite(v):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)!r}")
        if float(self.deg_min) >= float(self.deg_max):
            raise ValueError(f"deg_min must be < deg_max, got {self.deg_min} >= {self.deg_max}")
        if float(self.pre_buffer) < 0 or float(self.post_buffer) < 0:
            raise ValueError("pre_buffer and post_buffer must be >= 0")
        if int(self.max_iter) < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if float(self.tol) <= 0:
            raise ValueError(f"tol must be > 0, got {self.tol}")
        if not str(self.raw_suffix).strip():
            raise ValueError("raw_suffix must not be empty")

    def window_params(self) -> dict[str, float]:
        return {
            "deg_min": float(self.deg_min),
            "deg_max": float(self.deg_max),
            "pre_buffer": float(self.pre_buffer),
            "post_buffer": float(self.post_buffer),
        }

    def fit_params(self) -> dict[str, Any]:
        return {"max_iter": int(self.max_iter), "tol": float(self.tol)}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **overrides: Any) -> "TcritConfig":
        """Copy with non-None overrides applied (CLI flags left unset are None)."""
        given = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **given) if given else self


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("bool is not an integer setting")
    f = float(value)
    if not f.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(f)


def _as_bool(value: Any) -> bool:
    # YAML true/false only; quoted strings such as "false" are rejected
    if not isinstance(value, (bool, np.bool_)):
        raise TypeError(f"expected true/false, got {value!r}")
    return bool(value)


_FIELD_TYPES = {
    "deg_min": float,
    "deg_max": float,
    "pre_buffer": float,
    "post_buffer": float,
    "max_iter": _as_int,
    "tol": float,
    "raw_suffix": str,
    "write_plots": _as_bool,
}


def tcrit_config_from_mapping(obj: Optional[Mapping[str, Any]]) -> TcritConfig:
    """Build a TcritConfig from the `tcrit:` mapping; unknown keys are an error."""
    if not obj:
        return TcritConfig()
    if not isinstance(obj, Mapping):
        raise ValueError(f"'tcrit' config must be a mapping, got {type(obj).__name__}")
    known = {f.name for f in fields(TcritConfig)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ValueError(f"Unknown tcrit config keys: {unknown}")
    kwargs: dict[str, Any] = {}
    for key, value in obj.items():
        caster = _FIELD_TYPES[key]
        try:
            kwargs[key] = caster(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid value for tcrit.{key}: {value!r}") from e
    return TcritConfig(**kwargs)


def load_tcrit_config(path: Optional[Path]) -> TcritConfig:
    """Read the `tcrit:` section of config.yml; defaults when path is None."""
    if path is None:
        return TcritConfig()
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config not found: {path}")
    return tcrit_config_from_mapping(load_yaml(path).get("tcrit", {}))
