"""Configuration helpers for loading YAML-driven settings.

Defaults ship with the package under ``market_extremes/resources/defaults.yaml``. Each loader
returns a frozen dataclass so downstream modules never see the raw YAML structure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "resources" / "defaults.yaml"


@dataclass(frozen=True)
class FitConfig:
    """Optimizer settings for the GEV maximum-likelihood fit."""

    method: str = "Nelder-Mead"
    maxiter: int = 5000
    xatol: float = 1e-8
    fatol: float = 1e-10
    start_xi: float = 0.1
    penalty: float = 1e10
    max_condition: float = 1e12


@dataclass(frozen=True)
class BlockConfig:
    """Block partition settings."""

    granularities: tuple[str, ...] = ("yearly", "half-yearly")
    min_blocks: int = 2
    min_obs_per_block: int = 1


@dataclass(frozen=True)
class ReportConfig:
    """Return periods and bootstrap settings used by the report workflow."""

    return_periods: dict[str, tuple[float, ...]] = field(default_factory=dict)
    n_boot: int = 200
    random_seed: int = 42


def _load_yaml(path: Path) -> Any:
    """Load a YAML file and return its contents."""
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def _section(path: Path | None, name: str) -> dict[str, Any]:
    path = path or DEFAULT_CONFIG_PATH
    data = _load_yaml(path)
    if not isinstance(data, dict) or not isinstance(data.get(name), dict):
        raise ValueError(f"config missing '{name}' section: {path}")
    return data[name]


def load_fit_config(config_path: Path | None = None) -> FitConfig:
    """Load optimizer settings from the ``fit`` section."""
    raw = _section(config_path, "fit")
    return FitConfig(
        method=str(raw.get("method", "Nelder-Mead")),
        maxiter=int(raw.get("maxiter", 5000)),
        xatol=float(raw.get("xatol", 1e-8)),
        fatol=float(raw.get("fatol", 1e-10)),
        start_xi=float(raw.get("start_xi", 0.1)),
        penalty=float(raw.get("penalty", 1e10)),
        max_condition=float(raw.get("max_condition", 1e12)),
    )


def load_block_config(config_path: Path | None = None) -> BlockConfig:
    """Load the default granularities and block filters."""
    raw = _section(config_path, "blocks")
    granularities = raw.get("granularities") or ["yearly"]
    return BlockConfig(
        granularities=tuple(str(g) for g in granularities),
        min_blocks=int(raw.get("min_blocks", 2)),
        min_obs_per_block=int(raw.get("min_obs_per_block", 1)),
    )


def load_report_config(config_path: Path | None = None) -> ReportConfig:
    """Load return periods (per granularity) and bootstrap defaults."""
    raw = _section(config_path, "report")
    periods = raw.get("return_periods") or {}
    if not isinstance(periods, dict):
        raise ValueError(f"report.return_periods must be a mapping: {config_path or DEFAULT_CONFIG_PATH}")
    boot = raw.get("bootstrap") or {}
    return ReportConfig(
        return_periods={str(k): tuple(float(v) for v in values) for k, values in periods.items()},
        n_boot=int(boot.get("n_boot", 200)),
        random_seed=int(boot.get("random_seed", 42)),
    )


def dump_json(data: Any) -> str:
    """Pretty-print helper used in scripts and logging."""
    return json.dumps(data, indent=2, sort_keys=True, default=str)
