"""
Run configuration: defaults, optional YAML file, command-line overrides.

A config file may set any of:

    split_field: host
    threshold: 5
    output_fields: [wall_time, cpu_time, memory, disk]
    variants: [value, per_walltime]
    outlier_policy: keep         # or discard
    mordor_style: clean          # or classic
    sort_order: mean             # or alphabetical
    scatter_x: wall_time
    workunits_db: units.sqlite
    workunits_query: SELECT units_total, units_processed FROM tasks WHERE task_id = ?

Unknown keys are ignored with a warning. A missing file means defaults.
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional

import yaml

from .constants import (
    DEFAULT_OUTPUT_FIELDS,
    DEFAULT_THRESHOLD,
    DEFAULT_WORKUNITS_QUERY,
)
from .context import RunContext
from .models import HistogramVariant, MordorStyle, OutlierPolicy, SortOrder


@dataclass
class SplitConfig:
    split_field: Optional[str] = None
    threshold: int = DEFAULT_THRESHOLD
    output_fields: List[str] = field(default_factory=lambda: list(DEFAULT_OUTPUT_FIELDS))
    variants: List[HistogramVariant] = field(default_factory=lambda: [HistogramVariant.VALUE])
    outlier_policy: OutlierPolicy = OutlierPolicy.KEEP
    mordor_style: MordorStyle = MordorStyle.CLEAN
    sort_order: SortOrder = SortOrder.MEAN
    scatter_x: str = "wall_time"
    workunits_db: Optional[str] = None
    workunits_query: str = DEFAULT_WORKUNITS_QUERY

    def with_overrides(self, **overrides) -> "SplitConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _as_list(key: str, value) -> list:
    """A YAML list, or a single scalar as a one-item list."""
    if isinstance(value, (str, int, float)):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f'Config key "{key}" must be a list, got {type(value).__name__}')
    return value


def _coerce(key: str, value):
    if key == "threshold":
        if isinstance(value, (list, dict)):
            raise ValueError(f'Config key "threshold" must be an integer, got {value!r}')
        return int(value)
    if key == "output_fields":
        return [str(v) for v in _as_list(key, value)]
    if key == "variants":
        return [HistogramVariant(v) for v in _as_list(key, value)]
    if key == "outlier_policy":
        return OutlierPolicy(value)
    if key == "mordor_style":
        return MordorStyle(value)
    if key == "sort_order":
        return SortOrder(value)
    return str(value)


def load_config(
    yaml_path: Optional[str] = None,
    context: Optional[RunContext] = None,
) -> SplitConfig:
    """
    Load a SplitConfig from YAML.

    Returns defaults if the path is None or the file doesn't exist. Malformed
    values raise ValueError (bad enum name, non-integer threshold).
    """
    context = context or RunContext()
    config = SplitConfig()
    if yaml_path is None or not os.path.exists(yaml_path):
        return config

    with open(yaml_path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {yaml_path} must contain a mapping")

    known = {f.name for f in fields(SplitConfig)}
    values: Dict = {}
    for key, value in data.items():
        if key not in known:
            context.warn(f'Ignoring unknown config key "{key}" in {yaml_path}')
            continue
        if value is None:
            continue
        values[key] = _coerce(key, value)

    context.log(f"  Loaded config {yaml_path} ({len(values)} settings)")
    return replace(config, **values)
