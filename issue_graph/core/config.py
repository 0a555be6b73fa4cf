from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class LayoutConfig:
    node_width: float = 280.0
    horizontal_gap: float = 100.0
    vertical_gap: float = 40.0
    padding: float = 40.0
    header_height: float = 60.0
    line_height: float = 18.0
    chars_per_line: int = 40
    max_description_lines: int = 3
    crossing_iterations: int = 4


@dataclass(frozen=True)
class ScheduleConfig:
    default_expected_days: float = 3.0
    # Closed issues are already done: by default they occupy zero days.
    closed_takes_time: bool = False
    # Warn (never fail) above this many issues.
    soft_node_limit: int = 20


DEFAULT_PRIORITY_WEIGHTS: dict[int, float] = {0: 5.0, 1: 4.0, 2: 3.0, 3: 2.0, 4: 1.0}


@dataclass(frozen=True)
class ImportancePolicy:
    priority_weighted: bool = False
    priority_weights: dict[int, float] = field(default_factory=lambda: dict(DEFAULT_PRIORITY_WEIGHTS))
    critical_path_bonus: float = 0.0


@dataclass(frozen=True)
class EngineConfig:
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    importance: ImportancePolicy = field(default_factory=ImportancePolicy)


class ConfigError(ValueError):
    pass


def _override(section: str, base: Any, raw: Any) -> Any:
    if raw is None:
        return base
    if not isinstance(raw, dict):
        raise ConfigError(f"'{section}' must be a mapping")

    known = {f.name: f for f in fields(base)}
    changes: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise ConfigError(f"unknown {section} setting: {k}")
        current = getattr(base, k)
        if isinstance(current, bool):
            if not isinstance(v, bool):
                raise ConfigError(f"{section}.{k} must be a boolean")
        elif isinstance(current, dict):
            if not isinstance(v, dict) or not all(
                isinstance(pk, int) and isinstance(pv, (int, float)) and not isinstance(pv, bool)
                for pk, pv in v.items()
            ):
                raise ConfigError(f"{section}.{k} must map integer priorities to numbers")
            v = {int(pk): float(pv) for pk, pv in v.items()}
        elif type(current) is int:
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ConfigError(f"{section}.{k} must be a non-negative integer")
        elif isinstance(current, (int, float)):
            if not isinstance(v, (int, float)) or isinstance(v, bool) or v < 0:
                raise ConfigError(f"{section}.{k} must be a non-negative number")
        changes[k] = v
    return replace(base, **changes)


def load_config_file(path: str | Path) -> EngineConfig:
    """Load engine settings from a YAML file.

    Format:
      layout: {node_width: 320, ...}
      schedule: {default_expected_days: 2, ...}
      importance: {priority_weighted: true, ...}

    Missing sections and keys keep their defaults.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"config file is not valid YAML: {e}") from e
    if raw is None:
        return EngineConfig()
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping with layout/schedule/importance sections")

    unknown = sorted(set(raw.keys()) - {"layout", "schedule", "importance"})
    if unknown:
        raise ConfigError(f"unknown config section(s): {', '.join(str(u) for u in unknown)}")

    base = EngineConfig()
    return EngineConfig(
        layout=_override("layout", base.layout, raw.get("layout")),
        schedule=_override("schedule", base.schedule, raw.get("schedule")),
        importance=_override("importance", base.importance, raw.get("importance")),
    )


def load_config(config_file: str | None) -> EngineConfig:
    if not config_file:
        return EngineConfig()
    return load_config_file(config_file)
