from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from taskgraph.core.model import DEPENDENCY_TYPES


LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_LOG_LEVEL = "TASKGRAPH_LOG_LEVEL"
ENV_HOURS_PER_DAY = "TASKGRAPH_HOURS_PER_DAY"


@dataclass(frozen=True)
class Settings:
    hours_per_day: int = 8
    default_duration_days: int = 1
    default_dependency_type: str = "FS"
    log_level: str = "WARNING"


DEFAULT_SETTINGS = Settings()


class SettingsError(ValueError):
    pass


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Load settings overrides from a YAML file.

    Format:
      hours_per_day: 8
      default_duration_days: 1
      default_dependency_type: FS
      log_level: INFO

    Every key is optional; unknown keys are rejected.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SettingsError(f"invalid settings YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SettingsError("settings file must be a mapping")
    return _check_overrides(raw)


def merged_settings(overrides: Optional[Mapping[str, Any]] = None) -> Settings:
    """Return DEFAULT_SETTINGS with overrides applied."""
    if not overrides:
        return DEFAULT_SETTINGS
    return replace(DEFAULT_SETTINGS, **_check_overrides(dict(overrides)))


def load_settings(settings_file: str | None = None, env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env

    overrides: dict[str, Any] = {}
    if settings_file:
        overrides.update(load_settings_file(settings_file))

    if env.get(ENV_LOG_LEVEL):
        overrides["log_level"] = env[ENV_LOG_LEVEL]
    if env.get(ENV_HOURS_PER_DAY):
        try:
            overrides["hours_per_day"] = int(env[ENV_HOURS_PER_DAY])
        except ValueError as e:
            raise SettingsError(f"{ENV_HOURS_PER_DAY} must be an integer") from e

    return merged_settings(overrides)


def _check_overrides(raw: dict[Any, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k in ("hours_per_day", "default_duration_days"):
            if not isinstance(v, int) or isinstance(v, bool) or v <= 0:
                raise SettingsError(f"{k} must be a positive integer")
            out[k] = v
        elif k == "default_dependency_type":
            if v not in DEPENDENCY_TYPES:
                raise SettingsError(f"default_dependency_type must be one of {list(DEPENDENCY_TYPES)}")
            out[k] = v
        elif k == "log_level":
            if not isinstance(v, str) or v.upper() not in LOG_LEVELS:
                raise SettingsError(f"log_level must be one of {list(LOG_LEVELS)}")
            out[k] = v.upper()
        else:
            raise SettingsError(f"unknown setting: {k}")
    return out
