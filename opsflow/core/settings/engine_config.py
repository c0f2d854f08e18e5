from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal

import yaml


DeadlineStrategy = Literal["position", "topological"]


@dataclass(frozen=True)
class EngineSettings:
    # Name stamped on task completions and output submissions.
    current_actor: str = "Jordan Smith"
    unknown_actor_label: str = "Unknown processor"

    # Layout used by the sequential flow generator.
    column_x: float = 250
    start_y: float = 50
    node_spacing: float = 150

    deadline_strategy: DeadlineStrategy = "position"


DEFAULT_SETTINGS = EngineSettings()

ACTOR_ENV_VAR = "OPSFLOW_ACTOR"

_DEADLINE_STRATEGIES = {"position", "topological"}


class SettingsConfigError(ValueError):
    pass


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Load setting overrides from a YAML file.

    Format:
      current_actor: "Alex Doe"
      node_spacing: 120
      deadline_strategy: topological

    Returns only the keys present in the file, type-checked.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SettingsConfigError("settings file must be a mapping of name -> value")

    known = {f.name: f for f in fields(EngineSettings)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or k not in known:
            raise SettingsConfigError(f"unknown setting: {k}")
        if k in ("current_actor", "unknown_actor_label"):
            if not isinstance(v, str) or not v.strip():
                raise SettingsConfigError(f"setting '{k}' must be a non-empty string")
            out[k] = v.strip()
        elif k in ("column_x", "start_y", "node_spacing"):
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise SettingsConfigError(f"setting '{k}' must be a number")
            if k == "node_spacing" and v <= 0:
                raise SettingsConfigError("setting 'node_spacing' must be > 0")
            out[k] = v
        elif k == "deadline_strategy":
            if v not in _DEADLINE_STRATEGIES:
                raise SettingsConfigError(
                    f"setting 'deadline_strategy' must be one of {sorted(_DEADLINE_STRATEGIES)}"
                )
            out[k] = v
    return out


def merged_settings(overrides: dict[str, Any] | None = None) -> EngineSettings:
    """Return DEFAULT_SETTINGS with overrides applied, then the actor env override."""
    settings = replace(DEFAULT_SETTINGS, **(overrides or {}))
    actor = (os.getenv(ACTOR_ENV_VAR, "") or "").strip()
    if actor:
        settings = replace(settings, current_actor=actor)
    return settings


def load_and_merge(settings_file: str | None) -> EngineSettings:
    if not settings_file:
        return merged_settings()
    overrides = load_settings_file(settings_file)
    return merged_settings(overrides)
