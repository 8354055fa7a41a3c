from __future__ import annotations

import json
import logging
import math
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from .scoring import ScoringConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "AIM_TRAINER_CONFIG"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    total_trials: int = 20
    sampling_interval_ms: float = 16.0
    # Pause after the last click / end of tracking so feedback can render.
    advance_delay_ms: float = 100.0
    countdown_s: float = 3.0
    canvas_width: int = 800
    canvas_height: int = 600


_INT_FIELDS = {"total_trials", "canvas_width", "canvas_height", "max_click_points"}


def _coerce(name: str, value: object) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(float(value)):
        raise ValueError(f"{name} must be finite")
    if name in _INT_FIELDS:
        if float(value) != int(value):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def _scoring_from_mapping(data: Mapping[str, Any]) -> ScoringConfig:
    known = {f.name for f in fields(ScoringConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown scoring setting(s): {', '.join(unknown)}")
    return ScoringConfig(**{k: _coerce(k, v) for k, v in data.items()})


def config_from_mapping(data: Mapping[str, Any]) -> EngineConfig:
    """Build an EngineConfig from plain JSON-style data.

    Missing keys keep their defaults; unknown keys are an error so typos in a
    config file do not silently fall back to defaults.
    """

    if not isinstance(data, Mapping):
        raise ValueError("config must be a mapping")

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown setting(s): {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key == "scoring":
            if not isinstance(value, Mapping):
                raise ValueError("scoring must be a mapping")
            kwargs[key] = _scoring_from_mapping(value)
        else:
            kwargs[key] = _coerce(key, value)
    return EngineConfig(**kwargs)


def config_to_mapping(config: EngineConfig) -> dict[str, Any]:
    return asdict(config)


def load_config(path: Path) -> EngineConfig:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    config = config_from_mapping(payload)
    logger.info("loaded engine config from %s", path)
    return config


def config_from_env(environ: Mapping[str, str] | None = None) -> EngineConfig:
    env = os.environ if environ is None else environ
    explicit = env.get(CONFIG_PATH_ENV, "").strip()
    if explicit == "":
        return EngineConfig()
    return load_config(Path(explicit).expanduser())
