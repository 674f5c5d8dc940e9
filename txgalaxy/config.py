from __future__ import annotations

import math
import dataclasses
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from txgalaxy import constants as c


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class OptimizerConfig:
    chunk_size: float = c.CHUNK_SIZE
    assign_batch_size: int = c.ASSIGN_BATCH_SIZE

    visibility_interval_seconds: float = c.VISIBILITY_INTERVAL_SECONDS
    frustum_near_radius_chunks: int = c.FRUSTUM_NEAR_RADIUS_CHUNKS

    load_batch_size: int = c.LOAD_BATCH_SIZE
    load_batch_pause_seconds: float = c.LOAD_BATCH_PAUSE_SECONDS

    object_radius_scale: float = c.OBJECT_RADIUS_SCALE
    max_object_radius: float = c.MAX_OBJECT_RADIUS

    render_distance: int = c.RENDER_DISTANCE
    min_render_distance: int = c.MIN_RENDER_DISTANCE
    max_render_distance: int = c.MAX_RENDER_DISTANCE
    render_distance_step: int = c.RENDER_DISTANCE_STEP

    max_objects_per_chunk: int = c.MAX_OBJECTS_PER_CHUNK
    min_objects_per_chunk: int = c.MIN_OBJECTS_PER_CHUNK
    max_objects_per_chunk_cap: int = c.MAX_OBJECTS_PER_CHUNK_CAP
    objects_per_chunk_step: int = c.OBJECTS_PER_CHUNK_STEP

    target_fps: float = c.TARGET_FPS
    low_fps: float = c.LOW_FPS
    high_fps: float = c.HIGH_FPS
    fps_window: int = c.FPS_WINDOW
    stabilization_samples: int = c.STABILIZATION_SAMPLES

    lod_high_fraction: float = c.LOD_HIGH_FRACTION
    lod_medium_fraction: float = c.LOD_MEDIUM_FRACTION

    warmup_enabled: bool = True
    warmup_bypass_scheduler: bool = True
    warmup_stages: tuple[tuple[int, int], ...] = c.WARMUP_STAGES
    warmup_stage_seconds: tuple[float, ...] = c.WARMUP_STAGE_SECONDS

    def __post_init__(self) -> None:
        if not math.isfinite(self.chunk_size) or self.chunk_size <= 0:
            raise ConfigError("chunk_size must be a positive finite number")
        for name in ("assign_batch_size", "load_batch_size", "fps_window", "stabilization_samples"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1")
        if self.visibility_interval_seconds < 0 or self.load_batch_pause_seconds < 0:
            raise ConfigError("intervals must not be negative")
        if self.frustum_near_radius_chunks < 0:
            raise ConfigError("frustum_near_radius_chunks must not be negative")
        if self.object_radius_scale < 0 or self.max_object_radius < 0:
            raise ConfigError("object radius settings must not be negative")
        if not 0 <= self.min_render_distance <= self.max_render_distance:
            raise ConfigError("render distance bounds must satisfy 0 <= min <= max")
        if not 0 <= self.min_objects_per_chunk <= self.max_objects_per_chunk_cap:
            raise ConfigError("objects per chunk bounds must satisfy 0 <= min <= max")
        if self.render_distance_step < 0 or self.objects_per_chunk_step < 0:
            raise ConfigError("adjustment steps must not be negative")
        if self.low_fps > self.high_fps:
            raise ConfigError("low_fps must not exceed high_fps")
        if self.target_fps <= 0:
            raise ConfigError("target_fps must be positive")
        if not 0.0 <= self.lod_high_fraction <= self.lod_medium_fraction:
            raise ConfigError("LOD fractions must satisfy 0 <= high <= medium")
        if len(self.warmup_stages) != len(self.warmup_stage_seconds):
            raise ConfigError("warmup_stages and warmup_stage_seconds must have the same length")
        if any(s < 0 for s in self.warmup_stage_seconds):
            raise ConfigError("warmup_stage_seconds must not be negative")

    @property
    def max_render_radius(self) -> float:
        return self.max_render_distance * self.chunk_size

    def replace(self, **overrides: Any) -> OptimizerConfig:
        return dataclasses.replace(self, **overrides)

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> OptimizerConfig:
        defaults = cls()
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for lineno, line in enumerate(Path(path).read_text(encoding="utf-8").splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                raise ConfigError(f"{path}:{lineno}: expected 'key = value'")
            key, value = line.split("=", 1)
            key = key.strip().lower()
            if key not in known:
                raise ConfigError(f"{path}:{lineno}: unknown setting {key!r}")
            try:
                values[key] = _parse_value(getattr(defaults, key), value.strip())
            except ValueError as exc:
                raise ConfigError(f"{path}:{lineno}: bad value for {key!r}: {exc}") from exc
        values.update(overrides)
        return cls(**values)


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_value(default: Any, value: str) -> Any:
    # bool first: bool is a subclass of int
    if isinstance(default, bool):
        return _parse_bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, tuple):
        parts = [p.strip() for p in value.split(",") if p.strip()]
        # "3:50, 4:70" for stage pairs, "1.0, 2.0" for plain sequences
        if any(":" in p for p in parts):
            stages = []
            for part in parts:
                distance, objects = part.split(":", 1)
                stages.append((int(distance), int(objects)))
            return tuple(stages)
        return tuple(float(p) for p in parts)
    return value
