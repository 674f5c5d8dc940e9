from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from txgalaxy.config import OptimizerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DynamicParams:
    render_distance: int
    max_objects_per_chunk: int


class FrameRateMonitor:
    """Smoothed frame rate over a fixed window, driving render distance and per-chunk caps.

    Adjustments are evaluated once every ``stabilization_samples`` accepted
    samples, so a single slow or fast frame never moves the parameters and one
    window moves them by at most one step.
    """

    def __init__(self, config: OptimizerConfig | None = None) -> None:
        self.config = config or OptimizerConfig()
        self._intervals: deque[float] = deque(maxlen=self.config.fps_window)
        self._last_ms: float | None = None
        self._since_adjust = 0
        self.adjustments_enabled = True
        self._params = self._clamped(self.config.render_distance, self.config.max_objects_per_chunk)

    def _clamped(self, render_distance: int, max_objects: int) -> DynamicParams:
        cfg = self.config
        return DynamicParams(
            render_distance=max(cfg.min_render_distance, min(cfg.max_render_distance, render_distance)),
            max_objects_per_chunk=max(cfg.min_objects_per_chunk, min(cfg.max_objects_per_chunk_cap, max_objects)),
        )

    @property
    def sample_count(self) -> int:
        return len(self._intervals)

    def sample(self, now_ms: float) -> None:
        last = self._last_ms
        if last is not None and now_ms <= last:
            # Duplicate or out of order timestamp.
            return
        self._last_ms = now_ms
        if last is None:
            return
        self._intervals.append(now_ms - last)
        self._since_adjust += 1
        if self._since_adjust >= self.config.stabilization_samples:
            self._since_adjust = 0
            if self.adjustments_enabled:
                self._adjust()

    def smoothed_fps(self) -> float:
        if not self._intervals:
            return self.config.target_fps
        return 1000.0 / (sum(self._intervals) / len(self._intervals))

    def current_params(self) -> DynamicParams:
        return self._params

    def set_params(self, render_distance: int, max_objects_per_chunk: int) -> DynamicParams:
        self._params = self._clamped(render_distance, max_objects_per_chunk)
        return self._params

    def _adjust(self) -> None:
        cfg = self.config
        fps = self.smoothed_fps()
        current = self._params
        if fps < cfg.low_fps:
            updated = self._clamped(
                current.render_distance - cfg.render_distance_step,
                current.max_objects_per_chunk - cfg.objects_per_chunk_step,
            )
        elif fps > cfg.high_fps:
            updated = self._clamped(
                current.render_distance + cfg.render_distance_step,
                current.max_objects_per_chunk + cfg.objects_per_chunk_step,
            )
        else:
            return
        if updated != current:
            logger.info(
                "Smoothed fps %.1f: render distance %d -> %d, max objects per chunk %d -> %d",
                fps,
                current.render_distance,
                updated.render_distance,
                current.max_objects_per_chunk,
                updated.max_objects_per_chunk,
            )
            self._params = updated

    def reset(self) -> None:
        self._intervals.clear()
        self._last_ms = None
        self._since_adjust = 0
