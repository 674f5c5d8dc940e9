from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import Any, Iterable, Mapping, Sequence

from pyglet.clock import Clock

from txgalaxy.config import OptimizerConfig
from txgalaxy.constants import ObjectId, Vec3
from txgalaxy.debug.profiler import PassProfiler
from txgalaxy.objects import DEFAULT_WEIGHT, SpaceObject, normalize_position
from txgalaxy.performance.frame_rate import FrameRateMonitor
from txgalaxy.spatial.chunks import BoundingSphere, chunk_coords, chunk_key
from txgalaxy.spatial.index import SpatialIndex
from txgalaxy.streaming.load_scheduler import ChunkHook, LoadScheduler
from txgalaxy.visibility.camera import Camera
from txgalaxy.visibility.evaluator import VisibilityEvaluator, VisibilityParams
from txgalaxy.visibility.lod import LODPolicy, LODTier

logger = logging.getLogger(__name__)


class UniverseOptimizer:
    """Per-frame visibility and detail decisions for a universe of positioned objects.

    The host owns one instance and calls :meth:`tick` once per animation frame.
    Background work (batched chunk assignment, paced chunk loading, warm-up
    stages) runs on ``clock``, which :meth:`tick` advances.
    """

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        clock: Clock | None = None,
        profiler: PassProfiler | None = None,
        on_chunk_loaded: ChunkHook | None = None,
        on_chunk_unloaded: ChunkHook | None = None,
    ) -> None:
        self.config = config or OptimizerConfig()
        self.clock = clock or Clock()
        self.profiler = profiler
        cfg = self.config

        self.monitor = FrameRateMonitor(cfg)
        self.index = SpatialIndex(
            cfg.chunk_size,
            batch_size=cfg.assign_batch_size,
            radius_scale=cfg.object_radius_scale,
            max_radius=cfg.max_object_radius,
            clock=self.clock,
            profiler=profiler,
            on_assigned=self._on_assigned,
        )
        self.evaluator = VisibilityEvaluator(
            min_interval=cfg.visibility_interval_seconds,
            time_function=self.clock.time,
            profiler=profiler,
        )
        self.scheduler = LoadScheduler(
            clock=self.clock,
            batch_size=cfg.load_batch_size,
            batch_pause=cfg.load_batch_pause_seconds,
            on_loaded=on_chunk_loaded,
            on_unloaded=on_chunk_unloaded,
            profiler=profiler,
        )
        self.lod_policy = LODPolicy(
            cfg.max_render_radius,
            high_fraction=cfg.lod_high_fraction,
            medium_fraction=cfg.lod_medium_fraction,
            low_fps=cfg.low_fps,
            high_fps=cfg.high_fps,
        )

        self.camera: Camera | None = None
        self._visible_chunks: frozenset[str] = frozenset()
        self._lod: dict[ObjectId, LODTier] = {}
        self._focus: frozenset[ObjectId] | None = None
        self._warmup_active = False
        self._warmup_stage = 0
        self._initialized = False

    def _profile(self, name: str):
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name)

    @property
    def warmup_active(self) -> bool:
        return self._warmup_active

    @property
    def visible_chunks(self) -> frozenset[str]:
        return self._visible_chunks

    def initialize(self, camera: Camera | None) -> None:
        self.camera = camera
        if not self._initialized:
            self._initialized = True
            self._start_warmup()
        self.evaluator.invalidate()
        self._refresh_visibility()

    def update_camera(self, camera: Camera | None) -> None:
        self.camera = camera

    def update_chunks(self, objects: Iterable[Any], positions: Sequence[Vec3] | None = None) -> None:
        if positions is not None:
            objects = list(objects)
            if len(objects) != len(positions):
                raise ValueError(f"got {len(objects)} objects but {len(positions)} positions")
            objects = [
                SpaceObject(id=_field(obj, "id"), position=position, weight=_field(obj, "weight", DEFAULT_WEIGHT))
                for obj, position in zip(objects, positions)
            ]
        self.index.assign(objects)

    def _on_assigned(self, generation: int) -> None:
        self.evaluator.invalidate()

    def _start_warmup(self) -> None:
        cfg = self.config
        if not cfg.warmup_enabled or not cfg.warmup_stages:
            return
        self._warmup_active = True
        self._warmup_stage = 0
        self.monitor.adjustments_enabled = False
        self.clock.schedule_once(self._advance_warmup, cfg.warmup_stage_seconds[0])
        logger.info("Warm-up started with %d stages", len(cfg.warmup_stages))

    def _advance_warmup(self, dt: float) -> None:
        cfg = self.config
        render_distance, max_objects = cfg.warmup_stages[self._warmup_stage]
        params = self.monitor.set_params(render_distance, max_objects)
        logger.info(
            "Warm-up stage %d: render distance %d, max objects per chunk %d",
            self._warmup_stage + 1,
            params.render_distance,
            params.max_objects_per_chunk,
        )
        self._warmup_stage += 1
        if self._warmup_stage < len(cfg.warmup_stages):
            self.clock.schedule_once(self._advance_warmup, cfg.warmup_stage_seconds[self._warmup_stage])
        else:
            self._warmup_active = False
            self.monitor.adjustments_enabled = True
            self.monitor.reset()
            logger.info("Warm-up complete")
        self.evaluator.invalidate()

    def _visibility_params(self) -> VisibilityParams:
        return VisibilityParams(
            render_distance=self.monitor.current_params().render_distance,
            chunk_size=self.config.chunk_size,
            near_radius_chunks=self.config.frustum_near_radius_chunks,
        )

    def tick(self) -> None:
        self.clock.tick()
        self.monitor.sample(self.clock.time() * 1000.0)
        if not self.evaluator.is_due():
            return
        self._refresh_visibility()

    def _measure_pass(self, kind: str):
        if self.profiler is None:
            return nullcontext({})
        return self.profiler.measure_pass(kind)

    def _refresh_visibility(self) -> None:
        with self._measure_pass("visibility") as context:
            previous = self._visible_chunks
            visible = self.evaluator.evaluate(self.camera, self.index, self._visibility_params(), focus=self._focus)
            self._visible_chunks = visible

            for key in previous - visible:
                self.scheduler.on_chunk_left_visible(key)
            bypass = self._warmup_active and self.config.warmup_bypass_scheduler
            for key in visible:
                if self.scheduler.is_loaded(key):
                    continue
                # Offered on every pass so a chunk whose load failed is retried
                # while it stays visible. The scheduler drops repeats.
                if bypass:
                    self.scheduler.promote_now(key)
                else:
                    self.scheduler.on_chunk_became_visible(key)

            with self._profile("optimizer.lod"):
                self._lod = self._compute_lod(visible)
            context.update(self.stats())

    def _compute_lod(self, visible: frozenset[str]) -> dict[ObjectId, LODTier]:
        fps = self.monitor.smoothed_fps()
        camera = self.camera
        tiers: dict[ObjectId, LODTier] = {}
        for key in visible:
            chunk = self.index.chunk(key)
            if chunk is None:
                continue
            for object_id in chunk.members:
                if self._focus is not None and object_id not in self._focus:
                    continue
                position = self.index.position_of(object_id)
                distance = camera.distance_to(position) if camera is not None and position is not None else 0.0
                tiers[object_id] = self.lod_policy.tier_for(distance, fps, self._warmup_active)
        return tiers

    def should_render(self, object_id: ObjectId, position: Vec3) -> bool:
        # Nothing is culled before the first assignment pass completes.
        if not self.index.ready:
            return True
        if self._focus is not None:
            return object_id in self._focus
        if self.camera is None:
            return True
        point = normalize_position(position)
        if point is None:
            return False

        key = chunk_key(chunk_coords(point, self.config.chunk_size))
        if key not in self._visible_chunks or not self.scheduler.is_loaded(key):
            return False
        rank = self.index.object_rank(object_id)
        if rank is not None and rank >= self.monitor.current_params().max_objects_per_chunk:
            return False
        sphere = self.index.bounding_volume(object_id)
        if sphere is None:
            return True
        return self.evaluator.object_visible(self.camera, BoundingSphere(point, sphere.radius), self._visibility_params())

    def lod_tier(self, object_id: ObjectId, distance: float | None = None, fps: float | None = None) -> LODTier:
        if self._focus is not None and object_id in self._focus:
            return LODTier.HIGH
        if distance is None:
            return self._lod.get(object_id, LODTier.HIGH)
        if fps is None:
            fps = self.monitor.smoothed_fps()
        return self.lod_policy.tier_for(distance, fps, self._warmup_active)

    def visible_object_ids(self) -> set[ObjectId]:
        visible: set[ObjectId] = set()
        for key in self._visible_chunks:
            chunk = self.index.chunk(key)
            if chunk is None:
                continue
            for object_id in chunk.members:
                position = self.index.position_of(object_id)
                if position is not None and self.should_render(object_id, position):
                    visible.add(object_id)
        return visible

    def focus(self, object_ids: Iterable[ObjectId]) -> None:
        self._focus = frozenset(object_ids)
        logger.info("Focusing on %d objects", len(self._focus))
        self.evaluator.invalidate()

    def clear_focus(self) -> None:
        if self._focus is None:
            return
        self._focus = None
        self.evaluator.invalidate()

    def stats(self) -> dict[str, Any]:
        params = self.monitor.current_params()
        return {
            "visible_count": len(self._visible_chunks),
            "loaded_count": self.scheduler.loaded_count,
            "queued_count": self.scheduler.queue_depth,
            "total_chunks": self.index.chunk_count(),
            "object_count": len(self.index),
            "skipped_objects": self.index.skipped_count,
            "render_distance": params.render_distance,
            "max_objects_per_chunk": params.max_objects_per_chunk,
            "smoothed_fps": self.monitor.smoothed_fps(),
            "warmup_active": self._warmup_active,
            "assignment_pending": self.index.pending,
            "focused_count": len(self._focus) if self._focus is not None else 0,
        }

    def shutdown(self) -> None:
        self.clock.unschedule(self._advance_warmup)
        self.index.shutdown()
        self.scheduler.reset()
        self.evaluator.reset()
        self._visible_chunks = frozenset()
        self._lod = {}
        self._warmup_active = False


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)
