from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable

from txgalaxy.constants import FRUSTUM_NEAR_RADIUS_CHUNKS, VISIBILITY_INTERVAL_SECONDS, ObjectId
from txgalaxy.debug.profiler import PassProfiler
from txgalaxy.spatial.chunks import BoundingSphere, chunk_bounding_sphere, chunk_coords
from txgalaxy.spatial.index import SpatialIndex
from txgalaxy.visibility.camera import Camera
from txgalaxy.visibility.frustum import Frustum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilityParams:
    render_distance: int
    chunk_size: float
    near_radius_chunks: int = FRUSTUM_NEAR_RADIUS_CHUNKS

    @property
    def max_distance(self) -> float:
        return self.render_distance * self.chunk_size


class VisibilityEvaluator:
    def __init__(
        self,
        min_interval: float = VISIBILITY_INTERVAL_SECONDS,
        time_function: Callable[[], float] = time.perf_counter,
        profiler: PassProfiler | None = None,
    ) -> None:
        self.min_interval = min_interval
        self.time_function = time_function
        self.profiler = profiler
        self._cached: frozenset[str] = frozenset()
        self._last_run: float | None = None
        self._stale = False
        self._frustum: Frustum | None = None
        self._frustum_camera: Camera | None = None

    def _profile(self, name: str):
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name)

    @property
    def last_result(self) -> frozenset[str]:
        return self._cached

    @property
    def last_frustum(self) -> Frustum | None:
        return self._frustum

    def invalidate(self) -> None:
        self._stale = True

    def reset(self) -> None:
        self._cached = frozenset()
        self._last_run = None
        self._stale = False
        self._frustum = None
        self._frustum_camera = None

    def is_due(self) -> bool:
        if self._last_run is None or self._stale:
            return True
        return self.time_function() - self._last_run >= self.min_interval

    def frustum_for(self, camera: Camera) -> Frustum:
        if self._frustum is None or self._frustum_camera is not camera:
            self._frustum = Frustum.from_matrix(camera.view_projection)
            self._frustum_camera = camera
        return self._frustum

    def evaluate(
        self,
        camera: Camera | None,
        index: SpatialIndex,
        params: VisibilityParams,
        focus: frozenset[ObjectId] | None = None,
    ) -> frozenset[str]:
        if camera is None and focus is None:
            return self._cached
        if not self.is_due():
            return self._cached
        self._last_run = self.time_function()
        self._stale = False

        if focus is not None:
            # Drilled into a cluster: only the chunks holding it, no scan.
            keys = (index.chunk_of(object_id) for object_id in focus)
            self._cached = frozenset(key for key in keys if key is not None)
            return self._cached

        with self._profile("visibility.chunks"):
            self._cached = self._visible_chunks(camera, index, params)
        return self._cached

    def _visible_chunks(self, camera: Camera, index: SpatialIndex, params: VisibilityParams) -> frozenset[str]:
        frustum = self.frustum_for(camera)
        ccx, ccy, ccz = chunk_coords(camera.position, params.chunk_size)
        near2 = params.near_radius_chunks * params.near_radius_chunks

        visible: set[str] = set()
        # chunks_near already prunes the cube of offsets down to a sphere of
        # radius render_distance and drops unoccupied cells.
        for key in index.chunks_near((ccx, ccy, ccz), params.render_distance):
            chunk = index.chunk(key)
            if chunk is None:
                continue
            cx, cy, cz = chunk.coords
            dx, dy, dz = cx - ccx, cy - ccy, cz - ccz
            if dx * dx + dy * dy + dz * dz <= near2:
                visible.add(key)
                continue
            if frustum.intersects(chunk_bounding_sphere(chunk.coords, params.chunk_size)):
                visible.add(key)
        return frozenset(visible)

    def object_visible(self, camera: Camera | None, sphere: BoundingSphere, params: VisibilityParams) -> bool:
        if camera is None:
            return True
        if camera.distance_to(sphere.center) - sphere.radius > params.max_distance:
            return False
        return self.frustum_for(camera).intersects(sphere)
