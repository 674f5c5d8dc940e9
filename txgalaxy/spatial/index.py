from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from pyglet.clock import Clock

from txgalaxy.constants import ASSIGN_BATCH_SIZE, MAX_OBJECT_RADIUS, OBJECT_RADIUS_SCALE, ChunkCoords, ObjectId, Vec3
from txgalaxy.debug.profiler import PassProfiler
from txgalaxy.objects import SpaceObject, validate_object
from txgalaxy.spatial.chunks import BoundingSphere, Chunk, chunk_coords, chunk_key, object_radius, parse_chunk_key

logger = logging.getLogger(__name__)


@dataclass
class _Snapshot:
    chunks: dict[str, Chunk] = field(default_factory=dict)
    objects: dict[ObjectId, SpaceObject] = field(default_factory=dict)
    spheres: dict[ObjectId, BoundingSphere] = field(default_factory=dict)
    object_chunks: dict[ObjectId, str] = field(default_factory=dict)
    ranks: dict[ObjectId, int] = field(default_factory=dict)
    skipped: int = 0


class SpatialIndex:
    """Buckets object positions into fixed-size cubic chunks.

    Assignment is copy-on-write: a new object list is indexed into a pending
    snapshot, in batches when a clock is attached, and swapped in only once the
    last batch has run. Queries always see a complete snapshot.
    """

    def __init__(
        self,
        chunk_size: float,
        batch_size: int = ASSIGN_BATCH_SIZE,
        radius_scale: float = OBJECT_RADIUS_SCALE,
        max_radius: float = MAX_OBJECT_RADIUS,
        clock: Clock | None = None,
        profiler: PassProfiler | None = None,
        on_assigned: Callable[[int], None] | None = None,
    ) -> None:
        self.chunk_size = chunk_size
        self.batch_size = max(1, batch_size)
        self.radius_scale = radius_scale
        self.max_radius = max_radius
        self.clock = clock
        self.profiler = profiler
        self.on_assigned = on_assigned

        self._live = _Snapshot()
        self._pending: _Snapshot | None = None
        self._pending_objects: list[Any] = []
        self._cursor = 0
        self._scheduled = False
        self._generation = 0

    def _profile(self, name: str):
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name)

    @property
    def ready(self) -> bool:
        return self._generation > 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def skipped_count(self) -> int:
        return self._live.skipped

    def __len__(self) -> int:
        return len(self._live.objects)

    def chunk_count(self) -> int:
        return len(self._live.chunks)

    def assign(self, objects: Iterable[Any]) -> None:
        if self._pending is not None:
            logger.debug(
                "Restarting chunk assignment, discarding %d of %d partially indexed objects",
                self._cursor,
                len(self._pending_objects),
            )
        self._pending = _Snapshot()
        self._pending_objects = list(objects)
        self._cursor = 0

        if self.clock is None:
            self._drain_pending()
            return
        if not self._scheduled:
            self.clock.schedule(self._assign_step)
            self._scheduled = True

    def assign_now(self, objects: Iterable[Any]) -> None:
        self._pending = _Snapshot()
        self._pending_objects = list(objects)
        self._cursor = 0
        self._drain_pending()

    def _drain_pending(self) -> None:
        while self._pending is not None:
            self._assign_batch()
        self._cancel_schedule()

    def _cancel_schedule(self) -> None:
        if self._scheduled and self.clock is not None:
            self.clock.unschedule(self._assign_step)
        self._scheduled = False

    def _assign_step(self, dt: float) -> None:
        if self._pending is None:
            self._cancel_schedule()
            return
        self._assign_batch()
        if self._pending is None:
            self._cancel_schedule()

    def _assign_batch(self) -> None:
        snapshot = self._pending
        if snapshot is None:
            return
        end = min(self._cursor + self.batch_size, len(self._pending_objects))
        with self._profile("index.assign_batch"):
            for i in range(self._cursor, end):
                self._add_object(snapshot, self._pending_objects[i], i)
        self._cursor = end
        if end >= len(self._pending_objects):
            self._finish(snapshot)

    def _add_object(self, snapshot: _Snapshot, raw: Any, index: int) -> None:
        obj = validate_object(raw)
        if obj is None:
            snapshot.skipped += 1
            logger.warning("Skipping malformed object #%d: %r", index, raw)
            return

        previous_key = snapshot.object_chunks.get(obj.id)
        if previous_key is not None:
            logger.debug("Object %r supplied twice, keeping the later position", obj.id)
            snapshot.chunks[previous_key].members.remove(obj.id)

        coords = chunk_coords(obj.position, self.chunk_size)
        key = chunk_key(coords)
        chunk = snapshot.chunks.get(key)
        if chunk is None:
            chunk = Chunk(coords)
            snapshot.chunks[key] = chunk
        chunk.members.append(obj.id)

        snapshot.objects[obj.id] = obj
        snapshot.object_chunks[obj.id] = key
        snapshot.spheres[obj.id] = BoundingSphere(
            obj.position, object_radius(obj.weight, self.radius_scale, self.max_radius)
        )

    def _finish(self, snapshot: _Snapshot) -> None:
        objects = snapshot.objects
        for chunk in snapshot.chunks.values():
            # Heaviest objects first; ties keep supply order.
            chunk.members.sort(key=lambda object_id: -objects[object_id].weight)
            for rank, object_id in enumerate(chunk.members):
                snapshot.ranks[object_id] = rank

        self._live = snapshot
        self._pending = None
        self._pending_objects = []
        self._cursor = 0
        self._generation += 1
        if snapshot.skipped:
            logger.warning("Chunk assignment skipped %d malformed objects", snapshot.skipped)
        logger.debug(
            "Chunk assignment #%d complete: %d objects in %d chunks",
            self._generation,
            len(snapshot.objects),
            len(snapshot.chunks),
        )
        if self.on_assigned is not None:
            self.on_assigned(self._generation)

    def chunks_near(self, origin: ChunkCoords | str, radius: int) -> list[str]:
        if radius < 0:
            return []
        ox, oy, oz = parse_chunk_key(origin) if isinstance(origin, str) else origin
        chunks = self._live.chunks
        if not chunks:
            return []

        r2 = radius * radius
        side = 2 * radius + 1
        if len(chunks) < side * side * side:
            # Sparse index: filter occupied chunks instead of scanning the cube.
            near: list[tuple[tuple[int, int, int], str]] = []
            for key, chunk in chunks.items():
                cx, cy, cz = chunk.coords
                dx, dy, dz = cx - ox, cy - oy, cz - oz
                if dx * dx + dy * dy + dz * dz <= r2:
                    near.append(((dx, dy, dz), key))
            near.sort()
            return [key for _, key in near]

        keys: list[str] = []
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    if dx * dx + dy * dy + dz * dz > r2:
                        continue
                    key = chunk_key((ox + dx, oy + dy, oz + dz))
                    if key in chunks:
                        keys.append(key)
        return keys

    def chunk(self, key: str) -> Chunk | None:
        return self._live.chunks.get(key)

    def chunk_of(self, object_id: ObjectId) -> str | None:
        return self._live.object_chunks.get(object_id)

    def bounding_volume(self, object_id: ObjectId) -> BoundingSphere | None:
        return self._live.spheres.get(object_id)

    def object_rank(self, object_id: ObjectId) -> int | None:
        return self._live.ranks.get(object_id)

    def position_of(self, object_id: ObjectId) -> Vec3 | None:
        obj = self._live.objects.get(object_id)
        return obj.position if obj is not None else None

    def shutdown(self) -> None:
        self._cancel_schedule()
        self._pending = None
        self._pending_objects = []
