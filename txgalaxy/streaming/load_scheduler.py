from __future__ import annotations

import logging
from collections import OrderedDict
from contextlib import nullcontext
from typing import Callable

from pyglet.clock import Clock

from txgalaxy.constants import LOAD_BATCH_PAUSE_SECONDS, LOAD_BATCH_SIZE
from txgalaxy.debug.profiler import PassProfiler

logger = logging.getLogger(__name__)

ChunkHook = Callable[[str], None]


class LoadScheduler:
    """Paces promotion of visible chunks to the loaded state.

    Newly visible chunks wait in a deduplicated FIFO queue. A single clock
    callback promotes ``batch_size`` of them every ``batch_pause`` seconds and
    unschedules itself once the queue is empty. Without a clock the queue is
    only drained through :meth:`drain`.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        batch_size: int = LOAD_BATCH_SIZE,
        batch_pause: float = LOAD_BATCH_PAUSE_SECONDS,
        on_loaded: ChunkHook | None = None,
        on_unloaded: ChunkHook | None = None,
        profiler: PassProfiler | None = None,
    ) -> None:
        self.clock = clock
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self.on_loaded = on_loaded
        self.on_unloaded = on_unloaded
        self.profiler = profiler
        self._queue: OrderedDict[str, None] = OrderedDict()
        self._loaded: set[str] = set()
        self._draining = False

    def _profile(self, name: str):
        if self.profiler is None:
            return nullcontext()
        return self.profiler.section(name)

    @property
    def loaded(self) -> frozenset[str]:
        return frozenset(self._loaded)

    @property
    def queued(self) -> list[str]:
        return list(self._queue)

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def loaded_count(self) -> int:
        return len(self._loaded)

    def is_loaded(self, key: str) -> bool:
        return key in self._loaded

    def is_queued(self, key: str) -> bool:
        return key in self._queue

    def on_chunk_became_visible(self, key: str) -> None:
        if key in self._loaded or key in self._queue:
            return
        self._queue[key] = None
        self._ensure_draining()

    def on_chunk_left_visible(self, key: str) -> None:
        self._queue.pop(key, None)
        if key in self._loaded:
            self._loaded.discard(key)
            if self.on_unloaded is not None:
                self.on_unloaded(key)
        if not self._queue:
            self._stop_draining()

    def promote_now(self, key: str) -> None:
        self._queue.pop(key, None)
        self._load(key)
        if not self._queue:
            self._stop_draining()

    def _ensure_draining(self) -> None:
        if self._draining or self.clock is None:
            return
        self.clock.schedule_interval(self._drain_step, self.batch_pause)
        self._draining = True

    def _stop_draining(self) -> None:
        if self._draining and self.clock is not None:
            self.clock.unschedule(self._drain_step)
        self._draining = False

    def _drain_step(self, dt: float) -> None:
        self.drain()
        if not self._queue:
            self._stop_draining()

    def drain(self, limit: int | None = None) -> int:
        """Promote up to ``limit`` (default ``batch_size``) queued chunks."""
        limit = self.batch_size if limit is None else limit
        promoted = 0
        with self._profile("loader.drain"):
            while self._queue and promoted < limit:
                key, _ = self._queue.popitem(last=False)
                if self._load(key):
                    promoted += 1
        return promoted

    def _load(self, key: str) -> bool:
        if key in self._loaded:
            return False
        if self.on_loaded is not None:
            try:
                self.on_loaded(key)
            except Exception:
                logger.exception("Loading chunk %s failed; leaving it unloaded", key)
                return False
        self._loaded.add(key)
        return True

    def reset(self) -> None:
        self._stop_draining()
        self._queue.clear()
        for key in list(self._loaded):
            self._loaded.discard(key)
            if self.on_unloaded is not None:
                self.on_unloaded(key)
