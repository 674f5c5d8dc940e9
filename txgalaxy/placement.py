from __future__ import annotations

import math
import random
from typing import Any, Sequence

from txgalaxy.constants import Vec3
from txgalaxy.objects import SpaceObject


class GalaxyPlacer:
    """Lays galaxies out on stacked spiral layers around the origin.

    Positions depend only on ``seed``, the galaxy index and the total count, so
    the same inputs always give the same universe.
    """

    def __init__(
        self,
        seed: int,
        min_radius: float = 240.0,
        max_radius: float = 960.0,
        vertical_spread: float = 360.0,
        spiral_factor: float = 6.0,
    ) -> None:
        self.seed = seed
        self.min_radius = min_radius
        self.max_radius = max_radius
        self.vertical_spread = vertical_spread
        self.spiral_factor = spiral_factor
        self._cache: dict[tuple[int, int], Vec3] = {}

    def position(self, index: int, total: int) -> Vec3:
        cached = self._cache.get((index, total))
        if cached is not None:
            return cached

        rng = random.Random(f"{self.seed}:{index}:{total}")
        layer_size = max(1, math.ceil(math.sqrt(total)))
        layer = index // layer_size
        index_in_layer = index % layer_size
        layer_count = math.ceil(total / layer_size)

        layer_radius = (layer + 1) / layer_count
        base_radius = self.min_radius + (self.max_radius - self.min_radius) * layer_radius
        angle_offset = layer * math.pi * 0.5 + rng.random() * math.pi * 0.25
        layer_height = (layer - (total // layer_size) / 2) * (self.vertical_spread / 2)

        angle = (index_in_layer / layer_size) * math.tau * self.spiral_factor + angle_offset
        radius = base_radius + (rng.random() - 0.5) * base_radius * 0.3

        position = (
            math.cos(angle) * radius,
            layer_height + (rng.random() - 0.5) * self.vertical_spread,
            math.sin(angle) * radius,
        )
        self._cache[(index, total)] = position
        return position

    def positions(self, total: int) -> list[Vec3]:
        return [self.position(i, total) for i in range(total)]

    def place(self, ids: Sequence[Any], weights: Sequence[float] | None = None) -> list[SpaceObject]:
        total = len(ids)
        if weights is None:
            weights = [1.0] * total
        return [
            SpaceObject(id=object_id, position=self.position(i, total), weight=weight)
            for i, (object_id, weight) in enumerate(zip(ids, weights))
        ]
