from __future__ import annotations

import math
from enum import IntEnum

from txgalaxy.constants import HIGH_FPS, LOD_HIGH_FRACTION, LOD_MEDIUM_FRACTION, LOW_FPS


class LODTier(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


class LODPolicy:
    """Maps camera distance and frame rate to a detail tier.

    Stateless apart from its thresholds, so the same inputs always give the
    same tier.
    """

    def __init__(
        self,
        max_radius: float,
        high_fraction: float = LOD_HIGH_FRACTION,
        medium_fraction: float = LOD_MEDIUM_FRACTION,
        low_fps: float = LOW_FPS,
        high_fps: float = HIGH_FPS,
    ) -> None:
        self.high_distance = max_radius * high_fraction
        self.medium_distance = max_radius * medium_fraction
        self.low_fps = low_fps
        self.high_fps = high_fps

    def base_tier(self, distance: float) -> LODTier:
        if math.isnan(distance):
            return LODTier.LOW
        distance = max(0.0, distance)
        if distance <= self.high_distance:
            return LODTier.HIGH
        if distance <= self.medium_distance:
            return LODTier.MEDIUM
        return LODTier.LOW

    def tier_for(self, distance: float, fps: float, warmup_active: bool = False) -> LODTier:
        if warmup_active:
            return LODTier.HIGH
        base = self.base_tier(distance)
        if fps < self.low_fps:
            return LODTier(max(LODTier.LOW, base - 1))
        if fps > self.high_fps and base != LODTier.HIGH:
            return LODTier(min(LODTier.HIGH, base + 1))
        return base
