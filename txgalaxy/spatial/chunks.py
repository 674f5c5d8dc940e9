from __future__ import annotations

import math
from dataclasses import dataclass, field

from txgalaxy.constants import ChunkCoords, ObjectId, Vec3


@dataclass(frozen=True)
class BoundingSphere:
    center: Vec3
    radius: float


@dataclass
class Chunk:
    coords: ChunkCoords
    members: list[ObjectId] = field(default_factory=list)

    @property
    def key(self) -> str:
        return chunk_key(self.coords)

    def __len__(self) -> int:
        return len(self.members)


def chunk_coords(position: Vec3, chunk_size: float) -> ChunkCoords:
    x, y, z = position
    return math.floor(x / chunk_size), math.floor(y / chunk_size), math.floor(z / chunk_size)


def chunk_key(coords: ChunkCoords) -> str:
    cx, cy, cz = coords
    return f"{cx},{cy},{cz}"


def parse_chunk_key(key: str) -> ChunkCoords:
    cx, cy, cz = (int(part) for part in key.split(","))
    return cx, cy, cz


def chunk_bounding_sphere(coords: ChunkCoords, chunk_size: float) -> BoundingSphere:
    cx, cy, cz = coords
    half = chunk_size / 2.0
    center = (cx * chunk_size + half, cy * chunk_size + half, cz * chunk_size + half)
    # Half of the cell diagonal encloses every corner.
    return BoundingSphere(center, half * math.sqrt(3.0))


def object_radius(weight: float, scale: float, max_radius: float) -> float:
    if math.isnan(weight) or weight <= 0.0:
        return 0.0
    return min(max_radius, math.sqrt(weight) * scale)
