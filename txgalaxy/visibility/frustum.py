from __future__ import annotations

import math
from typing import Iterable

from txgalaxy.constants import Vec3
from txgalaxy.spatial.chunks import BoundingSphere

Plane = tuple[float, float, float, float]


class Frustum:
    """Six inward-facing planes ``a*x + b*y + c*z + d >= 0`` of a view volume."""

    def __init__(self, planes: Iterable[Plane]) -> None:
        self.planes: tuple[Plane, ...] = tuple(planes)

    @classmethod
    def from_matrix(cls, matrix: Iterable[float]) -> Frustum:
        m = tuple(matrix)
        if len(m) != 16:
            raise ValueError("expected a 4x4 matrix with 16 elements")
        # Column-major storage: row i is (m[i], m[4 + i], m[8 + i], m[12 + i]).
        rows = [(m[i], m[4 + i], m[8 + i], m[12 + i]) for i in range(4)]
        w = rows[3]
        raw = []
        for axis in range(3):
            r = rows[axis]
            raw.append(tuple(w[k] + r[k] for k in range(4)))
            raw.append(tuple(w[k] - r[k] for k in range(4)))

        planes: list[Plane] = []
        for a, b, c, d in raw:
            length = math.sqrt(a * a + b * b + c * c)
            if length == 0.0:
                continue
            planes.append((a / length, b / length, c / length, d / length))
        return cls(planes)

    @staticmethod
    def _distance(plane: Plane, point: Vec3) -> float:
        a, b, c, d = plane
        x, y, z = point
        return a * x + b * y + c * z + d

    def contains_point(self, point: Vec3) -> bool:
        return all(self._distance(plane, point) >= 0.0 for plane in self.planes)

    def intersects_sphere(self, center: Vec3, radius: float) -> bool:
        for plane in self.planes:
            if self._distance(plane, center) < -radius:
                return False
        return True

    def intersects(self, sphere: BoundingSphere) -> bool:
        return self.intersects_sphere(sphere.center, sphere.radius)
