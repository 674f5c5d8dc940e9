from __future__ import annotations

import math
from dataclasses import dataclass

from pyglet.math import Mat4, Vec3

from txgalaxy.constants import Vec3 as Point


@dataclass(frozen=True)
class Camera:
    position: Point
    view: Mat4
    projection: Mat4

    @property
    def view_projection(self) -> Mat4:
        return self.projection @ self.view

    def distance_to(self, point: Point) -> float:
        px, py, pz = self.position
        x, y, z = point
        return math.sqrt((x - px) * (x - px) + (y - py) * (y - py) + (z - pz) * (z - pz))

    @classmethod
    def looking_at(
        cls,
        position: Point,
        target: Point,
        aspect: float = 16.0 / 9.0,
        fov: float = 75.0,
        z_near: float = 0.1,
        z_far: float = 10000.0,
        up: Point = (0.0, 1.0, 0.0),
    ) -> Camera:
        view = Mat4.look_at(Vec3(*position), Vec3(*target), Vec3(*up))
        projection = Mat4.perspective_projection(aspect, z_near=z_near, z_far=z_far, fov=fov)
        return cls(tuple(float(v) for v in position), view, projection)

    @classmethod
    def from_yaw_pitch(
        cls,
        position: Point,
        rotation: tuple[float, float],
        aspect: float = 16.0 / 9.0,
        fov: float = 75.0,
        z_near: float = 0.1,
        z_far: float = 10000.0,
    ) -> Camera:
        yaw_deg, pitch_deg = rotation
        px, py, pz = position
        yaw = Mat4.from_rotation(math.radians(yaw_deg), Vec3(0.0, 1.0, 0.0))
        pitch = Mat4.from_rotation(math.radians(-pitch_deg), Vec3(1.0, 0.0, 0.0))
        translate = Mat4.from_translation(Vec3(-px, -py, -pz))
        projection = Mat4.perspective_projection(aspect, z_near=z_near, z_far=z_far, fov=fov)
        return cls((float(px), float(py), float(pz)), pitch @ yaw @ translate, projection)
