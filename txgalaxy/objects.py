from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from txgalaxy.constants import ObjectId, Vec3

DEFAULT_WEIGHT = 1.0


@dataclass(frozen=True)
class SpaceObject:
    id: ObjectId
    position: Vec3
    weight: float = DEFAULT_WEIGHT


def normalize_position(position: Any) -> Vec3 | None:
    try:
        x, y, z = position
        point = (float(x), float(y), float(z))
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(v) for v in point):
        return None
    return point


def normalize_weight(weight: Any) -> float:
    try:
        value = float(weight)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or value < 0.0:
        return 0.0
    return value


def validate_object(obj: Any) -> SpaceObject | None:
    """Return a clean copy of ``obj`` or ``None`` when it cannot be indexed."""
    if isinstance(obj, Mapping):
        object_id, position, weight = obj.get("id"), obj.get("position"), obj.get("weight", DEFAULT_WEIGHT)
    else:
        object_id = getattr(obj, "id", None)
        position = getattr(obj, "position", None)
        weight = getattr(obj, "weight", DEFAULT_WEIGHT)
    # str or int only; bool is an int subclass.
    if not isinstance(object_id, (str, int)) or isinstance(object_id, bool):
        return None
    point = normalize_position(position)
    if point is None:
        return None
    return SpaceObject(id=object_id, position=point, weight=normalize_weight(weight))
