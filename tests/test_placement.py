import math

from txgalaxy.placement import GalaxyPlacer


def test_positions_are_deterministic_per_seed():
    assert GalaxyPlacer(7).positions(200) == GalaxyPlacer(7).positions(200)
    assert GalaxyPlacer(7).positions(200) != GalaxyPlacer(8).positions(200)


def test_positions_stay_within_the_disc():
    placer = GalaxyPlacer(3, min_radius=240.0, max_radius=960.0)
    for x, y, z in placer.positions(500):
        assert all(math.isfinite(v) for v in (x, y, z))
        # Radial jitter is at most 15% either side of the layer radius.
        assert math.hypot(x, z) <= 960.0 * 1.15 + 1e-9


def test_place_builds_space_objects():
    placer = GalaxyPlacer(1)
    objects = placer.place(["a", "b", "c"], weights=[5.0, 1.0, 0.0])
    assert [o.id for o in objects] == ["a", "b", "c"]
    assert [o.weight for o in objects] == [5.0, 1.0, 0.0]
    assert objects[1].position == placer.position(1, 3)
