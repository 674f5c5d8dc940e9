import argparse
import logging
import math
import random

from pyglet.clock import Clock

from txgalaxy.config import OptimizerConfig
from txgalaxy.debug.profiler import PassProfiler
from txgalaxy.logging_config import setup_logging
from txgalaxy.optimizer import UniverseOptimizer
from txgalaxy.placement import GalaxyPlacer
from txgalaxy.visibility.camera import Camera

logger = logging.getLogger("txgalaxy.demo")

BASE_FRAME_MS = 8.0
FRAME_MS_PER_OBJECT = 0.02
ORBIT_RADIUS = 1400.0
ORBIT_HEIGHT = 250.0


class SimulatedTime:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def orbit_camera(frame: int) -> Camera:
    angle = frame * 0.004
    position = (math.cos(angle) * ORBIT_RADIUS, ORBIT_HEIGHT, math.sin(angle) * ORBIT_RADIUS)
    return Camera.looking_at(position, (0.0, 0.0, 0.0))


def run(seed: int = 90125, galaxies: int = 3000, frames: int = 1200, config_path: str | None = None,
        report_dir: str = "profiling") -> None:
    config = OptimizerConfig.from_file(config_path) if config_path else OptimizerConfig()
    sim_time = SimulatedTime()
    profiler = PassProfiler(enabled=True)
    optimizer = UniverseOptimizer(config=config, clock=Clock(time_function=sim_time), profiler=profiler)

    rng = random.Random(seed)
    placer = GalaxyPlacer(seed)
    ids = [f"galaxy-{i}" for i in range(galaxies)]
    # Weight stands in for the galaxy's transaction count.
    weights = [float(rng.randint(1, 100)) for _ in ids]
    objects = placer.place(ids, weights)

    optimizer.initialize(orbit_camera(0))
    optimizer.update_chunks(objects)

    for frame in range(frames):
        optimizer.update_camera(orbit_camera(frame))
        optimizer.tick()
        rendered = optimizer.visible_object_ids()
        sim_time.advance((BASE_FRAME_MS + FRAME_MS_PER_OBJECT * len(rendered)) / 1000.0)
        if frame % 120 == 0:
            stats = optimizer.stats()
            logger.info(
                "frame=%d rendered=%d visible=%d loaded=%d queued=%d fps=%.1f distance=%d warmup=%s",
                frame,
                len(rendered),
                stats["visible_count"],
                stats["loaded_count"],
                stats["queued_count"],
                stats["smoothed_fps"],
                stats["render_distance"],
                stats["warmup_active"],
            )

    optimizer.shutdown()
    report_paths = profiler.write_report(report_dir)
    if report_paths is not None:
        txt_path, json_path = report_paths
        logger.info("Wrote optimizer report: %s", txt_path)
        logger.info("Wrote optimizer report: %s", json_path)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Headless transaction galaxy visibility demo")
    parser.add_argument("--seed", type=int, default=90125, help="Placement seed (same seed => same universe)")
    parser.add_argument("--galaxies", type=int, default=3000, help="Number of galaxies to place")
    parser.add_argument("--frames", type=int, default=1200, help="Number of simulated frames")
    parser.add_argument("--config", default=None, help="Optional key = value optimizer settings file")
    parser.add_argument("--report-dir", default="profiling", help="Where to write the profiler report")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    run(
        seed=args.seed,
        galaxies=args.galaxies,
        frames=args.frames,
        config_path=args.config,
        report_dir=args.report_dir,
    )
