import pytest

from txgalaxy.config import OptimizerConfig
from txgalaxy.performance.frame_rate import DynamicParams, FrameRateMonitor


def _feed(monitor, start_ms, interval_ms, count):
    now = start_ms
    for _ in range(count):
        now += interval_ms
        monitor.sample(now)
    return now


def _config(**overrides):
    values = dict(
        render_distance=3,
        max_objects_per_chunk=50,
        fps_window=10,
        stabilization_samples=10,
    )
    values.update(overrides)
    return OptimizerConfig(**values)


def test_smoothed_fps_defaults_to_target_without_samples():
    monitor = FrameRateMonitor(_config())
    assert monitor.smoothed_fps() == 60.0
    monitor.sample(1000.0)
    assert monitor.smoothed_fps() == 60.0


def test_smoothed_fps_is_a_windowed_average():
    monitor = FrameRateMonitor(_config(stabilization_samples=1000))
    monitor.sample(0.0)
    now = _feed(monitor, 0.0, 100.0, 10)
    assert monitor.smoothed_fps() == pytest.approx(10.0)

    # The window only holds ten intervals, so older slow frames fall out.
    _feed(monitor, now, 20.0, 10)
    assert monitor.sample_count == 10
    assert monitor.smoothed_fps() == pytest.approx(50.0)


def test_out_of_order_samples_are_ignored():
    monitor = FrameRateMonitor(_config())
    monitor.sample(100.0)
    monitor.sample(120.0)
    monitor.sample(110.0)
    monitor.sample(120.0)
    assert monitor.sample_count == 1
    assert monitor.smoothed_fps() == pytest.approx(50.0)


def test_sustained_low_fps_shrinks_by_exactly_one_step():
    monitor = FrameRateMonitor(_config())
    monitor.sample(0.0)
    _feed(monitor, 0.0, 50.0, 10)
    assert monitor.current_params() == DynamicParams(render_distance=2, max_objects_per_chunk=40)


def test_single_slow_frame_does_not_adjust():
    monitor = FrameRateMonitor(_config())
    monitor.sample(0.0)
    now = _feed(monitor, 0.0, 16.0, 5)
    now = _feed(monitor, now, 400.0, 1)
    assert monitor.current_params() == DynamicParams(render_distance=3, max_objects_per_chunk=50)


def test_sustained_high_fps_grows_and_clamps_at_maximum():
    monitor = FrameRateMonitor(_config())
    now = 0.0
    monitor.sample(now)
    now = _feed(monitor, now, 10.0, 10)
    assert monitor.current_params() == DynamicParams(render_distance=4, max_objects_per_chunk=60)
    now = _feed(monitor, now, 10.0, 10)
    assert monitor.current_params() == DynamicParams(render_distance=4, max_objects_per_chunk=70)
    _feed(monitor, now, 10.0, 30)
    assert monitor.current_params() == DynamicParams(render_distance=4, max_objects_per_chunk=70)


def test_low_fps_never_goes_below_minimum():
    monitor = FrameRateMonitor(_config())
    monitor.sample(0.0)
    _feed(monitor, 0.0, 100.0, 100)
    assert monitor.current_params() == DynamicParams(render_distance=2, max_objects_per_chunk=30)


def test_adjustments_can_be_suspended():
    monitor = FrameRateMonitor(_config())
    monitor.adjustments_enabled = False
    monitor.sample(0.0)
    _feed(monitor, 0.0, 100.0, 30)
    assert monitor.current_params() == DynamicParams(render_distance=3, max_objects_per_chunk=50)


def test_set_params_clamps_to_bounds():
    monitor = FrameRateMonitor(_config())
    assert monitor.set_params(99, -5) == DynamicParams(render_distance=4, max_objects_per_chunk=30)
