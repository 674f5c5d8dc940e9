import json

import pytest

from txgalaxy.debug.profiler import PassProfiler, percentile


def test_sections_are_attributed_to_the_enclosing_pass():
    profiler = PassProfiler(enabled=True, slow_pass_ms=0.0)
    with profiler.measure_pass("visibility") as context:
        with profiler.section("visibility.chunks"):
            pass
        with profiler.section("optimizer.lod"):
            pass
        context["visible_count"] = 3

    summary = profiler.summary()
    assert summary["passes_ms"]["pass.visibility"]["count"] == 1.0
    assert set(summary["sections_ms"]) == {"visibility.chunks", "optimizer.lod"}
    slow = summary["slow_passes"][0]
    assert slow["kind"] == "visibility"
    assert slow["context"] == {"visible_count": 3}
    assert set(slow["sections_ms"]) == {"visibility.chunks", "optimizer.lod"}


def test_fast_passes_are_timed_but_not_kept_as_slow():
    profiler = PassProfiler(enabled=True, slow_pass_ms=1e9)
    for _ in range(3):
        with profiler.measure_pass("visibility"):
            pass
    assert profiler.summary()["passes_ms"]["pass.visibility"]["count"] == 3.0
    assert list(profiler.slow_passes) == []


def test_pass_is_recorded_when_its_body_raises():
    profiler = PassProfiler(enabled=True)
    with pytest.raises(RuntimeError):
        with profiler.measure_pass("visibility"):
            raise RuntimeError("boom")
    assert profiler.summary()["passes_ms"]["pass.visibility"]["count"] == 1.0

    # Sections after the failed pass are no longer attributed to it.
    with profiler.section("loader.drain"):
        pass
    assert profiler.summary()["sections_ms"]["loader.drain"]["count"] == 1.0


def test_samples_are_bounded():
    profiler = PassProfiler(enabled=True, max_samples=4)
    for _ in range(10):
        with profiler.section("index.assign_batch"):
            pass
    assert profiler.summary()["sections_ms"]["index.assign_batch"]["count"] == 4.0


def test_disabled_profiler_records_nothing(tmp_path):
    profiler = PassProfiler(enabled=False)
    with profiler.measure_pass("visibility") as context:
        with profiler.section("visibility.chunks"):
            pass
        context["ignored"] = True
    summary = profiler.summary()
    assert summary["passes_ms"] == {}
    assert summary["sections_ms"] == {}
    assert profiler.write_report(tmp_path) is None


def test_percentile_uses_nearest_rank():
    values = [float(v) for v in range(10, 0, -1)]
    assert percentile(values, 0.5) == 5.0
    assert percentile(values, 1.0) == 10.0
    assert percentile([], 0.95) == 0.0


def test_write_report(tmp_path):
    profiler = PassProfiler(enabled=True)
    for _ in range(3):
        with profiler.section("loader.drain"):
            pass
    with profiler.measure_pass("visibility"):
        pass
    txt_path, json_path = profiler.write_report(tmp_path / "reports")

    report = json.loads(json_path.read_text(encoding="utf-8"))
    assert report["sections_ms"]["loader.drain"]["count"] == 3.0
    assert "pass.visibility" in report["passes_ms"]
    text = txt_path.read_text(encoding="utf-8")
    assert text.startswith("Universe Optimizer Report")
    assert "- loader.drain: count=3" in text
    assert "- pass.visibility: count=1" in text
