import pytest

from txgalaxy.config import ConfigError, OptimizerConfig


def test_defaults():
    config = OptimizerConfig()
    assert config.chunk_size == 250.0
    assert config.render_distance == 2
    assert config.max_objects_per_chunk == 40
    assert config.warmup_stages == ((3, 50), (4, 70))
    assert config.max_render_radius == 1000.0


def test_from_file_parses_typed_values(tmp_path):
    path = tmp_path / "optimizer.cfg"
    path.write_text(
        "# tuned for the demo\n"
        "\n"
        "chunk_size = 100\n"
        "render_distance = 3\n"
        "warmup_enabled = off\n"
        "warmup_stages = 3:40, 4:60, 4:70\n"
        "warmup_stage_seconds = 0.5, 1, 2\n",
        encoding="utf-8",
    )
    config = OptimizerConfig.from_file(path, high_fps=50.0)
    assert config.chunk_size == 100.0
    assert isinstance(config.chunk_size, float)
    assert config.render_distance == 3
    assert config.warmup_enabled is False
    assert config.warmup_stages == ((3, 40), (4, 60), (4, 70))
    assert config.warmup_stage_seconds == (0.5, 1.0, 2.0)
    assert config.high_fps == 50.0


@pytest.mark.parametrize(
    "line, message",
    [
        ("render_distanse = 3", "unknown setting"),
        ("render_distance = far", "bad value"),
        ("warmup_enabled = maybe", "bad value"),
        ("render_distance", "expected 'key = value'"),
    ],
)
def test_from_file_reports_the_offending_line(tmp_path, line, message):
    path = tmp_path / "optimizer.cfg"
    path.write_text(f"chunk_size = 250\n{line}\n", encoding="utf-8")
    with pytest.raises(ConfigError, match=message) as excinfo:
        OptimizerConfig.from_file(path)
    assert ":2:" in str(excinfo.value)


@pytest.mark.parametrize(
    "overrides",
    [
        {"chunk_size": 0.0},
        {"chunk_size": float("nan")},
        {"assign_batch_size": 0},
        {"min_render_distance": 5, "max_render_distance": 4},
        {"low_fps": 60.0, "high_fps": 30.0},
        {"lod_high_fraction": 0.9, "lod_medium_fraction": 0.5},
        {"warmup_stage_seconds": (1.0,)},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ConfigError):
        OptimizerConfig(**overrides)


def test_replace_validates_and_leaves_original_untouched():
    config = OptimizerConfig()
    tuned = config.replace(render_distance=4, warmup_enabled=False)
    assert tuned.render_distance == 4
    assert config.render_distance == 2
    with pytest.raises(ConfigError):
        config.replace(load_batch_size=0)
