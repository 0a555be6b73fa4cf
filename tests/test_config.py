from pathlib import Path

import pytest

from issue_graph.core.config import ConfigError, EngineConfig, load_config, load_config_file


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg == EngineConfig()
    assert cfg.layout.crossing_iterations == 4
    assert cfg.schedule.default_expected_days == 3
    assert cfg.importance.priority_weights[0] == 5.0


def test_file_overrides_keys():
    cfg = load_config("examples/config.yaml")
    assert cfg.layout.node_width == 200
    assert cfg.layout.horizontal_gap == 50
    assert cfg.layout.vertical_gap == 40
    assert cfg.schedule.default_expected_days == 2
    assert cfg.importance.priority_weighted is True


def test_empty_file_is_defaults(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_file(p) == EngineConfig()


def test_unknown_key_rejected(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("layout:\n  node_wdith: 10\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="node_wdith"):
        load_config_file(p)


def test_unknown_section_rejected(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("render: {}\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="render"):
        load_config_file(p)


def test_wrong_types_rejected(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("schedule:\n  closed_takes_time: 1\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(p)

    p.write_text("layout:\n  crossing_iterations: 2.5\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(p)


def test_priority_weights_override(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("importance:\n  priority_weights: {0: 10, 4: 1}\n", encoding="utf-8")
    cfg = load_config_file(p)
    assert cfg.importance.priority_weights == {0: 10.0, 4: 1.0}


def test_malformed_yaml_is_a_config_error(tmp_path: Path):
    p = tmp_path / "c.yaml"
    p.write_text("layout: [node_width: 1\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config_file(p)
