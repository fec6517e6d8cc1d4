from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

import trainer_config
from trainer_config import AttemptConfig, InputConfig, TimingConfig, TrainerConfig, load_config, to_json

ENV_NAMES = (
    "JUSTFRAME_CONFIG_PATH",
    "JUSTFRAME_COOLDOWN_MS",
    "JUSTFRAME_RECOGNIZER_POLICY",
    "JUSTFRAME_CLASSIFIER_POLICY",
    "JUSTFRAME_MAX_MOTION_SPAN_FRAMES",
    "JUSTFRAME_STARTUP_FRAMES",
    "JUSTFRAME_GAMEPAD_LATENCY_OFFSET_MS",
    "JUSTFRAME_LOG_LEVEL",
)


@pytest.fixture
def isolated_config(monkeypatch, tmp_path: Path) -> Path:  # noqa: ANN001
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(trainer_config, "user_config_dir", lambda *_args: str(tmp_path / "user"))
    return tmp_path


def test_defaults_when_no_file_exists(isolated_config: Path) -> None:
    config, path = load_config()

    assert path is None
    assert config.timing.max_motion_span_frames == 20
    assert config.timing.startup_frames == 11
    assert config.attempt.cooldown_ms == 200.0
    assert config.attempt.recognizer_policy == "structural_scan"
    assert config.attempt.classifier_policy == "frame_count"
    assert config.buffer.ttl_ms == 500.0
    assert config.input.axis_press_threshold == 0.8
    assert config.input.axis_release_threshold == 0.5
    assert config.bindings is None


def test_cwd_file_is_loaded(isolated_config: Path) -> None:
    (isolated_config / "justframe_config.json").write_text(
        json.dumps({"attempt": {"cooldown_ms": 150}, "bindings": {"down": {"keyboard": "j"}}}),
        encoding="utf-8",
    )

    config, path = load_config()

    assert path is not None
    assert path.resolve() == (isolated_config / "justframe_config.json").resolve()
    assert config.attempt.cooldown_ms == 150.0
    assert config.bindings == {"down": {"keyboard": "j"}}


def test_environment_overrides_file_values(isolated_config: Path, monkeypatch) -> None:  # noqa: ANN001
    config_path = isolated_config / "custom.json"
    config_path.write_text(json.dumps({"timing": {"startup_frames": 12}}), encoding="utf-8")
    monkeypatch.setenv("JUSTFRAME_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("JUSTFRAME_STARTUP_FRAMES", "10")
    monkeypatch.setenv("JUSTFRAME_CLASSIFIER_POLICY", "Millisecond_Window")
    monkeypatch.setenv("JUSTFRAME_GAMEPAD_LATENCY_OFFSET_MS", "4.5")
    monkeypatch.setenv("JUSTFRAME_LOG_LEVEL", "debug")
    monkeypatch.setenv("JUSTFRAME_COOLDOWN_MS", "not a number")

    config, path = load_config()

    assert path == config_path
    assert config.timing.startup_frames == 10
    assert config.attempt.classifier_policy == "millisecond_window"
    assert config.input.gamepad_latency_offset_ms == 4.5
    assert config.logging.level == "DEBUG"
    assert config.attempt.cooldown_ms == 200.0


def test_explicit_missing_path_raises(isolated_config: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("JUSTFRAME_CONFIG_PATH", str(isolated_config / "missing.json"))

    with pytest.raises(FileNotFoundError):
        load_config()


def test_invalid_json_and_values_raise_value_error(isolated_config: Path) -> None:
    broken = isolated_config / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    invalid = isolated_config / "invalid.json"
    invalid.write_text(json.dumps({"attempt": {"recognizer_policy": "guess"}}), encoding="utf-8")
    not_object = isolated_config / "list.json"
    not_object.write_text("[]", encoding="utf-8")

    for path in (broken, invalid, not_object):
        with pytest.raises(ValueError):
            load_config(path)


def test_models_are_frozen_and_validated() -> None:
    config = TrainerConfig()

    with pytest.raises(ValidationError):
        config.attempt.cooldown_ms = 10.0  # type: ignore[misc]
    with pytest.raises(ValidationError):
        InputConfig(axis_press_threshold=0.4, axis_release_threshold=0.5)
    with pytest.raises(ValidationError):
        TimingConfig(top_window_min_ms=1.0)
    with pytest.raises(ValidationError):
        AttemptConfig(classifier_policy="vibes")


def test_to_json_round_trips() -> None:
    config = TrainerConfig(attempt=AttemptConfig(cooldown_ms=120.0))

    assert TrainerConfig.model_validate(json.loads(to_json(config))) == config
