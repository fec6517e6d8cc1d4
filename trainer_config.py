"""
trainer_config.py

Typed configuration loading and validation for JustFrame.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included, models frozen)
- Support environment variable overrides
- Hand the resulting TrainerConfig to component constructors. No module reads a global constant table.

Config file location
- If JUSTFRAME_CONFIG_PATH is set, that file is used and must exist.
- Otherwise JustFrame searches these paths in order and uses the first one that exists:
  1) ./justframe_config.json (current working directory)
  2) <user config dir>/JustFrame/JustFrame/justframe_config.json
  3) <user config dir>/JustFrame/JustFrame/config.json
- If none exists, built-in defaults are used.

Example config file (justframe_config.json)
{
  "timing": {
    "max_motion_span_frames": 20,
    "startup_frames": 11
  },
  "attempt": {
    "cooldown_ms": 200,
    "recognizer_policy": "structural_scan",
    "classifier_policy": "frame_count"
  },
  "input": {
    "gamepad_latency_offset_ms": 0.0
  },
  "bindings": {
    "forward": {"keyboard": "d"},
    "down": {"keyboard": "s"},
    "button2": {"gamepad": 0, "button": 0}
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


RECOGNIZER_POLICIES = ("structural_scan", "template_match")
CLASSIFIER_POLICIES = ("frame_count", "millisecond_window")


class TimingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    frame_duration_ms: float = Field(default=1000.0 / 60.0, gt=0.0, description="One discrete frame in milliseconds.")
    max_motion_span_frames: int = Field(default=20, ge=1, description="Largest forward to down-forward span.")
    startup_frames: int = Field(default=11, ge=0, description="Move startup added to input frames.")
    top_window_min_ms: float = Field(default=11.67, description="Stricter millisecond window, lower bound.")
    top_window_max_ms: float = Field(default=21.67, description="Stricter millisecond window, upper bound.")
    mid_window_min_ms: float = Field(default=5.84, description="Broad millisecond window, lower bound.")
    mid_window_max_ms: float = Field(default=27.5, description="Broad millisecond window, upper bound.")
    late_threshold_ms: float = Field(default=27.5, description="Deltas above this are late successes.")

    @model_validator(mode="after")
    def validate_nested_windows(self) -> "TimingConfig":
        if not (self.mid_window_min_ms <= self.top_window_min_ms <= self.top_window_max_ms <= self.mid_window_max_ms):
            raise ValueError("top window must be nested inside the mid window")
        if self.late_threshold_ms < self.mid_window_max_ms:
            raise ValueError("late_threshold_ms must not be below mid_window_max_ms")
        return self


class InputConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    analog_deadzone: float = Field(default=0.5, ge=0.0, le=1.0, description="Stick magnitude treated as a digital press.")
    axis_press_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="Axis binding turns on above this.")
    axis_release_threshold: float = Field(default=0.5, ge=0.0, le=1.0, description="Axis binding re-arms below this.")
    gamepad_latency_offset_ms: float = Field(default=0.0, description="Added to gamepad edge timestamps.")

    @model_validator(mode="after")
    def validate_hysteresis(self) -> "InputConfig":
        if self.axis_release_threshold > self.axis_press_threshold:
            raise ValueError("axis_release_threshold must not exceed axis_press_threshold")
        return self


class BufferConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_entries: int = Field(default=20, ge=1, description="Directional entry window capacity.")
    ttl_ms: float = Field(default=500.0, gt=0.0, description="Entries older than this are purged before use.")


class AttemptConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cooldown_ms: float = Field(default=200.0, ge=0.0, description="Button 2 edges are ignored for this long after an attempt.")
    tick_interval_ms: int = Field(default=16, ge=1, description="Poll tick cadence.")
    stale_input_ms: float = Field(
        default=500.0,
        gt=0.0,
        description="Timeline frames this much older than the newest direction are dropped (at most timing.max_motion_span_frames).",
    )
    recognizer_policy: str = Field(default="structural_scan", description="structural_scan or template_match")
    classifier_policy: str = Field(default="frame_count", description="frame_count or millisecond_window")

    @field_validator("recognizer_policy")
    @classmethod
    def validate_recognizer_policy(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in RECOGNIZER_POLICIES:
            raise ValueError("recognizer_policy must be one of: " + ", ".join(RECOGNIZER_POLICIES))
        return normalized

    @field_validator("classifier_policy")
    @classmethod
    def validate_classifier_policy(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in CLASSIFIER_POLICIES:
            raise ValueError("classifier_policy must be one of: " + ", ".join(CLASSIFIER_POLICIES))
        return normalized


class HistoryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_entries: int = Field(default=100, ge=1, description="Rows kept for the presentation history feed.")


class StatsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    moving_average_window: int = Field(default=10, ge=1, description="Attempts in the delta moving average.")


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if normalized not in allowed:
            raise ValueError("level must be one of: DEBUG, INFO, WARNING, ERROR")
        return normalized


class TrainerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    timing: TimingConfig = Field(default_factory=TimingConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    attempt: AttemptConfig = Field(default_factory=AttemptConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    # Raw binding payload. bindings.binding_set_from_dict turns it into a BindingSet.
    bindings: Optional[Dict[str, Any]] = Field(default=None, description="Optional default bindings.")


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("JustFrame", "JustFrame"))
    return [
        Path.cwd() / "justframe_config.json",
        config_directory / "justframe_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("JUSTFRAME_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - JUSTFRAME_COOLDOWN_MS
    - JUSTFRAME_RECOGNIZER_POLICY
    - JUSTFRAME_CLASSIFIER_POLICY
    - JUSTFRAME_MAX_MOTION_SPAN_FRAMES
    - JUSTFRAME_STARTUP_FRAMES
    - JUSTFRAME_GAMEPAD_LATENCY_OFFSET_MS
    - JUSTFRAME_LOG_LEVEL
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            section = dict(section)
        else:
            section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    timing_section = ensure_nested(updated_config, "timing")
    input_section = ensure_nested(updated_config, "input")
    attempt_section = ensure_nested(updated_config, "attempt")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
        except ValueError:
            return

    def override_float(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = float(value_text)
        except ValueError:
            return

    override_float("JUSTFRAME_COOLDOWN_MS", attempt_section, "cooldown_ms")
    override_string("JUSTFRAME_RECOGNIZER_POLICY", attempt_section, "recognizer_policy")
    override_string("JUSTFRAME_CLASSIFIER_POLICY", attempt_section, "classifier_policy")

    override_int("JUSTFRAME_MAX_MOTION_SPAN_FRAMES", timing_section, "max_motion_span_frames")
    override_int("JUSTFRAME_STARTUP_FRAMES", timing_section, "startup_frames")

    override_float("JUSTFRAME_GAMEPAD_LATENCY_OFFSET_MS", input_section, "gamepad_latency_offset_ms")

    override_string("JUSTFRAME_LOG_LEVEL", logging_section, "level")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[TrainerConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = TrainerConfig.model_validate(json_dict)
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "(defaults)"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[TrainerConfig, Optional[Path]]:
    return load_config()


def to_json(config: TrainerConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
