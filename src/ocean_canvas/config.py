"""YAML-backed game configuration."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional, get_origin, get_type_hints

import yaml

from ocean_canvas.classifier import DrawPolicy
from ocean_canvas.session import DEFAULT_WORDS


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass
class CanvasConfig:
    width: int = 800
    height: int = 600
    line_width: int = 6
    image_format: str = ".jpg"
    jpeg_quality: int = 90


@dataclass
class GestureConfig:
    policy: str = DrawPolicy.INDEX_EXTENSION.value
    pinch_threshold: float = 0.05
    smoothing: float = 0.5
    release_after: int = 1
    mirror: bool = True


@dataclass
class RoundConfig:
    seconds: int = 20
    tick_interval: float = 1.0
    words: list[str] = field(default_factory=lambda: list(DEFAULT_WORDS))


@dataclass
class RecognitionConfig:
    interval: float = 1.5
    model: str = "gemini-1.5-flash"
    api_key: str = ""
    api_key_env: str = "GEMINI_API_KEY"
    timeout: float = 10.0
    mock: bool = False

    def resolve_api_key(self) -> str:
        return self.api_key or os.environ.get(self.api_key_env, "")


@dataclass
class CameraConfig:
    enabled: bool = True
    index: int = 0
    width: int = 640
    height: int = 480


_SECTIONS = {
    "canvas": CanvasConfig,
    "gesture": GestureConfig,
    "round": RoundConfig,
    "recognition": RecognitionConfig,
    "camera": CameraConfig,
}


def _coerce(where: str, value, hint):
    """Convert a raw YAML value to the field's declared type."""
    if hint is bool:
        if isinstance(value, bool):
            return value
        raise ConfigError(f"{where} must be true or false, got {value!r}")

    if hint in (int, float):
        if isinstance(value, bool):
            raise ConfigError(f"{where} must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{where} must be a number, got {value!r}") from None
        if hint is int:
            if not number.is_integer():
                raise ConfigError(f"{where} must be a whole number, got {value!r}")
            return int(number)
        return number

    if hint is str:
        if isinstance(value, str):
            return value
        raise ConfigError(f"{where} must be a string, got {value!r}")

    if get_origin(hint) is list:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{where} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    return value


def _build_section(name: str, cls, data: Optional[dict]):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    hints = get_type_hints(cls)
    known = {f.name for f in fields(cls)}
    return cls(**{
        k: _coerce(f"{name}.{k}", v, hints[k])
        for k, v in data.items() if k in known
    })


@dataclass
class GameConfig:
    canvas: CanvasConfig = field(default_factory=CanvasConfig)
    gesture: GestureConfig = field(default_factory=GestureConfig)
    round: RoundConfig = field(default_factory=RoundConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)

    def validate(self) -> GameConfig:
        """Check value ranges. Returns self for chaining."""
        try:
            DrawPolicy(self.gesture.policy)
        except ValueError:
            choices = ", ".join(p.value for p in DrawPolicy)
            raise ConfigError(
                f"Unknown gesture policy '{self.gesture.policy}' (choose from {choices})"
            ) from None

        if self.canvas.width <= 0 or self.canvas.height <= 0:
            raise ConfigError("canvas width and height must be positive")
        if self.canvas.line_width <= 0:
            raise ConfigError("canvas line_width must be positive")
        if not 0.0 < self.gesture.smoothing <= 1.0:
            raise ConfigError("gesture smoothing must be in (0, 1]")
        if self.gesture.pinch_threshold <= 0:
            raise ConfigError("gesture pinch_threshold must be positive")
        if self.gesture.release_after < 1:
            raise ConfigError("gesture release_after must be >= 1")
        if self.round.seconds < 1:
            raise ConfigError("round seconds must be >= 1")
        if self.round.tick_interval <= 0:
            raise ConfigError("round tick_interval must be positive")
        if not self.round.words:
            raise ConfigError("round words must not be empty")
        if self.recognition.interval <= 0:
            raise ConfigError("recognition interval must be positive")
        return self

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> GameConfig:
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")
        sections = {
            name: _build_section(name, section_cls, data.get(name))
            for name, section_cls in _SECTIONS.items()
        }
        return cls(**sections).validate()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_yaml(cls, path: str | Path) -> GameConfig:
        """Load configuration from a YAML file. Missing keys use defaults."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def load_config(path: Optional[str | Path] = None) -> GameConfig:
    """Load from `path` if given, else defaults."""
    if path is None:
        return GameConfig().validate()
    return GameConfig.from_yaml(path)
