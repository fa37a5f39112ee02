"""Configuration models for the grepfuzz blur/sharp filter."""

from __future__ import annotations

import json
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, model_validator

from logging_utils import get_logger

LOGGER = get_logger(__name__)

# Keys used by the original TOML layout: [detectors] laplacian_threshold = ...
_LEGACY_DETECTOR_KEYS = {
    "laplacian_threshold": "laplacian",
    "tenengrad_threshold": "tenengrad",
    "opencv_laplacian_threshold": "secondary_laplacian",
}


class FilterMode(str, Enum):
    """Which classification verdict passes the filter."""

    PASS_BLURRY = "blurry"
    PASS_SHARP = "sharp"

    def keeps(self, overall_blurry: bool) -> bool:
        if self is FilterMode.PASS_BLURRY:
            return overall_blurry
        return not overall_blurry


class OutputStyle(str, Enum):
    """Rendering style for classification results."""

    TERSE = "terse"
    VERBOSE = "verbose"
    ASCII = "ascii"


class Thresholds(BaseModel):
    """Per-metric thresholds, resolved once before a run starts."""

    model_config = ConfigDict(frozen=True)

    laplacian: float = Field(0.1, ge=0.0)
    tenengrad: float = Field(1000.0, ge=0.0)
    secondary_laplacian: float = Field(0.1, ge=0.0)


class RunConfig(BaseModel):
    """Top-level run configuration."""

    thresholds: Thresholds = Thresholds()
    filter_mode: FilterMode = FilterMode.PASS_BLURRY
    output_style: OutputStyle = OutputStyle.TERSE
    include_secondary: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    synthetic_size: PositiveInt = 256

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_detectors(cls, data: Any) -> Any:
        """Map the legacy ``[detectors]`` table onto ``thresholds``."""

        if not isinstance(data, dict) or "detectors" not in data:
            return data
        data = dict(data)
        detectors = data.pop("detectors") or {}
        if not isinstance(detectors, dict):
            raise ValueError("detectors must be a table of *_threshold values")
        thresholds = dict(data.get("thresholds") or {})
        for legacy_key, key in _LEGACY_DETECTOR_KEYS.items():
            value = detectors.get(legacy_key)
            if value is not None:
                thresholds.setdefault(key, value)
        data["thresholds"] = thresholds
        return data


def default_config() -> RunConfig:
    """Return a ready-to-use default configuration."""

    return RunConfig()


def config_to_dict(config: RunConfig) -> Dict[str, Any]:
    """Serialize config into plain JSON-compatible types."""

    return config.model_dump(mode="json")


def load_config(path: Path) -> RunConfig:
    """Load config from a TOML, YAML or JSON file.

    Unparseable files and files whose top level is not a mapping raise ``ValueError``.
    """

    suffix = path.suffix.lower()
    if suffix == ".toml":
        with path.open("rb") as f:
            data = tomllib.load(f)
    elif suffix in {".yaml", ".yml"}:
        import yaml

        with path.open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a mapping, got {type(data).__name__}")
    return RunConfig(**data)


def save_config(config: RunConfig, path: Path) -> None:
    """Persist config to disk as YAML or JSON."""

    if path.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(config_to_dict(config), f, sort_keys=False)
    else:
        with path.open("w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2)


def resolve_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> RunConfig:
    """Merge defaults, an optional config file and CLI overrides.

    Overrides win over the file, the file wins over model defaults. Threshold
    overrides use the ``Thresholds`` field names; ``None`` values are ignored.
    An unreadable or invalid config file is reported and replaced by defaults.
    """

    config = default_config()
    if config_path is not None:
        try:
            config = load_config(config_path)
        except (OSError, ValueError, ValidationError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to load config %s: %s. Using defaults.", config_path, exc)
            config = default_config()

    if not overrides:
        return config

    data = config.model_dump()
    threshold_fields = set(Thresholds.model_fields)
    for key, value in overrides.items():
        if value is None:
            continue
        if key in threshold_fields:
            data["thresholds"][key] = value
        else:
            data[key] = value
    return RunConfig(**data)
