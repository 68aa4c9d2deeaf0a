from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from pagecompare.config.schema import CompareSuiteConfig
from pagecompare.core.exceptions import ConfigurationError


class ConfigLoader:
    """Loads and validates the JSON comparison suite configuration."""

    @staticmethod
    def load(path: str | Path) -> CompareSuiteConfig:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(f"Comparison config does not exist: {config_path}")
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Comparison config is not valid JSON: {exc}") from exc
        return ConfigLoader.validate(payload)

    @staticmethod
    def validate(payload: dict) -> CompareSuiteConfig:
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Comparison config must be a JSON object, got {type(payload).__name__}")
        missing = [key for key in ("environment1", "environment2") if not payload.get(key)]
        if missing:
            raise ConfigurationError(f"Comparison config is missing {', '.join(missing)}")
        if not payload.get("paths"):
            raise ConfigurationError("Comparison config is missing a non-empty paths list")
        try:
            return CompareSuiteConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
