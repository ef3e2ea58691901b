"""Configuration loading from YAML + environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_DATA_URL = "https://unpkg.com/zip-fill@latest/dist/zip-data.min.json"


class ZipFillConfig(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Data artifacts
    data_path: str = "dist/zip-data.min.json"
    states_path: str = "dist/states.json"
    data_url: str = DEFAULT_DATA_URL
    load_timeout_seconds: float = 10.0

    # API limits
    batch_limit: int = 100

    # Observability
    metrics_enabled: bool = True

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings):
        # Environment wins over values passed in (e.g. from YAML)
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def data_source(self) -> str:
        """Local artifact when present, otherwise the remote URL."""
        if self.data_path and Path(self.data_path).exists():
            return self.data_path
        return self.data_url or self.data_path

    @classmethod
    def from_yaml(cls, path: str | Path = "zipfill.yaml") -> ZipFillConfig:
        """Load config from YAML file, with env vars taking precedence."""
        yaml_path = Path(path)
        yaml_data: dict[str, Any] = {}

        if yaml_path.exists():
            with yaml_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            yaml_data = _flatten_yaml(raw.get("zipfill", {}))

        return cls(**yaml_data)


def _flatten_yaml(data: dict, prefix: str = "") -> dict:
    """Flatten nested YAML into flat key-value pairs for Pydantic."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten_yaml(value, full_key))
        else:
            flat[full_key] = value
    return flat
