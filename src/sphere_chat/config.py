"""
Settings for the client and the CLI.

Defaults come from the environment; the CLI overlays ~/.sphere/config.json
(or the file named by SPHERE_CONFIG).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from sphere_chat.errors import ConfigError

CONFIG_DIR = Path.home() / ".sphere"
CONFIG_FILE = CONFIG_DIR / "config.json"
DEFAULT_BASE_URL = "http://localhost:5000"


class Settings(BaseModel):
    base_url: str = Field(default_factory=lambda: os.getenv("SPHERE_BASE_URL", DEFAULT_BASE_URL))
    analysis_url: Optional[str] = Field(default_factory=lambda: os.getenv("SPHERE_ANALYSIS_URL"))
    responder_url: Optional[str] = Field(default_factory=lambda: os.getenv("SPHERE_RESPONDER_URL"))
    log_level: str = Field(
        default_factory=lambda: os.getenv("SPHERE_LOG_LEVEL", "WARNING"), validate_default=True,
    )

    page_size: int = Field(default=20, ge=1)
    language: str = "en"
    target_language: str = "hi"
    history_window: int = Field(default=10, ge=0)
    pace_replies: bool = False

    request_timeout: float = Field(default=30.0, gt=0)
    analysis_timeout: float = Field(default=15.0, gt=0)
    reply_timeout: float = Field(default=60.0, gt=0)
    ready_timeout: float = Field(default=15.0, gt=0)

    cache_path: Optional[Path] = None

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def effective_analysis_url(self) -> str:
        return self.analysis_url or self.base_url

    @property
    def effective_responder_url(self) -> str:
        return self.responder_url or self.base_url


def config_path() -> Path:
    return Path(os.getenv("SPHERE_CONFIG", str(CONFIG_FILE)))


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    try:
        return json.loads((path or config_path()).read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def save_config(cfg: dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Settings:
    """Environment defaults, then the config file, then explicit overrides."""
    values = {k: v for k, v in load_config(path).items() if k in Settings.model_fields}
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}")
