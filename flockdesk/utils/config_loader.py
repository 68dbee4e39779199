"""
Settings loader for Flockdesk.

Loads console settings from an optional YAML file, then applies
FLOCKDESK_* environment overrides (a .env file is read first).
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


# Default settings file (relative to project root)
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "console.yaml"

ENV_PREFIX = "FLOCKDESK_"


class ConsoleSettings(BaseModel):
    api_base_url: str = "http://localhost:5000/api/v1"
    api_token: Optional[str] = None
    request_timeout: float = Field(20.0, gt=0)  # seconds
    log_level: str = "INFO"


def load_settings(path: Path | None = None, env_file: Path | None = None) -> ConsoleSettings:
    """
    Load console settings.

    Args:
        path: YAML settings file. When omitted the default file is used if
            it exists.
        env_file: Optional .env file (default: search from the working directory)

    Returns:
        Validated ConsoleSettings

    Raises:
        FileNotFoundError: If an explicit `path` doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If a value is invalid
    """
    values: dict[str, Any] = {}

    if path is not None and not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    file_path = path or DEFAULT_CONFIG_PATH
    if file_path.exists():
        with open(file_path, "r", encoding="utf-8") as f:
            values.update(yaml.safe_load(f) or {})

    load_dotenv(env_file)
    for name in ConsoleSettings.model_fields:
        env_value = os.environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    return ConsoleSettings.model_validate(values)
