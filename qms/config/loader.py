"""
Settings loader for the QMS inspection core.

Loads config/settings.yaml, validates it against the pydantic schema,
applies environment overrides, and caches the result per path.

Resolution order for the file:
    1. explicit `config_path` argument
    2. QMS_CONFIG environment variable
    3. config/settings.yaml found by walking up from this file

Environment overrides applied after validation:
    QMS_DATA_PATH  → storage.data_path
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from qms.config.schema import QMSSettings
from qms.exceptions import ConfigurationError

# Module-level cache: resolved path -> QMSSettings
_loaded_settings: dict[str, QMSSettings] = {}


def find_settings_file() -> Optional[Path]:
    """Locate config/settings.yaml relative to the project root."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / "config" / "settings.yaml"
        if candidate.is_file():
            return candidate
    return None


def load_settings(config_path: Optional[str | Path] = None) -> QMSSettings:
    """
    Load and validate settings.

    With no file found anywhere, the schema defaults are used.

    Raises:
        ConfigurationError: If the file is missing (when named
            explicitly), empty, not YAML, or fails validation.
    """
    explicit = config_path or os.environ.get("QMS_CONFIG")
    path = Path(explicit) if explicit else find_settings_file()

    cache_key = str(path.resolve()) if path else "<defaults>"
    if cache_key not in _loaded_settings:
        _loaded_settings[cache_key] = _read_settings(path)
    return _apply_env_overrides(_loaded_settings[cache_key])


def _read_settings(path: Optional[Path]) -> QMSSettings:
    if path is None:
        settings = QMSSettings()
    else:
        if not path.exists():
            raise ConfigurationError(
                f"Settings file not found: {path}", config_path=str(path)
            )
        try:
            with open(path, "r") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Settings file is not valid YAML: {path}\n{e}",
                config_path=str(path),
            ) from e

        if raw is None:
            raise ConfigurationError(
                f"Settings file is empty: {path}", config_path=str(path)
            )
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping: {path}",
                config_path=str(path),
            )

        try:
            settings = QMSSettings(**raw)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid settings in {path}:\n{e}",
                config_path=str(path),
                details={"errors": e.errors(include_url=False)},
            ) from e

    return settings


def _apply_env_overrides(settings: QMSSettings) -> QMSSettings:
    """Overlay environment variables; read on every call, never cached."""
    data_path = os.environ.get("QMS_DATA_PATH", "").strip()
    if data_path:
        settings = settings.model_copy(
            update={"storage": settings.storage.model_copy(update={"data_path": data_path})}
        )
    return settings


def clear_settings_cache() -> None:
    """Forget cached settings (tests, or after editing the file)."""
    _loaded_settings.clear()
