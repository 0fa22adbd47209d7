"""Loads page/element configuration documents from a directory.

A config named ``pheedloop`` is read from ``pheedloop.json``,
``pheedloop.yaml`` or ``pheedloop.yml`` in the configs directory.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from invocursor.errors import ConfigInvalidError, ConfigNotFoundError
from invocursor.models.app_config import AppConfig
from invocursor.observability.logging import get_logger


logger = get_logger(__name__)

CONFIG_SUFFIXES = (".json", ".yaml", ".yml")


def read_config_file(path: Path) -> dict[str, Any]:
    """Reads a JSON or YAML document."""
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


class ConfigLoader:
    """Resolves config names to validated ``AppConfig`` documents."""

    def __init__(self, configs_dir: Union[str, Path]):
        self.configs_dir = Path(configs_dir)

    def _path_for(self, name: str) -> Optional[Path]:
        # config names are plain file stems, never paths
        if not name or Path(name).name != name:
            return None
        for suffix in CONFIG_SUFFIXES:
            candidate = self.configs_dir / f"{name}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def load_raw(self, name: str) -> Optional[dict[str, Any]]:
        """Returns the document as stored, or None when it does not exist.

        Raises:
            ConfigInvalidError: If the file is not valid JSON or YAML.
        """
        path = self._path_for(name)
        if path is None:
            return None
        try:
            return read_config_file(path)
        except (ValueError, yaml.YAMLError) as e:
            logger.warning(
                "Config could not be decoded",
                extra={"config": name, "error": str(e)},
            )
            raise ConfigInvalidError(name, str(e)) from e

    def load(self, name: str) -> AppConfig:
        """Loads and validates a config.

        Raises:
            ConfigNotFoundError: If no document exists for ``name``.
            ConfigInvalidError: If the document cannot be decoded or does
                not describe an app.
        """
        raw = self.load_raw(name)
        if raw is None:
            logger.warning("Config not found", extra={"config": name})
            raise ConfigNotFoundError(name)
        try:
            return AppConfig.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Config is malformed",
                extra={"config": name, "errors": e.error_count()},
            )
            raise ConfigInvalidError(name, str(e)) from e

    def list_names(self) -> list[str]:
        if not self.configs_dir.is_dir():
            return []
        names = {
            p.stem
            for p in self.configs_dir.iterdir()
            if p.is_file() and p.suffix in CONFIG_SUFFIXES
        }
        return sorted(names)
