"""Configuration loading with project file and environment support."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..search_logging import get_logger
from .models import SearchConfig

logger = get_logger()

PROJECT_CONFIG_FILE = ".deep-search.json"


class ConfigLoader:
    """Merge settings from every source into one SearchConfig."""

    def __init__(
        self,
        project_path: Path | None = None,
        config_file: Path | None = None,
    ):
        self.project_path = Path(project_path) if project_path else Path.cwd()
        self.config_file = (
            Path(config_file) if config_file else self.project_path / PROJECT_CONFIG_FILE
        )

    def load(self, **overrides: Any) -> SearchConfig:
        """Load configuration from all sources.

        Precedence (highest to lowest):
        1. Explicit overrides (None values are ignored)
        2. Environment variables (DEEP_SEARCH_*)
        3. Project config (.deep-search.json)
        4. Defaults

        Raises:
            ConfigurationError: The project config file is not a JSON object.
        """
        config_dict: dict[str, Any] = {}

        if self.config_file.exists():
            file_settings = self._read_file(self.config_file)
            config_dict.update(file_settings)
            logger.debug(
                f"Loaded {len(file_settings)} settings from {self.config_file}"
            )

        env_settings = SearchConfig.env_overrides()
        if env_settings:
            config_dict.update(env_settings)
            logger.debug(f"Applied {len(env_settings)} environment variables")

        explicit = {key: value for key, value in overrides.items() if value is not None}
        if explicit:
            config_dict.update(explicit)
            logger.debug(f"Applied {len(explicit)} explicit overrides")

        return self._validate(config_dict)

    def _read_file(self, path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Cannot parse config file: {e}", config_file=str(path)
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a JSON object", config_file=str(path)
            )

        known = {key: value for key, value in data.items() if key in SearchConfig.model_fields}
        for key in data.keys() - known.keys():
            logger.warning(f"Ignoring unknown setting {key!r} in {path}")
        return known

    @staticmethod
    def _validate(config_dict: dict[str, Any]) -> SearchConfig:
        try:
            return SearchConfig(**config_dict)
        except ValidationError as e:
            invalid = set()
            for error in e.errors():
                key = error["loc"][0] if error["loc"] else None
                if key is None:
                    # Cross-field rule (chunk size vs overlap)
                    invalid.update({"chunk_size", "chunk_overlap"})
                else:
                    invalid.add(key)
                logger.warning(f"Ignoring invalid setting {key or 'chunking'}: {error['msg']}")

        remaining = {k: v for k, v in config_dict.items() if k not in invalid}
        try:
            return SearchConfig(**remaining)
        except ValidationError as e:
            logger.warning(f"Configuration validation failed: {e}, using defaults")
            return SearchConfig()


def load_config(project_path: Path | None = None, **overrides: Any) -> SearchConfig:
    """Load configuration for a workspace."""
    return ConfigLoader(project_path).load(**overrides)
