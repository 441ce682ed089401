"""
Configuration loading for search-sync.

Reads the JSON config file, layers it over the defaults, applies environment
overrides and validates the result into a SyncConfig.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, Union
import logging

from pydantic import BaseModel, ValidationError

from ..errors import ConfigurationError
from ..models.config import GlobalSettings, ServerConfig, SyncConfig
from .defaults import ENV_VAR_MAPPING, STRING_CONFIG_PATHS, get_default_config

logger = logging.getLogger(__name__)


def _rename_aliases(data: Dict[str, Any], model: Type[BaseModel]) -> Dict[str, Any]:
    aliases = {
        field.alias: name for name, field in model.model_fields.items() if field.alias
    }
    return {aliases.get(key, key): value for key, value in data.items()}


class ConfigurationLoader:
    """Load and cache sync configurations"""

    def __init__(self, global_settings: Optional[GlobalSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.config_cache: Dict[str, SyncConfig] = {}

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> SyncConfig:
        """
        Load the sync configuration from a JSON file.

        Args:
            config_path: Config file path, defaults to the global settings

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        config_file = Path(config_path or self.global_settings.config_file).resolve()

        # Check cache first
        cache_key = str(config_file)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        data = self._read_config_file(config_file)
        config = self.build_config(data, source=str(config_file))

        self.config_cache[cache_key] = config
        logger.info(f"Loaded configuration from {config_file}: {len(config.collections)} collections")
        return config

    def build_config(self, data: Dict[str, Any], source: str = "<dict>") -> SyncConfig:
        """Merge raw data over the defaults, apply env overrides and validate"""
        config_data = self._merge(get_default_config(), self._normalize_keys(data))
        config_data = self._apply_env_overrides(config_data)

        try:
            return SyncConfig.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Broken config file {source}: {e}") from e

    def clear_cache(self) -> None:
        self.config_cache.clear()

    def _read_config_file(self, config_file: Path) -> Dict[str, Any]:
        """Read and parse the JSON config file"""
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Broken config file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Broken config file {config_file}: expected a JSON object")
        return data

    def _normalize_keys(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Rename camelCase aliases of top-level and server keys to field names"""
        normalized = _rename_aliases(data, SyncConfig)
        if isinstance(normalized.get('server'), dict):
            normalized['server'] = _rename_aliases(normalized['server'], ServerConfig)
        return normalized

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge ``override`` into ``base``"""
        merged = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict) and key != "collections":
                merged[key] = self._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                logger.debug(f"Applying {env_var} to {config_path}")
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        # Convert value to appropriate type
        final_key = keys[-1]
        if path in STRING_CONFIG_PATHS:
            current[final_key] = value
        else:
            current[final_key] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        # Numeric conversion
        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        # Boolean conversion
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        # Return as string
        return value
