"""
Configuration management for search-sync

Handles loading, validation, and environment overrides.
"""

from .loader import ConfigurationLoader
from .defaults import DEFAULT_CONFIG, ENV_VAR_MAPPING

__all__ = ["ConfigurationLoader", "DEFAULT_CONFIG", "ENV_VAR_MAPPING"]
