"""
Default configuration values for search-sync.

Centralized defaults that can be overridden by config files or environment variables.
"""

from typing import Any, Dict

# Base configuration merged under every config file, keyed by field names
DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {
        "url": "http://localhost:6333",
        "timeout": 60.0
    },
    "collections": {},
    "batch_limit": 100,
    "max_concurrent_operations": 4
}

# Environment variable overrides, applied after the config file
ENV_VAR_MAPPING = {
    'SEARCH_SYNC_SERVER_TYPE': 'server.type',
    'SEARCH_SYNC_SERVER_URL': 'server.url',
    'SEARCH_SYNC_SERVER_API_KEY': 'server.api_key',
    'SEARCH_SYNC_SERVER_TIMEOUT': 'server.timeout',
    'SEARCH_SYNC_BATCH_LIMIT': 'batch_limit',
    'SEARCH_SYNC_MAX_CONCURRENT_OPERATIONS': 'max_concurrent_operations'
}

# Overrides kept verbatim instead of being converted to numbers or booleans
STRING_CONFIG_PATHS = {'server.type', 'server.url', 'server.api_key'}


def get_default_config() -> Dict[str, Any]:
    """Get a fresh copy of the default configuration"""
    config = dict(DEFAULT_CONFIG)
    config['server'] = dict(DEFAULT_CONFIG['server'])
    config['collections'] = {}
    return config
