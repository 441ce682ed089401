"""
search-sync core package

Keeps search indexes consistent with relational collections as rows change.
"""

__version__ = "1.0.0"
__author__ = "search-sync Team"

from .errors import ConfigurationError, IndexClientError, get_error_message
from .models import CollectionConfig, ServerConfig, SyncConfig, Schema, Relation
from .indexer import Reconciler, InitializedIndexSet

__all__ = [
    "ConfigurationError",
    "IndexClientError",
    "get_error_message",
    "CollectionConfig",
    "ServerConfig",
    "SyncConfig",
    "Schema",
    "Relation",
    "Reconciler",
    "InitializedIndexSet"
]
