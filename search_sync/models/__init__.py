"""
Core data models for search-sync

Pydantic models for configuration, relational schema, and storage results.
"""

from .config import CollectionConfig, ServerConfig, SyncConfig, GlobalSettings
from .schema import CollectionSchema, ForeignKey, Relation, Schema
from .storage import (
    RowId, DocumentKey, IndexDocument, RowQuery, ReconcileResult, OperationStatus
)

__all__ = [
    # Configuration
    "CollectionConfig",
    "ServerConfig",
    "SyncConfig",
    "GlobalSettings",

    # Schema
    "CollectionSchema",
    "ForeignKey",
    "Relation",
    "Schema",

    # Storage
    "RowId",
    "DocumentKey",
    "IndexDocument",
    "RowQuery",
    "ReconcileResult",
    "OperationStatus"
]
