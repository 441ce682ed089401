"""
Storage package for search-sync.

Provides collaborator interfaces, the Qdrant and in-memory index backends,
relational row readers, and the backend registry.
"""

from .base import IndexClient, RowReader, SchemaProvider
from .client import QdrantIndexClient, QdrantIndexSettings
from .memory import InMemoryIndexClient, InMemoryDatabase
from .sqlite import SqliteDatabase
from .registry import IndexClientRegistry, create_index_client
from .filters import compile_filter, matches_filter, project_fields
from .utils import document_key_to_point_id

__all__ = [
    "IndexClient",
    "RowReader",
    "SchemaProvider",
    "QdrantIndexClient",
    "QdrantIndexSettings",
    "InMemoryIndexClient",
    "InMemoryDatabase",
    "SqliteDatabase",
    "IndexClientRegistry",
    "create_index_client",
    "compile_filter",
    "matches_filter",
    "project_fields",
    "document_key_to_point_id"
]
