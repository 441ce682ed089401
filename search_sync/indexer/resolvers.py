"""
Index-name and document-key resolution for configured collections.
"""

from typing import Any, Mapping

from ..models.config import SyncConfig
from ..models.storage import DocumentKey


class IndexNameResolver:
    """Map collections to the index names they are stored under"""

    def __init__(self, config: SyncConfig):
        self._config = config

    def index_name(self, collection: str) -> str:
        """Configured override, else the collection name itself"""
        collection_config = self._config.get_collection(collection)
        if collection_config and collection_config.index_name:
            return collection_config.index_name
        return collection


class DocumentKeyResolver:
    """Derive the external document key of a row"""

    def __init__(self, config: SyncConfig):
        self._config = config

    def document_key(
        self,
        row: Mapping[str, Any],
        collection: str,
        primary_key: str
    ) -> DocumentKey:
        """
        Resolve the document key for ``row``.

        Uses the collection's ``compute_pk`` hook when configured, otherwise
        the row's primary-key value. A row holding only the primary key is
        enough, which is how tombstones for unreadable ids are keyed.
        """
        collection_config = self._config.get_collection(collection)
        if collection_config and collection_config.compute_pk:
            return collection_config.compute_pk(row, collection)
        return row[primary_key]
