"""
Transform pipeline turning raw rows into index documents.
"""

import copy
from typing import Any, Mapping, Optional

from ..models.config import SyncConfig
from ..models.storage import IndexDocument
from .helpers import DEFAULT_TOOLKIT, TransformToolkit, filtered_object, flatten_object


class TransformPipeline:
    """
    Build index documents from rows according to collection configuration.

    Priority: the ``transform`` hook, else ``fields`` projection over the
    flattened row, else the row unchanged. ``collection_field`` is stamped
    last and always wins over a same-named key.
    """

    def __init__(self, config: SyncConfig, toolkit: Optional[TransformToolkit] = None):
        self._config = config
        self._toolkit = toolkit or DEFAULT_TOOLKIT

    def build_document(self, row: Mapping[str, Any], collection: str) -> IndexDocument:
        """
        Convert ``row`` into the document indexed for ``collection``.

        Args:
            row: Row as returned by the row reader (never modified)
            collection: Source collection name

        Returns:
            New mapping to upsert into the index

        Raises:
            TypeError: If a transform hook returns something other than a mapping
        """
        collection_config = self._config.get_collection(collection)

        if collection_config and collection_config.transform:
            base = collection_config.transform(copy.deepcopy(row), self._toolkit, collection)
            if not isinstance(base, Mapping):
                raise TypeError(
                    f"Transform for {collection!r} returned {type(base).__name__}, expected a mapping"
                )
            document = dict(base)
        elif collection_config and collection_config.fields:
            document = filtered_object(flatten_object(row), collection_config.fields)
        else:
            document = copy.deepcopy(dict(row))

        if collection_config and collection_config.collection_field:
            document[collection_config.collection_field] = collection

        return document
