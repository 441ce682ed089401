"""
In-memory collaborators for dry runs and tests.

Provides a dict-backed search index client and a dict-backed relational
database implementing both the row reader and schema provider interfaces.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import IndexClientError
from ..models.schema import CollectionSchema, Relation, Schema
from ..models.storage import DocumentKey, RowId, RowQuery
from .base import IndexClient, RowReader, SchemaProvider
from .filters import matches_filter, project_fields

logger = logging.getLogger(__name__)


class InMemoryIndexClient(IndexClient):
    """
    Dict-backed search index.

    Documents are addressed by the string form of their key, mirroring the
    hashing used by the Qdrant backend.
    """

    def __init__(self):
        self._indexes: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._settings: Dict[str, Dict[str, Any]] = {}

    def _index(self, name: str) -> Dict[str, Dict[str, Any]]:
        if name not in self._indexes:
            raise IndexClientError(
                f"Index {name} not found",
                backend_message=f"Index `{name}` doesn't exist",
                status_code=404
            )
        return self._indexes[name]

    async def create_index(self, name: str) -> None:
        if name in self._indexes:
            raise IndexClientError(
                f"Index {name} already exists",
                backend_message=f"Index `{name}` already exists",
                status_code=409
            )
        self._indexes[name] = {}
        logger.debug(f"Created in-memory index {name}")

    async def delete_all_items(self, name: str) -> None:
        self._index(name).clear()

    async def update_index_settings(self, name: str, settings: Mapping[str, Any]) -> None:
        self._index(name)
        self._settings[name] = copy.deepcopy(dict(settings))

    async def upsert_item(
        self,
        name: str,
        document_key: DocumentKey,
        document: Mapping[str, Any]
    ) -> None:
        self._index(name)[str(document_key)] = copy.deepcopy(dict(document))

    async def delete_item(self, name: str, document_key: DocumentKey) -> None:
        self._index(name).pop(str(document_key), None)

    @property
    def index_names(self) -> List[str]:
        return list(self._indexes)

    def documents(self, name: str) -> Dict[str, Dict[str, Any]]:
        """Copy of all documents of an index keyed by document key"""
        return copy.deepcopy(self._index(name))

    def get_document(self, name: str, document_key: DocumentKey) -> Optional[Dict[str, Any]]:
        document = self._index(name).get(str(document_key))
        return copy.deepcopy(document) if document is not None else None

    def get_settings(self, name: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._settings.get(name))


class InMemoryDatabase(RowReader, SchemaProvider):
    """
    Dict-backed relational collections.

    Rows keep insertion order, which is the order used for paging. Foreign
    keys are plain values on the owning rows; nested objects may be stored
    directly to emulate expanded relations.
    """

    def __init__(
        self,
        tables: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None,
        primary_keys: Optional[Mapping[str, str]] = None,
        relations: Optional[Iterable[Relation]] = None
    ):
        self._tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._primary_keys: Dict[str, str] = dict(primary_keys or {})
        self._relations: List[Relation] = list(relations or [])

    def primary_key(self, collection: str) -> str:
        return self._primary_keys.get(collection, "id")

    def _rows(self, collection: str) -> List[Dict[str, Any]]:
        if collection not in self._tables:
            raise ValueError(f"Unknown collection: {collection}")
        return self._tables[collection]

    # Mutation helpers

    def create_collection(self, collection: str, primary_key: str = "id") -> None:
        self._tables.setdefault(collection, [])
        self._primary_keys[collection] = primary_key

    def add_relation(self, relation: Relation) -> None:
        self._relations.append(relation)

    def upsert_row(self, collection: str, row: Mapping[str, Any]) -> None:
        """Insert a row or replace the row with the same primary key"""
        rows = self._rows(collection)
        pk = self.primary_key(collection)
        for index, existing in enumerate(rows):
            if str(existing.get(pk)) == str(row[pk]):
                rows[index] = dict(row)
                return
        rows.append(dict(row))

    def delete_row(self, collection: str, row_id: RowId) -> None:
        pk = self.primary_key(collection)
        self._tables[collection] = [
            row for row in self._rows(collection) if str(row.get(pk)) != str(row_id)
        ]

    # SchemaProvider

    async def get_schema(self) -> Schema:
        collections = {}
        for name, rows in self._tables.items():
            columns: List[str] = []
            for row in rows:
                columns.extend(column for column in row if column not in columns)
            collections[name] = CollectionSchema(
                name=name, primary=self.primary_key(name), columns=columns
            )
        return Schema(collections=collections, relations=list(self._relations))

    # RowReader

    async def read_by_query(self, collection: str, query: RowQuery) -> List[Dict[str, Any]]:
        rows = [row for row in self._rows(collection) if matches_filter(row, query.filter)]
        end = query.offset + query.limit if query.limit is not None else None
        return [project_fields(row, query.fields) for row in rows[query.offset:end]]

    async def read_many(
        self,
        collection: str,
        ids: Iterable[RowId],
        query: RowQuery
    ) -> List[Dict[str, Any]]:
        wanted = {str(row_id) for row_id in ids}
        pk = self.primary_key(collection)
        return [
            project_fields(row, query.fields)
            for row in self._rows(collection)
            if str(row.get(pk)) in wanted and matches_filter(row, query.filter)
        ]

    async def get_keys_by_query(self, collection: str, query: RowQuery) -> List[RowId]:
        pk = self.primary_key(collection)
        return [
            row[pk] for row in self._rows(collection) if matches_filter(row, query.filter)
        ]
