"""
Collaborator interfaces consumed by the reconciliation engine.

Defines the abstract search-index client, relational row reader, and schema
provider that concrete backends implement.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping

from ..models.schema import Schema
from ..models.storage import DocumentKey, RowId, RowQuery


class IndexClient(ABC):
    """
    Abstract search backend.

    Every operation may raise; the engine logs failures and continues.
    """

    @abstractmethod
    async def create_index(self, name: str) -> None:
        """Create an empty index, failing if it already exists"""
        pass

    @abstractmethod
    async def delete_all_items(self, name: str) -> None:
        """Remove every document from an index"""
        pass

    @abstractmethod
    async def update_index_settings(self, name: str, settings: Mapping[str, Any]) -> None:
        """Apply backend-specific settings to an index"""
        pass

    @abstractmethod
    async def upsert_item(
        self,
        name: str,
        document_key: DocumentKey,
        document: Mapping[str, Any]
    ) -> None:
        """Insert or replace one document"""
        pass

    @abstractmethod
    async def delete_item(self, name: str, document_key: DocumentKey) -> None:
        """Delete one document, succeeding if it does not exist"""
        pass

    async def close(self) -> None:
        """Release backend resources"""
        return None


class RowReader(ABC):
    """Abstract relational row source"""

    @abstractmethod
    async def read_by_query(self, collection: str, query: RowQuery) -> List[Dict[str, Any]]:
        """Read rows in a stable order, honoring limit and offset"""
        pass

    @abstractmethod
    async def read_many(
        self,
        collection: str,
        ids: Iterable[RowId],
        query: RowQuery
    ) -> List[Dict[str, Any]]:
        """Read the rows among ``ids`` that match the query filter"""
        pass

    @abstractmethod
    async def get_keys_by_query(self, collection: str, query: RowQuery) -> List[RowId]:
        """Primary-key values of the rows matching the query filter"""
        pass


class SchemaProvider(ABC):
    """Abstract source of collection and relation metadata"""

    @abstractmethod
    async def get_schema(self) -> Schema:
        """Current schema snapshot"""
        pass
