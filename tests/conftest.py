"""
Shared fixtures for search-sync tests.
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, Mock

import pytest

from search_sync.models.config import SyncConfig
from search_sync.models.schema import ForeignKey, Relation
from search_sync.storage.base import IndexClient
from search_sync.storage.memory import InMemoryDatabase, InMemoryIndexClient


def make_config(collections: Dict[str, Any], **kwargs: Any) -> SyncConfig:
    """Build a sync config using the in-memory backend"""
    return SyncConfig.model_validate({
        "server": {"type": "memory"},
        "collections": collections,
        **kwargs
    })


def books_to_authors() -> Relation:
    return Relation(
        collection="books",
        related_collection="authors",
        foreign_key=ForeignKey(column="author_id", foreign_key_table="authors", foreign_key_column="id")
    )


@pytest.fixture
def library_database():
    """Authors and books with a books.author_id -> authors relation"""
    return InMemoryDatabase(
        tables={
            "authors": [
                {"id": 9, "name": "Ann"},
                {"id": 10, "name": "Bob"}
            ],
            "books": [
                {"id": 1, "title": "First", "author_id": 9},
                {"id": 2, "title": "Second", "author_id": 9},
                {"id": 3, "title": "Third", "author_id": 10}
            ]
        },
        relations=[books_to_authors()]
    )


@pytest.fixture
def memory_index():
    return InMemoryIndexClient()


@pytest.fixture
def mock_index_client():
    """Index client whose calls all succeed and are recorded"""
    client = Mock(spec=IndexClient)
    client.create_index = AsyncMock()
    client.delete_all_items = AsyncMock()
    client.update_index_settings = AsyncMock()
    client.upsert_item = AsyncMock()
    client.delete_item = AsyncMock()
    client.close = AsyncMock()
    return client
