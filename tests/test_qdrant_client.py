"""
Unit tests for QdrantIndexClient functionality.

Tests collection management, payload indexes, point operations, and error wrapping
against a mocked Qdrant client.
"""

import json
import pytest
from unittest.mock import Mock

from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import FilterSelector, PayloadSchemaType, PointIdsList, TextIndexParams

from search_sync.errors import IndexClientError, get_error_message
from search_sync.storage.client import DOCUMENT_KEY_FIELD, QdrantIndexClient, QdrantIndexSettings
from search_sync.storage.utils import document_key_to_point_id


def _collections(*names):
    response = Mock()
    response.collections = []
    for name in names:
        collection = Mock()
        collection.name = name
        response.collections.append(collection)
    return response


def _unexpected_response(status_code, error):
    return UnexpectedResponse(
        status_code=status_code,
        reason_phrase="Error",
        content=json.dumps({"status": {"error": error}}).encode(),
        headers={}
    )


@pytest.fixture
def qdrant():
    """Mocked synchronous Qdrant client"""
    client = Mock()
    client.get_collections.return_value = _collections("existing")
    return client


@pytest.fixture
def index_client(qdrant):
    client = QdrantIndexClient(url="http://test:6333", api_key="key", timeout=5.0)
    client._client = qdrant
    return client


class TestQdrantIndexClient:
    """Test QdrantIndexClient functionality"""

    def test_client_initialization(self):
        client = QdrantIndexClient()

        assert client.url == "http://localhost:6333"
        assert client.api_key is None
        assert client.timeout == 60.0
        assert client._client is None

    @pytest.mark.asyncio
    async def test_create_index(self, index_client, qdrant):
        await index_client.create_index("articles")

        qdrant.create_collection.assert_called_once_with(collection_name="articles", vectors_config={})

    @pytest.mark.asyncio
    async def test_create_existing_index_fails(self, index_client, qdrant):
        """Test creating an existing collection is reported as a conflict"""
        with pytest.raises(IndexClientError) as exc_info:
            await index_client.create_index("existing")

        assert exc_info.value.status_code == 409
        assert "already exists" in get_error_message(exc_info.value)
        qdrant.create_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_all_items(self, index_client, qdrant):
        await index_client.delete_all_items("articles")

        kwargs = qdrant.delete.call_args.kwargs
        assert kwargs["collection_name"] == "articles"
        assert isinstance(kwargs["points_selector"], FilterSelector)

    @pytest.mark.asyncio
    async def test_upsert_item(self, index_client, qdrant):
        """Test documents are stored as payloads under hashed point ids"""
        await index_client.upsert_item("articles", 42, {"title": "T"})

        kwargs = qdrant.upsert.call_args.kwargs
        point = kwargs["points"][0]
        assert kwargs["collection_name"] == "articles"
        assert point.id == document_key_to_point_id(42)
        assert point.payload == {"title": "T", DOCUMENT_KEY_FIELD: 42}

    @pytest.mark.asyncio
    async def test_upsert_keeps_document_key_field(self, index_client, qdrant):
        """Test a document field named document_key is not overwritten"""
        await index_client.upsert_item("articles", 42, {"document_key": "isbn-1"})

        point = qdrant.upsert.call_args.kwargs["points"][0]
        assert point.payload == {"document_key": "isbn-1", DOCUMENT_KEY_FIELD: 42}

    @pytest.mark.asyncio
    async def test_upsert_rejects_reserved_field(self, index_client, qdrant):
        with pytest.raises(IndexClientError, match="reserved field"):
            await index_client.upsert_item("articles", 42, {DOCUMENT_KEY_FIELD: "x"})

        qdrant.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_item(self, index_client, qdrant):
        await index_client.delete_item("articles", "42")

        selector = qdrant.delete.call_args.kwargs["points_selector"]
        assert isinstance(selector, PointIdsList)
        assert selector.points == [document_key_to_point_id(42)]

    @pytest.mark.asyncio
    async def test_update_index_settings(self, index_client, qdrant):
        """Test payload indexes are created per configured field"""
        await index_client.update_index_settings(
            "articles", {"payload_indexes": {"status": "keyword", "title": "TEXT"}}
        )

        calls = {call.kwargs["field_name"]: call.kwargs["field_schema"] for call in qdrant.create_payload_index.call_args_list}
        assert calls["status"] == PayloadSchemaType.KEYWORD
        assert isinstance(calls["title"], TextIndexParams)

    @pytest.mark.asyncio
    async def test_empty_settings(self, index_client, qdrant):
        await index_client.update_index_settings("articles", {})

        qdrant.create_payload_index.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_settings(self, index_client):
        with pytest.raises(IndexClientError, match="Invalid settings"):
            await index_client.update_index_settings("articles", {"payload_indexes": {"title": "vector"}})

    @pytest.mark.asyncio
    async def test_payload_index_failures_are_collected(self, index_client, qdrant):
        """Test every field is attempted before failures are reported"""
        qdrant.create_payload_index.side_effect = [
            _unexpected_response(400, "Wrong input"),
            None
        ]

        with pytest.raises(IndexClientError, match="status"):
            await index_client.update_index_settings(
                "articles", {"payload_indexes": {"status": "keyword", "views": "integer"}}
            )

        assert qdrant.create_payload_index.call_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_response_wrapped(self, index_client, qdrant):
        """Test backend errors carry the nested Qdrant message"""
        qdrant.upsert.side_effect = _unexpected_response(404, "Not found: Collection `articles` doesn't exist!")

        with pytest.raises(IndexClientError) as exc_info:
            await index_client.upsert_item("articles", 1, {})

        assert exc_info.value.status_code == 404
        assert get_error_message(exc_info.value) == "Not found: Collection `articles` doesn't exist!"
        assert index_client.get_performance_metrics()["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, index_client, qdrant):
        qdrant.delete.side_effect = ResponseHandlingException(ConnectionError("refused"))

        with pytest.raises(IndexClientError, match="Qdrant delete failed"):
            await index_client.delete_item("articles", 1)

    @pytest.mark.asyncio
    async def test_close(self, index_client, qdrant):
        await index_client.close()

        qdrant.close.assert_called_once()
        assert index_client._client is None

    def test_performance_metrics(self, index_client):
        metrics = index_client.get_performance_metrics()

        assert metrics["total_requests"] == 0
        assert metrics["success_rate"] == 0
        assert metrics["url"] == "http://test:6333"


class TestQdrantIndexSettings:
    def test_camel_case_alias(self):
        settings = QdrantIndexSettings.model_validate({"payloadIndexes": {"geo": "GEO"}})

        assert settings.payload_indexes == {"geo": "geo"}

    def test_unknown_keys_ignored(self):
        assert QdrantIndexSettings.model_validate({"ranking": ["words"]}).payload_indexes == {}


class TestPointIds:
    def test_string_and_int_keys_share_ids(self):
        assert document_key_to_point_id(5) == document_key_to_point_id("5")
        assert document_key_to_point_id("a") != document_key_to_point_id("b")
        assert 0 <= document_key_to_point_id("a") < 2 ** 64
