"""
Qdrant index client for search-sync.

Stores index documents as payloads of vectorless Qdrant points, with
collection management, payload index settings, and request tracking.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from qdrant_client import QdrantClient
from qdrant_client.models import (
    PointStruct, Filter, FilterSelector, PointIdsList,
    TextIndexParams, TokenizerType, PayloadSchemaType
)
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from ..errors import IndexClientError
from ..models.storage import DocumentKey
from .base import IndexClient
from .utils import document_key_to_point_id

logger = logging.getLogger(__name__)

# Payload field holding the unhashed document key, reserved in documents
DOCUMENT_KEY_FIELD = "_document_key"

PAYLOAD_SCHEMA_TYPES = {
    'keyword': PayloadSchemaType.KEYWORD,
    'integer': PayloadSchemaType.INTEGER,
    'float': PayloadSchemaType.FLOAT,
    'bool': PayloadSchemaType.BOOL,
    'geo': PayloadSchemaType.GEO
}


class QdrantIndexSettings(BaseModel):
    """Index settings understood by the Qdrant backend"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # field name -> keyword, integer, float, bool, geo or text
    payload_indexes: Dict[str, str] = Field(default_factory=dict, alias="payloadIndexes")

    @field_validator('payload_indexes')
    @classmethod
    def validate_payload_indexes(cls, v: Dict[str, str]) -> Dict[str, str]:
        valid_types = set(PAYLOAD_SCHEMA_TYPES) | {'text'}
        normalized = {}
        for field_name, field_type in v.items():
            if field_type.lower() not in valid_types:
                raise ValueError(f'Payload index type for {field_name} must be one of: {sorted(valid_types)}')
            normalized[field_name] = field_type.lower()
        return normalized


def _backend_message(error: UnexpectedResponse) -> Optional[str]:
    """Extract ``status.error`` from a Qdrant error response"""
    try:
        body = error.structured()
    except (ValueError, AttributeError):
        return None
    status = body.get("status") if isinstance(body, dict) else None
    if isinstance(status, dict) and status.get("error"):
        return str(status["error"])
    return None


class QdrantIndexClient(IndexClient):
    """
    Index client storing documents in Qdrant collections.

    Features:
    - One vectorless collection per index
    - Point IDs derived from document keys by consistent hashing
    - Payload indexes configured from collection settings
    - Blocking client calls moved off the event loop
    - Transport errors wrapped into IndexClientError
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        timeout: float = 60.0
    ):
        """
        Initialize Qdrant index client.

        Args:
            url: Qdrant server URL
            api_key: Optional API key for authentication
            timeout: Request timeout in seconds
        """
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

        self._client: Optional[QdrantClient] = None

        # Performance tracking
        self._total_requests = 0
        self._total_request_time = 0.0
        self._failed_requests = 0

        logger.info(f"Initialized QdrantIndexClient: {url}")

    @property
    def client(self) -> QdrantClient:
        """Get Qdrant client instance"""
        if self._client is None:
            self._client = QdrantClient(
                url=self.url,
                api_key=self.api_key,
                timeout=int(self.timeout)
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying Qdrant client"""
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None
            logger.info("Disconnected from Qdrant")

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking client call in a thread, wrapping transport errors"""
        start_time = time.time()
        self._total_requests += 1
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except UnexpectedResponse as e:
            self._failed_requests += 1
            raise IndexClientError(
                f"Qdrant {operation} failed: {e}",
                backend_message=_backend_message(e),
                status_code=e.status_code
            ) from e
        except ResponseHandlingException as e:
            self._failed_requests += 1
            raise IndexClientError(f"Qdrant {operation} failed: {e}") from e
        finally:
            self._total_request_time += time.time() - start_time

    async def create_index(self, name: str) -> None:
        collections = await self._call("get_collections", self.client.get_collections)
        if name in [c.name for c in collections.collections]:
            raise IndexClientError(
                f"Collection {name} already exists",
                backend_message=f"Collection `{name}` already exists!",
                status_code=409
            )

        await self._call(
            "create_collection",
            self.client.create_collection,
            collection_name=name,
            vectors_config={}
        )
        logger.info(f"Created collection '{name}'")

    async def delete_all_items(self, name: str) -> None:
        # An empty filter selects every point
        await self._call(
            "delete",
            self.client.delete,
            collection_name=name,
            points_selector=FilterSelector(filter=Filter(must=[])),
            wait=True
        )
        logger.info(f"Deleted all points from {name}")

    async def update_index_settings(self, name: str, settings: Mapping[str, Any]) -> None:
        try:
            index_settings = QdrantIndexSettings.model_validate(dict(settings or {}))
        except ValidationError as e:
            raise IndexClientError(f"Invalid settings for {name}: {e}") from e

        failed = []
        for field_name, field_type in index_settings.payload_indexes.items():
            if field_type == "text":
                field_schema: Any = TextIndexParams(
                    type="text",
                    tokenizer=TokenizerType.WORD,
                    min_token_len=2,
                    max_token_len=20,
                    lowercase=True
                )
            else:
                field_schema = PAYLOAD_SCHEMA_TYPES[field_type]

            try:
                await self._call(
                    "create_payload_index",
                    self.client.create_payload_index,
                    collection_name=name,
                    field_name=field_name,
                    field_schema=field_schema
                )
                logger.debug(f"Created {field_type} index on {name}.{field_name}")
            except IndexClientError as e:
                logger.warning(f"Failed to create index on {name}.{field_name}: {e}")
                failed.append(field_name)

        if failed:
            raise IndexClientError(f"Failed to create payload indexes on {name}: {failed}")

    async def upsert_item(
        self,
        name: str,
        document_key: DocumentKey,
        document: Mapping[str, Any]
    ) -> None:
        if DOCUMENT_KEY_FIELD in document:
            raise IndexClientError(
                f"Document {name}/{document_key} uses reserved field \"{DOCUMENT_KEY_FIELD}\""
            )

        payload = dict(document)
        payload[DOCUMENT_KEY_FIELD] = document_key

        await self._call(
            "upsert",
            self.client.upsert,
            collection_name=name,
            points=[PointStruct(
                id=document_key_to_point_id(document_key),
                vector={},
                payload=payload
            )]
        )
        logger.debug(f"Upserted {name}/{document_key}")

    async def delete_item(self, name: str, document_key: DocumentKey) -> None:
        await self._call(
            "delete",
            self.client.delete,
            collection_name=name,
            points_selector=PointIdsList(points=[document_key_to_point_id(document_key)])
        )
        logger.debug(f"Deleted {name}/{document_key}")

    def get_performance_metrics(self) -> Dict[str, Any]:
        """Get client performance metrics"""
        return {
            "total_requests": self._total_requests,
            "total_request_time_s": self._total_request_time,
            "failed_requests": self._failed_requests,
            "average_request_time_ms": (
                self._total_request_time / max(1, self._total_requests) * 1000
            ),
            "success_rate": (
                (self._total_requests - self._failed_requests) / max(1, self._total_requests)
            ),
            "url": self.url
        }
