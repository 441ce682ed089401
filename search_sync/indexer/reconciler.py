"""
Index reconciliation for changed collection rows.

This module keeps search indexes consistent with relational collections:
full rebuilds on initialization, per-id upserts with tombstoning of rows that
disappeared or stopped matching their filter, per-id deletes, and one-hop
propagation of changes through foreign keys. Every external failure is logged
and the batch continues.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import get_error_message
from ..models.config import SyncConfig
from ..models.schema import Schema
from ..models.storage import ReconcileResult, RowId, RowQuery
from ..storage.base import IndexClient, RowReader, SchemaProvider
from ..storage.registry import create_index_client
from .relations import RelationPropagator
from .resolvers import DocumentKeyResolver, IndexNameResolver
from .state import InitializedIndexSet
from .transform import TransformPipeline

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Keep configured search indexes in sync with their collections.

    Drives the row reader and index client, resolving which indexes a change
    touches, transforming rows into documents, and applying upserts and
    deletes with warn-and-continue error handling.
    """

    def __init__(
        self,
        config: SyncConfig,
        index_client: IndexClient,
        row_reader: RowReader,
        schema_provider: SchemaProvider,
        initialized_indexes: Optional[InitializedIndexSet] = None
    ):
        """
        Initialize reconciler with required dependencies.

        Args:
            config: Validated sync configuration
            index_client: Search backend receiving documents
            row_reader: Source of collection rows
            schema_provider: Source of primary keys and relations
            initialized_indexes: Shared record of reset indexes (new set if None)
        """
        self.config = config
        self._index_client = index_client
        self._row_reader = row_reader
        self._schema_provider = schema_provider
        self._initialized = initialized_indexes if initialized_indexes is not None else InitializedIndexSet()

        self._index_names = IndexNameResolver(config)
        self._document_keys = DocumentKeyResolver(config)
        self._pipeline = TransformPipeline(config)
        self._propagator = RelationPropagator(config, row_reader)

        self._semaphore = asyncio.Semaphore(config.max_concurrent_operations)

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        row_reader: RowReader,
        schema_provider: SchemaProvider,
        initialized_indexes: Optional[InitializedIndexSet] = None
    ) -> "Reconciler":
        """
        Build a reconciler whose index client comes from the backend registry.

        Raises:
            ConfigurationError: If the backend type is missing or unknown
        """
        index_client = create_index_client(config.server)
        return cls(config, index_client, row_reader, schema_provider, initialized_indexes)

    @property
    def initialized_indexes(self) -> InitializedIndexSet:
        return self._initialized

    def index_name(self, collection: str) -> str:
        """Index name a collection is stored under"""
        return self._index_names.index_name(collection)

    async def ensure_index(self, collection: str) -> None:
        """Create the collection's index, tolerating failures such as existing indexes"""
        if not self.config.is_configured(collection):
            logger.warning(f"Collection \"{collection}\" is not configured for indexing.")
            return

        index_name = self.index_name(collection)
        try:
            await self._index_client.create_index(index_name)
            logger.info(f"Created index \"{index_name}\"")
        except Exception as e:
            logger.warning(f"Cannot create collection \"{index_name}\". {get_error_message(e)}")
            logger.debug("Index creation failure", exc_info=True)

    async def init_all_indexes(self) -> List[ReconcileResult]:
        """Ensure and rebuild every configured index in configuration order"""
        results: List[ReconcileResult] = []
        for collection in self.config.collections:
            await self.ensure_index(collection)
            results.extend(await self.init_collection_index(collection))
        return results

    async def init_collection_index(self, collection: str) -> List[ReconcileResult]:
        """
        Rebuild one collection's index from its current rows.

        The first call for an index name within this reconciler's initialized
        set drops existing documents and applies settings; every call then
        pages through the filtered primary keys and re-indexes them.

        Args:
            collection: Configured collection to rebuild

        Returns:
            Results of every page update
        """
        schema = await self._schema_provider.get_schema()

        if not schema.has_collection(collection):
            logger.warning(f"Collection \"{collection}\" does not exists.")
            return []

        collection_config = self.config.get_collection(collection)
        if collection_config is None:
            logger.warning(f"Collection \"{collection}\" is not configured for indexing.")
            return []

        index_name = self.index_name(collection)

        async def reset_index() -> None:
            await self._reset_index(collection, index_name)

        await self._initialized.initialize_once(index_name, reset_index)

        pk = schema.primary_key(collection)
        limit = self.config.batch_limit
        results: List[ReconcileResult] = []
        offset = 0
        start_time = time.perf_counter()

        while True:
            try:
                rows = await self._row_reader.read_by_query(
                    collection,
                    RowQuery(fields=[pk], filter=collection_config.filter, limit=limit, offset=offset)
                )
            except Exception as e:
                logger.warning(
                    f"Cannot read \"{collection}\" at offset {offset}. {get_error_message(e)}"
                )
                logger.debug("Page read failure", exc_info=True)
                break

            if not rows:
                break

            results.extend(await self.update_items(collection, [row[pk] for row in rows]))
            offset += limit

        logger.info(
            f"Indexed \"{collection}\" into \"{index_name}\": "
            f"{sum(r.upserted for r in results)} upserted, "
            f"{sum(r.failed for r in results)} failed in {time.perf_counter() - start_time:.3f}s"
        )
        return results

    async def _reset_index(self, collection: str, index_name: str) -> None:
        """Drop all documents and apply settings, logging each failure"""
        try:
            await self._index_client.delete_all_items(index_name)
        except Exception as e:
            logger.warning(f"Cannot drop collection \"{collection}\". {get_error_message(e)}")
            logger.debug("Index drop failure", exc_info=True)

        try:
            await self._index_client.update_index_settings(
                index_name, self.config.collections[collection].settings
            )
        except Exception as e:
            logger.warning(f"Failed to set collection settings for \"{collection}\". {get_error_message(e)}")
            logger.debug("Index settings failure", exc_info=True)

    async def update_items(self, collection: str, ids: Iterable[RowId]) -> List[ReconcileResult]:
        """
        Re-index changed rows of a collection.

        A configured collection is refreshed directly. Any other collection is
        propagated to the configured collections referencing it. Each target
        is processed concurrently and independently.

        Args:
            collection: Collection whose rows changed
            ids: Changed primary-key values

        Returns:
            One result per refreshed target collection
        """
        requested = _unique(ids)
        if not requested:
            return []

        schema = await self._schema_provider.get_schema()

        if self.config.is_configured(collection):
            targets: Dict[str, List[RowId]] = {collection: requested}
        else:
            targets = await self._propagator.related_updates(schema.relations, collection, requested)
            if targets:
                logger.debug(
                    f"Change in \"{collection}\" propagates to {sorted(targets)}"
                )

        results = await asyncio.gather(*(
            self._update_target(schema, target, target_ids)
            for target, target_ids in targets.items()
        ))
        return [result for result in results if result is not None]

    async def _update_target(
        self,
        schema: Schema,
        collection: str,
        ids: List[RowId]
    ) -> Optional[ReconcileResult]:
        """Upsert readable rows of one collection and tombstone the rest"""
        if not schema.has_collection(collection):
            logger.warning(f"Collection \"{collection}\" does not exists.")
            return None

        index_name = self.index_name(collection)
        pk = schema.primary_key(collection)
        result = ReconcileResult(
            operation="update", collection=collection, index_name=index_name, requested=len(ids)
        )
        start_time = time.perf_counter()

        try:
            rows = await self._read_rows(collection, pk, ids)
        except Exception as e:
            message = f"Cannot read \"{collection}\". {get_error_message(e)}"
            logger.warning(message)
            logger.debug("Row read failure", exc_info=True)
            result.errors.append(message)
            result.failed = len(ids)
            result.processing_time_ms = (time.perf_counter() - start_time) * 1000
            return result

        outcomes = await asyncio.gather(*(
            self._upsert_row(result, collection, index_name, pk, row) for row in rows
        ))

        # Only runs after every upsert of this batch has settled
        processed = {str(row[pk]) for row, ok in zip(rows, outcomes) if ok}
        missing = [row_id for row_id in ids if str(row_id) not in processed]

        await asyncio.gather(*(
            self._delete_key(result, collection, index_name, {pk: row_id}, pk)
            for row_id in missing
        ))

        result.processing_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Updated \"{index_name}\": {result.upserted} upserted, "
            f"{result.deleted} deleted, {result.failed} failed"
        )
        return result

    async def _upsert_row(
        self,
        result: ReconcileResult,
        collection: str,
        index_name: str,
        pk: str,
        row: Mapping[str, Any]
    ) -> bool:
        async with self._semaphore:
            document_key = row.get(pk)
            try:
                document_key = self._document_keys.document_key(row, collection, pk)
                document = self._pipeline.build_document(row, collection)
                await self._index_client.upsert_item(index_name, document_key, document)
            except Exception as e:
                message = f"Cannot index \"{index_name}/{document_key}\". {get_error_message(e)}"
                logger.warning(message)
                logger.debug("Document upsert failure", exc_info=True)
                result.record_error(message)
                return False

        result.upserted += 1
        return True

    async def _delete_key(
        self,
        result: ReconcileResult,
        collection: str,
        index_name: str,
        row: Mapping[str, Any],
        pk: str
    ) -> bool:
        async with self._semaphore:
            document_key = row.get(pk)
            try:
                document_key = self._document_keys.document_key(row, collection, pk)
                await self._index_client.delete_item(index_name, document_key)
            except Exception as e:
                message = f"Cannot delete \"{index_name}/{document_key}\". {get_error_message(e)}"
                logger.warning(message)
                logger.debug("Document delete failure", exc_info=True)
                result.record_error(message)
                return False

        result.deleted += 1
        return True

    async def delete_items(self, collection: str, ids: Iterable[RowId]) -> Optional[ReconcileResult]:
        """
        Remove rows of a collection from its index.

        Rows are read first so that computed document keys can be derived.
        No relation propagation happens on this path.

        Args:
            collection: Configured collection
            ids: Primary-key values being deleted

        Returns:
            Result of the deletion, or None if the collection cannot be processed
        """
        requested = _unique(ids)
        if not self.config.is_configured(collection):
            logger.warning(f"Collection \"{collection}\" is not configured for indexing.")
            return None

        schema = await self._schema_provider.get_schema()
        if not schema.has_collection(collection):
            logger.warning(f"Collection \"{collection}\" does not exists.")
            return None

        index_name = self.index_name(collection)
        pk = schema.primary_key(collection)
        result = ReconcileResult(
            operation="delete", collection=collection, index_name=index_name, requested=len(requested)
        )
        start_time = time.perf_counter()

        if requested:
            try:
                rows = await self._read_rows(collection, pk, requested)
            except Exception as e:
                message = f"Cannot read \"{collection}\". {get_error_message(e)}"
                logger.warning(message)
                logger.debug("Row read failure", exc_info=True)
                result.errors.append(message)
                result.failed = len(requested)
                rows = []

            await asyncio.gather(*(
                self._delete_key(result, collection, index_name, row, pk) for row in rows
            ))

        result.processing_time_ms = (time.perf_counter() - start_time) * 1000
        return result

    async def _read_rows(self, collection: str, pk: str, ids: List[RowId]) -> List[Dict[str, Any]]:
        """Read rows projected to the configured fields and filter"""
        collection_config = self.config.collections[collection]
        fields = [pk, *collection_config.fields] if collection_config.fields else None
        return await self._row_reader.read_many(
            collection,
            ids,
            RowQuery(fields=fields, filter=collection_config.filter)
        )


def _unique(ids: Iterable[RowId]) -> List[RowId]:
    """Deduplicate ids by their string form, keeping first occurrences"""
    seen = set()
    unique: List[RowId] = []
    for row_id in ids:
        if str(row_id) not in seen:
            seen.add(str(row_id))
            unique.append(row_id)
    return unique
