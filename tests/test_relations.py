"""
Tests for one-hop relation propagation.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from search_sync.indexer.relations import RelationPropagator
from search_sync.models.schema import ForeignKey, Relation
from search_sync.models.storage import RowQuery
from search_sync.storage.base import RowReader
from search_sync.storage.memory import InMemoryDatabase

from conftest import books_to_authors, make_config


@pytest.fixture
def books_config():
    return make_config({"books": {"fields": ["author_id", "title"]}})


class TestRelationPropagator:
    """Test RelationPropagator.related_updates"""

    @pytest.mark.asyncio
    async def test_books_referencing_changed_author(self, books_config, library_database):
        """Test books of a changed author are returned"""
        propagator = RelationPropagator(books_config, library_database)

        updates = await propagator.related_updates([books_to_authors()], "authors", ["9"])

        assert updates == {"books": [1, 2]}

    @pytest.mark.asyncio
    async def test_lookup_query_uses_foreign_key_column(self, books_config):
        """Test the owning collection is queried by its referencing column"""
        reader = Mock(spec=RowReader)
        reader.get_keys_by_query = AsyncMock(return_value=[1])
        propagator = RelationPropagator(books_config, reader)

        await propagator.related_updates([books_to_authors()], "authors", ["9", "10"])

        reader.get_keys_by_query.assert_awaited_once_with(
            "books", RowQuery(filter={"author_id": {"_in": ["9", "10"]}})
        )

    @pytest.mark.asyncio
    async def test_column_not_in_fields_is_ignored(self, library_database):
        """Test a referencing column outside the field allowlist does not propagate"""
        config = make_config({"books": {"fields": ["title"]}})
        propagator = RelationPropagator(config, library_database)

        assert await propagator.related_updates([books_to_authors()], "authors", [9]) == {}

    @pytest.mark.asyncio
    async def test_field_prefix_is_segment_based(self, library_database):
        """Test author_id2 does not count as indexing author_id"""
        config = make_config({"books": {"fields": ["author_id2", "title"]}})
        propagator = RelationPropagator(config, library_database)

        assert await propagator.related_updates([books_to_authors()], "authors", [9]) == {}

    @pytest.mark.asyncio
    async def test_nested_field_counts_as_indexed(self, library_database):
        """Test author_id.name indexes the author_id column"""
        config = make_config({"books": {"fields": ["author_id.name"]}})
        propagator = RelationPropagator(config, library_database)

        assert await propagator.related_updates([books_to_authors()], "authors", [10]) == {"books": [3]}

    @pytest.mark.asyncio
    async def test_no_fields_or_wildcard_index_everything(self, library_database):
        """Test missing fields and wildcard fields both propagate"""
        for collection_config in ({}, {"fields": ["*"]}):
            config = make_config({"books": collection_config})
            propagator = RelationPropagator(config, library_database)

            assert await propagator.related_updates([books_to_authors()], "authors", [9]) == {"books": [1, 2]}

    @pytest.mark.asyncio
    async def test_unconfigured_owner_is_ignored(self, library_database):
        """Test relations from collections without indexing are skipped"""
        config = make_config({"authors": {}})
        propagator = RelationPropagator(config, library_database)

        assert await propagator.related_updates([books_to_authors()], "authors", [9]) == {}

    @pytest.mark.asyncio
    async def test_relation_without_column_is_ignored(self, books_config, library_database):
        """Test relations lacking foreign key details are skipped"""
        relation = Relation(collection="books", related_collection="authors")
        propagator = RelationPropagator(books_config, library_database)

        assert await propagator.related_updates([relation], "authors", [9]) == {}

    @pytest.mark.asyncio
    async def test_propagation_is_one_hop(self, books_config, library_database):
        """Test a change two hops away is not propagated"""
        library_database.create_collection("publishers")
        library_database.upsert_row("publishers", {"id": 1, "name": "Pub"})
        authors_to_publishers = Relation(
            collection="authors",
            related_collection="publishers",
            foreign_key=ForeignKey(column="publisher_id")
        )
        propagator = RelationPropagator(books_config, library_database)

        updates = await propagator.related_updates(
            [books_to_authors(), authors_to_publishers], "publishers", [1]
        )

        assert updates == {}

    @pytest.mark.asyncio
    async def test_multiple_relations_are_merged_without_duplicates(self):
        """Test ids from several foreign keys into the same collection are deduplicated"""
        database = InMemoryDatabase(tables={
            "people": [{"id": 9}],
            "books": [
                {"id": 1, "author_id": 9, "editor_id": 9},
                {"id": 2, "author_id": 7, "editor_id": 9}
            ]
        })
        relations = [
            Relation(collection="books", related_collection="people", foreign_key=ForeignKey(column="author_id")),
            Relation(collection="books", related_collection="people", foreign_key=ForeignKey(column="editor_id"))
        ]
        config = make_config({"books": {}})
        propagator = RelationPropagator(config, database)

        assert await propagator.related_updates(relations, "people", [9]) == {"books": [1, 2]}

    @pytest.mark.asyncio
    async def test_lookup_failure_skips_relation(self, books_config):
        """Test a failing key lookup is logged and skipped"""
        reader = Mock(spec=RowReader)
        reader.get_keys_by_query = AsyncMock(side_effect=RuntimeError("database down"))
        propagator = RelationPropagator(books_config, reader)

        assert await propagator.related_updates([books_to_authors()], "authors", [9]) == {}

    @pytest.mark.asyncio
    async def test_no_matching_rows_adds_no_entry(self, books_config, library_database):
        """Test relations resolving to zero rows are left out"""
        propagator = RelationPropagator(books_config, library_database)

        assert await propagator.related_updates([books_to_authors()], "authors", [404]) == {}

    @pytest.mark.asyncio
    async def test_empty_ids_skip_lookup(self, books_config):
        """Test no lookups happen without changed ids"""
        reader = Mock(spec=RowReader)
        reader.get_keys_by_query = AsyncMock()
        propagator = RelationPropagator(books_config, reader)

        assert await propagator.related_updates([books_to_authors()], "authors", []) == {}
        reader.get_keys_by_query.assert_not_awaited()
