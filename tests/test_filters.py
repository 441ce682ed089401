"""
Tests for the row filter language and field projection.
"""

import pytest

from search_sync.storage.filters import (
    compile_filter, is_operator_block, matches_filter, project_fields, split_fields
)


@pytest.fixture
def row():
    return {
        "id": 5,
        "status": "published",
        "views": 120,
        "deleted_at": None,
        "title": "Hello search",
        "tags": ["news", "tech"],
        "author": {"name": "Ann", "active": True}
    }


class TestMatchesFilter:
    """Test in-memory filter evaluation"""

    def test_empty_filter_matches(self, row):
        assert matches_filter(row, {})
        assert matches_filter(row, None)

    def test_equality_is_loose_on_strings(self, row):
        assert matches_filter(row, {"id": {"_eq": "5"}})
        assert matches_filter(row, {"status": {"_neq": "draft"}})
        assert not matches_filter(row, {"status": {"_eq": "draft"}})

    def test_membership(self, row):
        assert matches_filter(row, {"id": {"_in": ["4", "5"]}})
        assert matches_filter(row, {"id": {"_in": "4,5"}})
        assert matches_filter(row, {"id": {"_nin": [1, 2]}})
        assert not matches_filter(row, {"id": {"_in": []}})

    def test_comparisons(self, row):
        assert matches_filter(row, {"views": {"_gt": 100, "_lte": 120}})
        assert matches_filter(row, {"views": {"_gte": "120"}})
        assert not matches_filter(row, {"views": {"_lt": 100}})
        assert not matches_filter(row, {"deleted_at": {"_gt": 0}})

    def test_null_checks(self, row):
        assert matches_filter(row, {"deleted_at": {"_null": True}})
        assert matches_filter(row, {"status": {"_nnull": True}})
        assert not matches_filter(row, {"status": {"_null": True}})

    def test_string_operators(self, row):
        assert matches_filter(row, {"title": {"_contains": "search"}})
        assert matches_filter(row, {"title": {"_ncontains": "draft"}})
        assert matches_filter(row, {"title": {"_starts_with": "Hello"}})
        assert matches_filter(row, {"title": {"_ends_with": "search"}})

    def test_list_contains(self, row):
        assert matches_filter(row, {"tags": {"_contains": "tech"}})
        assert not matches_filter(row, {"tags": {"_contains": "sports"}})

    def test_logical_operators(self, row):
        assert matches_filter(row, {"_or": [{"status": {"_eq": "draft"}}, {"views": {"_gt": 100}}]})
        assert not matches_filter(row, {"_and": [{"status": {"_eq": "published"}}, {"views": {"_gt": 500}}]})

    def test_nested_related_filter(self, row):
        assert matches_filter(row, {"author": {"name": {"_eq": "Ann"}}})
        assert not matches_filter(row, {"author": {"active": {"_eq": False}}})
        assert not matches_filter({"author": None}, {"author": {"name": {"_eq": "Ann"}}})

    def test_unknown_operator(self, row):
        with pytest.raises(ValueError, match="Unsupported filter operator"):
            matches_filter(row, {"id": {"_regex": ".*"}})

    def test_condition_must_be_mapping(self, row):
        with pytest.raises(ValueError):
            matches_filter(row, {"id": 5})

    def test_operator_block_detection(self):
        assert is_operator_block({"_eq": 1, "_neq": 2})
        assert not is_operator_block({"name": {"_eq": 1}})
        assert not is_operator_block({})


class TestCompileFilter:
    """Test SQL compilation"""

    def test_empty_filter(self):
        assert compile_filter({}) == ("1", [])

    def test_equality_and_membership(self):
        sql, params = compile_filter({"status": {"_eq": "published"}, "id": {"_in": [1, 2]}})

        assert sql == '"status" IS ? AND "id" IN (?, ?)'
        assert params == ["published", 1, 2]

    def test_not_in_keeps_nulls(self):
        sql, params = compile_filter({"id": {"_nin": [3]}})

        assert sql == '("id" IS NULL OR "id" NOT IN (?))'
        assert params == [3]

    def test_empty_in_matches_nothing(self):
        assert compile_filter({"id": {"_in": []}}) == ("0", [])

    def test_comparisons_and_nulls(self):
        sql, params = compile_filter({"views": {"_gte": 10}, "deleted_at": {"_null": True}})

        assert sql == '"views" >= ? AND "deleted_at" IS NULL'
        assert params == [10]

    def test_string_operators(self):
        sql, params = compile_filter({"title": {"_starts_with": "He"}})

        assert sql == 'substr("title", 1, length(?)) = ?'
        assert params == ["He", "He"]

    def test_logical_operators(self):
        sql, params = compile_filter({"_or": [{"a": {"_eq": 1}}, {"b": {"_eq": 2}}]})

        assert sql == '("a" IS ? OR "b" IS ?)'
        assert params == [1, 2]

    def test_unknown_column_rejected(self):
        with pytest.raises(ValueError, match="Unknown filter field"):
            compile_filter({"missing": {"_eq": 1}}, columns=["id"])

    def test_nested_filter_rejected(self):
        with pytest.raises(ValueError, match="Nested filter"):
            compile_filter({"author": {"name": {"_eq": "Ann"}}})

    def test_identifier_quoting(self):
        sql, _ = compile_filter({'we"ird': {"_eq": 1}})

        assert sql == '"we""ird" IS ?'


class TestProjection:
    """Test field splitting and projection"""

    def test_split_fields(self):
        assert split_fields(None) == (None, {})
        assert split_fields(["*"]) == (None, {})
        assert split_fields(["id", "author.name", "author.email"]) == (
            ["id", "author"],
            {"author": ["name", "email"]}
        )

    def test_project_fields(self, row):
        assert project_fields(row, ["id", "author.name", "missing"]) == {
            "id": 5,
            "author": {"name": "Ann"}
        }

    def test_project_all(self, row):
        projected = project_fields(row, None)

        assert projected == row
        assert projected["author"] is not row["author"]

    def test_project_nested_of_scalar(self):
        assert project_fields({"author_id": 3}, ["author_id.name"]) == {}
