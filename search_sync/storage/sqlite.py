"""
SQLite row reader and schema provider.

Reads collections from a SQLite database, introspecting primary keys and
foreign keys through PRAGMA statements. Nested field paths such as
``author.name`` are resolved by following the foreign key on ``author`` one
level deep.
"""

import asyncio
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.schema import CollectionSchema, ForeignKey, Relation, Schema
from ..models.storage import RowId, RowQuery
from .base import RowReader, SchemaProvider
from .filters import compile_filter, project_fields, quote_identifier, split_fields

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds
MAX_VARIABLES = 500


def _chunks(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class SqliteDatabase(RowReader, SchemaProvider):
    """
    Row reader and schema provider backed by a SQLite file.

    Each call opens its own connection in a worker thread, so one instance
    can serve concurrent reconciliation tasks.
    """

    def __init__(self, database_path: Union[str, Path]):
        self.database_path = Path(database_path)

    def _connect(self) -> sqlite3.Connection:
        if not self.database_path.exists():
            raise FileNotFoundError(f"Database not found: {self.database_path}")
        conn = sqlite3.connect(str(self.database_path))
        conn.row_factory = sqlite3.Row
        return conn

    # Introspection

    def _table_names(self, conn: sqlite3.Connection) -> List[str]:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [row["name"] for row in rows]

    def _table_info(self, conn: sqlite3.Connection, table: str) -> CollectionSchema:
        info = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
        if not info:
            raise ValueError(f"Unknown collection: {table}")

        columns = [row["name"] for row in info]
        pk_columns = sorted((row for row in info if row["pk"]), key=lambda row: row["pk"])
        primary = pk_columns[0]["name"] if pk_columns else "rowid"
        return CollectionSchema(name=table, primary=primary, columns=columns)

    def _foreign_keys(self, conn: sqlite3.Connection, table: str) -> List[Relation]:
        relations = []
        for row in conn.execute(f"PRAGMA foreign_key_list({quote_identifier(table)})").fetchall():
            relations.append(Relation(
                collection=table,
                related_collection=row["table"],
                foreign_key=ForeignKey(
                    column=row["from"],
                    foreign_key_table=row["table"],
                    foreign_key_column=row["to"]
                )
            ))
        return relations

    def _load_schema(self) -> Schema:
        with closing(self._connect()) as conn:
            collections = {}
            relations: List[Relation] = []
            for table in self._table_names(conn):
                collections[table] = self._table_info(conn, table)
                relations.extend(self._foreign_keys(conn, table))
        return Schema(collections=collections, relations=relations)

    async def get_schema(self) -> Schema:
        return await asyncio.to_thread(self._load_schema)

    # Reads

    def _select(
        self,
        conn: sqlite3.Connection,
        collection: str,
        query: RowQuery,
        ids: Optional[List[RowId]] = None
    ) -> List[Dict[str, Any]]:
        info = self._table_info(conn, collection)
        columns, nested = split_fields(query.fields)

        if columns is None:
            select_list = "*"
            if info.primary == "rowid":
                select_list = "rowid, *"
        else:
            unknown = [c for c in columns if c not in info.columns and c != info.primary]
            if unknown:
                raise ValueError(f"Unknown fields for {collection}: {unknown}")
            select_list = ", ".join(quote_identifier(c) for c in columns)

        where, params = compile_filter(query.filter, info.columns)
        sql = f"SELECT {select_list} FROM {quote_identifier(collection)} WHERE {where}"

        if ids is not None:
            rows: List[Dict[str, Any]] = []
            for chunk in _chunks(list(ids), MAX_VARIABLES):
                placeholders = ", ".join("?" for _ in chunk)
                chunk_sql = (
                    f"{sql} AND {quote_identifier(info.primary)} IN ({placeholders}) "
                    f"ORDER BY {quote_identifier(info.primary)}"
                )
                rows.extend(dict(row) for row in conn.execute(chunk_sql, [*params, *chunk]))
        else:
            sql += f" ORDER BY {quote_identifier(info.primary)}"
            if query.limit is not None:
                sql += " LIMIT ? OFFSET ?"
                params = [*params, query.limit, query.offset]
            elif query.offset:
                sql += " LIMIT -1 OFFSET ?"
                params = [*params, query.offset]
            rows = [dict(row) for row in conn.execute(sql, params)]

        if nested:
            self._expand_relations(conn, collection, rows, nested)
        logger.debug(f"Read {len(rows)} rows from {collection}")
        return rows

    def _expand_relations(
        self,
        conn: sqlite3.Connection,
        collection: str,
        rows: List[Dict[str, Any]],
        nested: Dict[str, List[str]]
    ) -> None:
        """Replace foreign-key values with projected related rows"""
        foreign_keys = {r.column: r.foreign_key for r in self._foreign_keys(conn, collection)}

        for column, sub_fields in nested.items():
            foreign_key = foreign_keys.get(column)
            if foreign_key is None or not foreign_key.foreign_key_table:
                raise ValueError(f"Field {collection}.{column} is not a foreign key")

            related_table = foreign_key.foreign_key_table
            target_column = (
                foreign_key.foreign_key_column
                or self._table_info(conn, related_table).primary
            )

            values = list({row[column] for row in rows if row.get(column) is not None})
            related: Dict[str, Dict[str, Any]] = {}
            for chunk in _chunks(values, MAX_VARIABLES):
                placeholders = ", ".join("?" for _ in chunk)
                sql = (
                    f"SELECT * FROM {quote_identifier(related_table)} "
                    f"WHERE {quote_identifier(target_column)} IN ({placeholders})"
                )
                for row in conn.execute(sql, chunk):
                    related[str(row[target_column])] = dict(row)

            for row in rows:
                value = row.get(column)
                match = related.get(str(value)) if value is not None else None
                row[column] = project_fields(match, sub_fields) if match is not None else None

    def _read(self, collection: str, query: RowQuery, ids: Optional[List[RowId]] = None) -> List[Dict[str, Any]]:
        with closing(self._connect()) as conn:
            return self._select(conn, collection, query, ids)

    async def read_by_query(self, collection: str, query: RowQuery) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, collection, query)

    async def read_many(
        self,
        collection: str,
        ids: Iterable[RowId],
        query: RowQuery
    ) -> List[Dict[str, Any]]:
        id_list = list(ids)
        if not id_list:
            return []
        return await asyncio.to_thread(self._read, collection, query, id_list)

    def _keys(self, collection: str, query: RowQuery) -> List[RowId]:
        with closing(self._connect()) as conn:
            info = self._table_info(conn, collection)
            rows = self._select(
                conn, collection,
                RowQuery(fields=[info.primary], filter=query.filter, limit=query.limit, offset=query.offset)
            )
            return [row[info.primary] for row in rows]

    async def get_keys_by_query(self, collection: str, query: RowQuery) -> List[RowId]:
        return await asyncio.to_thread(self._keys, collection, query)
