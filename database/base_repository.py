"""Base repository pattern for database operations."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiosqlite

from core.exceptions import DataFetchError, WriteError
from database.connection import get_db_pool

Query = Tuple[str, Sequence[Any]]


class BaseRepository:
    """Base repository with common database operations.

    Read failures surface as ``DataFetchError`` and write failures as
    ``WriteError`` so services can decide between soft-fail and reporting.
    """

    @staticmethod
    async def fetch_all(query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Fetch all rows as plain dictionaries."""
        pool = get_db_pool()
        try:
            async with pool.connection() as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise DataFetchError(str(exc)) from exc
        return [dict(row) for row in rows]

    @staticmethod
    async def fetch_one(query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        """Fetch a single row."""
        rows = await BaseRepository.fetch_all(query, params)
        return rows[0] if rows else None

    @staticmethod
    async def fetch_value(query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Fetch a single value from a single row."""
        row = await BaseRepository.fetch_one(query, params)
        return next(iter(row.values())) if row else None

    @staticmethod
    async def execute(query: str, params: Sequence[Any] = ()) -> int:
        """Execute a write query and return the last inserted row id."""
        pool = get_db_pool()
        try:
            async with pool.connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.lastrowid
        except aiosqlite.Error as exc:
            raise WriteError(str(exc)) from exc

    @staticmethod
    async def transaction(queries: Sequence[Query]) -> None:
        """Execute multiple queries in a single transaction.

        Either every statement is committed or none is.
        """
        pool = get_db_pool()
        async with pool.connection() as conn:
            try:
                await conn.execute("BEGIN")
                for query, params in queries:
                    await conn.execute(query, params)
                await conn.commit()
            except aiosqlite.Error as exc:
                if conn.in_transaction:
                    await conn.rollback()
                raise WriteError(str(exc)) from exc

    @staticmethod
    async def batch_insert(
        table: str,
        columns: Sequence[str],
        records: Sequence[Sequence[Any]],
    ) -> None:
        """Batch insert records into a table inside one transaction.

        Args:
            table: Table name
            columns: Column names
            records: List of value tuples
        """
        if not records:
            return
        await BaseRepository.transaction(
            [(build_insert(table, columns), record) for record in records]
        )


def build_insert(table: str, columns: Sequence[str]) -> str:
    placeholders = ', '.join(['?'] * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
