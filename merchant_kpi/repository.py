"""Repository for persisting and fetching merchant records."""
from __future__ import annotations

import sqlite3
from datetime import date
from sqlite3 import Connection
from typing import List, Optional, Sequence

from . import database
from .loader import MerchantRecord


class StoreError(RuntimeError):
    """Raised when the backing store rejects a read or write."""


class MerchantDataRepository:
    """Data access layer for the ``merchant_data`` table."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def insert_many(self, records: Sequence[MerchantRecord]) -> int:
        """Insert ``records`` in a single transaction and return how many were written."""

        try:
            with self._conn:
                self._conn.executemany(
                    """
                    INSERT INTO merchant_data (
                        pillar, product_type, brand_id, merchant_name, tpt, tpv, date
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [record.as_row() for record in records],
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Bulk insert failed: {exc}") from exc
        return len(records)

    def delete_all(self) -> int:
        """Remove every row and return the number deleted."""

        try:
            with self._conn:
                cursor = self._conn.execute("DELETE FROM merchant_data")
        except sqlite3.Error as exc:
            raise StoreError(f"Delete failed: {exc}") from exc
        return cursor.rowcount

    def count(self) -> int:
        try:
            row = self._conn.execute("SELECT COUNT(*) AS count FROM merchant_data").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Count failed: {exc}") from exc
        return int(row["count"] if row else 0)

    def fetch(
        self,
        *,
        pillar: Optional[str] = None,
        product_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[MerchantRecord]:
        """Return stored records matching the filters, oldest month first."""

        where_sql, params = database.filter_clause(
            pillar=pillar, product_type=product_type, start=start, end=end
        )

        try:
            rows = self._conn.execute(
                f"""
                SELECT pillar, product_type, brand_id, merchant_name, tpt, tpv, date
                FROM merchant_data{where_sql}
                ORDER BY date, id
                """,
                params,
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Query failed: {exc}") from exc

        return [
            MerchantRecord(
                pillar=str(row["pillar"]),
                product_type=str(row["product_type"]),
                brand_id=str(row["brand_id"]),
                merchant_name=str(row["merchant_name"]),
                tpt=float(row["tpt"]),
                tpv=float(row["tpv"]),
                date=date.fromisoformat(row["date"]),
            )
            for row in rows
        ]
