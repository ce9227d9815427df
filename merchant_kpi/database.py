"""Database helpers for the merchant KPI store."""
from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path
from typing import List, Optional, Tuple

SCHEMA = """
CREATE TABLE IF NOT EXISTS merchant_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pillar TEXT NOT NULL,
    product_type TEXT NOT NULL,
    brand_id TEXT NOT NULL,
    merchant_name TEXT NOT NULL,
    tpt REAL NOT NULL DEFAULT 0,
    tpv REAL NOT NULL DEFAULT 0,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_merchant_data_date
    ON merchant_data(date);
CREATE INDEX IF NOT EXISTS idx_merchant_data_pillar
    ON merchant_data(pillar);
"""

SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    name TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

MIGRATIONS: tuple[tuple[str, str], ...] = (
    (
        "001_index_identity_columns",
        """
        CREATE INDEX IF NOT EXISTS idx_merchant_data_identity
            ON merchant_data(pillar, product_type, brand_id, merchant_name, date);
        """,
    ),
)


def get_connection(db_path: Path | str) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    path = Path(db_path)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path | str) -> None:
    """Initialise the SQLite database with the required tables."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
        run_migrations(conn)
        conn.commit()
    finally:
        conn.close()


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply outstanding migrations to the database."""

    conn.executescript(SCHEMA_MIGRATIONS)
    for name, script in MIGRATIONS:
        row = conn.execute(
            "SELECT 1 FROM schema_migrations WHERE name = ?", (name,)
        ).fetchone()
        if row:
            continue
        conn.executescript(script)
        conn.execute(
            "INSERT INTO schema_migrations (name) VALUES (?)",
            (name,),
        )
    conn.commit()


def filter_clause(
    *,
    pillar: Optional[str] = None,
    product_type: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Tuple[str, Tuple[object, ...]]:
    """Build a ``WHERE`` clause for the common ``merchant_data`` filters."""
    clauses: List[str] = []
    params: List[object] = []
    if pillar:
        clauses.append("pillar = ?")
        params.append(pillar)
    if product_type:
        clauses.append("product_type = ?")
        params.append(product_type)
    if start:
        clauses.append("date >= ?")
        params.append(start.isoformat())
    if end:
        clauses.append("date <= ?")
        params.append(end.isoformat())
    where_sql = " WHERE " + " AND ".join(clauses) if clauses else ""
    return where_sql, tuple(params)
