"""Reporting utilities that leverage SQL for aggregation."""
from __future__ import annotations

from datetime import date
from sqlite3 import Connection
from typing import List, Optional, Tuple

from . import database


def monthly_totals(
    conn: Connection,
    *,
    pillar: Optional[str] = None,
    product_type: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Tuple[str, float, float]]:
    """Return TPT and TPV summed per month, oldest first."""
    where_sql, params = database.filter_clause(
        pillar=pillar, product_type=product_type, start=start, end=end
    )
    rows = conn.execute(
        "SELECT date, SUM(tpt) AS tpt, SUM(tpv) AS tpv "
        f"FROM merchant_data{where_sql} GROUP BY date ORDER BY date",
        params,
    ).fetchall()
    return [(row["date"], float(row["tpt"]), float(row["tpv"])) for row in rows]


def pillar_breakdown(
    conn: Connection,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Tuple[str, float, float]]:
    """Return totals per pillar, largest TPV first."""
    where_sql, params = database.filter_clause(start=start, end=end)
    rows = conn.execute(
        "SELECT pillar, SUM(tpt) AS tpt, SUM(tpv) AS tpv "
        f"FROM merchant_data{where_sql} GROUP BY pillar ORDER BY tpv DESC, pillar",
        params,
    ).fetchall()
    return [(row["pillar"], float(row["tpt"]), float(row["tpv"])) for row in rows]


def top_merchants(
    conn: Connection,
    *,
    limit: int = 10,
    pillar: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Tuple[str, str, float, float]]:
    """Return the merchants with the highest TPV over the selected window."""
    where_sql, params = database.filter_clause(pillar=pillar, start=start, end=end)
    rows = conn.execute(
        "SELECT brand_id, merchant_name, SUM(tpt) AS tpt, SUM(tpv) AS tpv "
        f"FROM merchant_data{where_sql} "
        "GROUP BY brand_id, merchant_name ORDER BY tpv DESC, brand_id LIMIT ?",
        (*params, limit),
    ).fetchall()
    return [
        (row["brand_id"], row["merchant_name"], float(row["tpt"]), float(row["tpv"]))
        for row in rows
    ]
