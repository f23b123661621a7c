"""
Read-only executor for chart queries.

The query builder emits PostgreSQL ``$n`` placeholders with a positional
argument list.  ``execute_chart_query``:
  1. Rewrites ``$n`` to SQLAlchemy named binds (``:p<n>``)
  2. Opens a READ ONLY transaction
  3. Enforces a per-query statement_timeout
  4. Materialises rows into ``ChartDataRow`` objects
"""
from __future__ import annotations

import re
import time
from typing import Any, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection

from chartql.core.config import get_settings
from chartql.core.logging import get_logger
from chartql.db.connection import readonly_connection
from chartql.db.rows import ChartDataRow, materialize_rows

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$(\d+)\b")


def to_named_params(sql: str, args: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$n`` placeholders as ``:pn`` and key *args* to match.

    Raises
    ------
    ValueError
        If a placeholder refers past the end of *args*.
    """
    def _replace(match: re.Match[str]) -> str:
        n = int(match.group(1))
        if n < 1 or n > len(args):
            raise ValueError(f"placeholder ${n} has no argument ({len(args)} supplied)")
        return f":p{n}"

    named_sql = _PLACEHOLDER_RE.sub(_replace, sql)
    params = {f"p{i}": val for i, val in enumerate(args, start=1)}
    return named_sql, params


def _run(conn: Connection, sql: str, args: Sequence[Any], timeout_ms: int) -> list[ChartDataRow]:
    named_sql, params = to_named_params(sql, args)
    conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
    result = conn.execute(text(named_sql), params)
    columns = list(result.keys())
    return materialize_rows(columns, result.fetchall())


def execute_chart_query(
    sql: str,
    args: Sequence[Any],
    conn: Connection | None = None,
    timeout_ms: int | None = None,
) -> list[ChartDataRow]:
    """Execute a built chart query and return its rows.

    When *conn* is given the query runs on it (the caller owns the
    transaction); otherwise a pooled READ ONLY connection is used.
    Database errors propagate unchanged.
    """
    if timeout_ms is None:
        timeout_ms = get_settings().query_timeout_ms

    logger.info("Executing chart SQL (%d chars, %d args)", len(sql), len(args))
    start = time.perf_counter()

    if conn is not None:
        rows = _run(conn, sql, args, timeout_ms)
    else:
        with readonly_connection() as ro_conn:
            rows = _run(ro_conn, sql, args, timeout_ms)

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    logger.info("Returned %d rows in %d ms", len(rows), elapsed_ms)
    return rows
