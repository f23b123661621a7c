"""
Chart service -- validate -> build -> (optionally) execute.

``to_sql`` is the only supported way to get SQL for a chart: it always
runs the validator before the builder.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.engine import Connection

from chartql.chart.query_builder import build_chart_query
from chartql.chart.spec import ChartSpec
from chartql.chart.validator import validate_and_normalize
from chartql.db.executor import execute_chart_query
from chartql.db.rows import ChartDataRow


def to_sql(spec: ChartSpec) -> tuple[str, list[Any]]:
    """Validate *spec* and build its query.

    Raises
    ------
    ConfigValidationError
        The configuration is structurally invalid.
    QueryBuildError
        A filter value makes the predicate impossible (NULL in BETWEEN or
        in an ordered comparison).
    """
    normalized = validate_and_normalize(spec)
    return build_chart_query(normalized)


def run_chart(spec: ChartSpec, conn: Connection | None = None) -> tuple[str, list[Any], list[ChartDataRow]]:
    """Validate, build and execute *spec*; return the SQL, its args and the rows."""
    sql, args = to_sql(spec)
    rows = execute_chart_query(sql, args, conn=conn)
    return sql, args, rows
