"""POST /charts/* -- compile (and optionally run) chart configurations."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from chartql.chart.service import run_chart, to_sql
from chartql.chart.spec import ChartSpec
from chartql.chart.validator import validate_and_normalize
from chartql.core.errors import ChartError
from chartql.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ChartSQLResponse(BaseModel):
    sql: str
    args: list[Any]


class ChartRowResponse(BaseModel):
    x_value: Any
    y_values: list[dict[str, Any]]


class ChartDataResponse(ChartSQLResponse):
    rows: list[ChartRowResponse]
    row_count: int


@router.post("/validate", response_model=ChartSpec)
def validate_endpoint(spec: ChartSpec) -> ChartSpec:
    """Check a configuration and return it with defaults filled in."""
    return validate_and_normalize(spec)


@router.post("/sql", response_model=ChartSQLResponse)
def sql_endpoint(spec: ChartSpec) -> ChartSQLResponse:
    """Compile a configuration to parameterized SQL without running it."""
    sql, args = to_sql(spec)
    return ChartSQLResponse(sql=sql, args=args)


@router.post("/data", response_model=ChartDataResponse)
def data_endpoint(spec: ChartSpec) -> ChartDataResponse:
    """Compile a configuration, run it read-only and return chart rows."""
    try:
        sql, args, rows = run_chart(spec)
    except ChartError:
        raise
    except Exception as exc:
        logger.exception("Chart execution failed")
        raise HTTPException(status_code=500, detail=str(exc))

    return ChartDataResponse(
        sql=sql,
        args=args,
        rows=[ChartRowResponse(**r.to_dict()) for r in rows],
        row_count=len(rows),
    )
