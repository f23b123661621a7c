"""GET /schema/* -- catalog lookups for people writing chart configurations."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from chartql.core.logging import get_logger
from chartql.db import schema_inspector

logger = get_logger(__name__)
router = APIRouter()


@router.get("/tables")
def list_tables(schema: str | None = None) -> dict:
    """Return table names in a schema."""
    try:
        tables = schema_inspector.get_tables(schema)
    except Exception as exc:
        logger.exception("Table lookup failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return {"tables": tables}


@router.get("/tables/{table}/columns")
def list_columns(table: str, schema: str | None = None) -> dict:
    """Return column metadata for one table."""
    try:
        columns = schema_inspector.get_column_info(table, schema)
    except Exception as exc:
        logger.exception("Column lookup failed for %s", table)
        raise HTTPException(status_code=500, detail=str(exc))
    if not columns:
        raise HTTPException(status_code=404, detail=f"Table '{table}' not found")
    return {"table": table, "columns": [asdict(c) for c in columns]}


@router.get("/types")
def list_types(schema: str | None = None) -> dict:
    """Return every user-defined type in a schema, grouped by kind."""
    try:
        details = schema_inspector.get_custom_types_with_details(schema)
    except Exception as exc:
        logger.exception("Type lookup failed")
        raise HTTPException(status_code=500, detail=str(exc))

    return {
        "all_types": [asdict(t) for t in details["all_types"]],
        "enum_types": {
            name: [asdict(v) for v in values] for name, values in details["enum_types"].items()
        },
        "composite_types": {
            name: [asdict(a) for a in attrs] for name, attrs in details["composite_types"].items()
        },
        "domain_types": [asdict(d) for d in details["domain_types"]],
        "range_types": [asdict(r) for r in details["range_types"]],
    }
