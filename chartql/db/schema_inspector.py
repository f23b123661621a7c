"""
PostgreSQL catalog introspection.

Read-only lookups used to help people write chart configurations:
tables, columns, and user-defined types (enums, composites, domains,
ranges) for a schema.  Nothing here is used by the query builder.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection

from chartql.core.config import get_settings
from chartql.core.logging import get_logger
from chartql.db.connection import readonly_connection

logger = get_logger(__name__)


# ── Records ──────────────────────────────────────────────

@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str
    is_nullable: bool
    default_value: str | None
    max_length: int | None
    position: int
    is_primary_key: bool
    comment: str


@dataclass(frozen=True)
class CustomType:
    schema_name: str
    type_name: str
    type_type: str  # composite | enum | domain | base | range
    category: str
    owner: str
    description: str | None


@dataclass(frozen=True)
class EnumValue:
    type_name: str
    label: str
    sort_order: float


@dataclass(frozen=True)
class CompositeTypeAttribute:
    type_name: str
    attribute_name: str
    data_type: str
    position: int
    is_nullable: bool
    default_value: str | None


@dataclass(frozen=True)
class DomainInfo:
    schema_name: str
    domain_name: str
    data_type: str
    is_nullable: bool
    default_value: str | None
    check_clause: str | None
    description: str | None


# ── SQL ──────────────────────────────────────────────────

_TABLES_SQL = """
    SELECT tablename
    FROM pg_tables
    WHERE schemaname = :schema
    ORDER BY tablename
"""

_COLUMNS_SQL = """
    SELECT
        c.column_name,
        c.data_type,
        c.is_nullable,
        c.column_default,
        c.character_maximum_length,
        c.ordinal_position,
        CASE WHEN pk.column_name IS NOT NULL THEN true ELSE false END AS is_primary_key,
        COALESCE(pgd.description, '') AS column_comment
    FROM information_schema.columns c
    LEFT JOIN (
        SELECT ku.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage ku
            ON tc.constraint_name = ku.constraint_name
            AND tc.table_schema = ku.table_schema
        WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_name = :table
            AND tc.table_schema = :schema
    ) pk ON c.column_name = pk.column_name
    LEFT JOIN pg_catalog.pg_statio_all_tables st
        ON c.table_name = st.relname AND c.table_schema = st.schemaname
    LEFT JOIN pg_catalog.pg_description pgd
        ON pgd.objoid = st.relid
        AND pgd.objsubid = c.ordinal_position
    WHERE c.table_name = :table
        AND c.table_schema = :schema
    ORDER BY c.ordinal_position
"""

_CUSTOM_TYPES_SQL = """
    SELECT
        n.nspname AS schema_name,
        t.typname AS type_name,
        CASE t.typtype
            WHEN 'c' THEN 'composite'
            WHEN 'e' THEN 'enum'
            WHEN 'd' THEN 'domain'
            WHEN 'b' THEN 'base'
            WHEN 'r' THEN 'range'
            WHEN 'p' THEN 'pseudo'
            ELSE 'unknown'
        END AS type_type,
        CASE t.typcategory
            WHEN 'A' THEN 'Array'
            WHEN 'B' THEN 'Boolean'
            WHEN 'C' THEN 'Composite'
            WHEN 'D' THEN 'Date/time'
            WHEN 'E' THEN 'Enum'
            WHEN 'G' THEN 'Geometric'
            WHEN 'I' THEN 'Network address'
            WHEN 'N' THEN 'Numeric'
            WHEN 'P' THEN 'Pseudo'
            WHEN 'R' THEN 'Range'
            WHEN 'S' THEN 'String'
            WHEN 'T' THEN 'Timespan'
            WHEN 'U' THEN 'User-defined'
            WHEN 'V' THEN 'Bit-string'
            WHEN 'X' THEN 'Unknown'
            ELSE 'Other'
        END AS category,
        pg_get_userbyid(t.typowner) AS owner,
        obj_description(t.oid, 'pg_type') AS description
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    WHERE n.nspname = :schema
        AND t.typtype IN ('c', 'e', 'd', 'b', 'r')
        AND NOT EXISTS (
            SELECT 1 FROM pg_class c
            WHERE c.reltype = t.oid AND c.relkind <> 'c'
        )
    ORDER BY n.nspname, t.typname
"""

_ENUMS_SQL = """
    SELECT
        t.typname AS type_name,
        e.enumlabel AS enum_label,
        e.enumsortorder AS sort_order
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_enum e ON t.oid = e.enumtypid
    WHERE n.nspname = :schema
        AND t.typtype = 'e'
    ORDER BY t.typname, e.enumsortorder
"""

_COMPOSITES_SQL = """
    SELECT
        t.typname AS type_name,
        a.attname AS attribute_name,
        format_type(a.atttypid, a.atttypmod) AS data_type,
        a.attnum AS position,
        NOT a.attnotnull AS is_nullable,
        pg_get_expr(ad.adbin, ad.adrelid) AS default_value
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    JOIN pg_class c ON c.reltype = t.oid
    JOIN pg_attribute a ON a.attrelid = c.oid
    LEFT JOIN pg_attrdef ad ON ad.adrelid = c.oid AND ad.adnum = a.attnum
    WHERE n.nspname = :schema
        AND t.typtype = 'c'
        AND c.relkind = 'c'
        AND a.attnum > 0
        AND NOT a.attisdropped
    ORDER BY t.typname, a.attnum
"""

_DOMAINS_SQL = """
    SELECT
        n.nspname AS schema_name,
        t.typname AS domain_name,
        format_type(t.typbasetype, t.typtypmod) AS data_type,
        NOT t.typnotnull AS is_nullable,
        t.typdefault AS default_value,
        pg_get_constraintdef(cc.oid) AS check_clause,
        obj_description(t.oid, 'pg_type') AS description
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    LEFT JOIN pg_constraint cc ON cc.contypid = t.oid AND cc.contype = 'c'
    WHERE n.nspname = :schema
        AND t.typtype = 'd'
    ORDER BY t.typname
"""

_RANGES_SQL = """
    SELECT
        n.nspname AS schema_name,
        t.typname AS type_name,
        'range' AS type_type,
        'Range' AS category,
        pg_get_userbyid(t.typowner) AS owner,
        obj_description(t.oid, 'pg_type') AS description
    FROM pg_type t
    JOIN pg_namespace n ON t.typnamespace = n.oid
    WHERE n.nspname = :schema
        AND t.typtype = 'r'
    ORDER BY t.typname
"""


# ── Helpers ──────────────────────────────────────────────

@contextmanager
def _connection(conn: Connection | None) -> Iterator[Connection]:
    if conn is not None:
        yield conn
    else:
        with readonly_connection() as ro_conn:
            yield ro_conn


def _fetch(sql: str, params: dict[str, Any], conn: Connection | None) -> list[dict[str, Any]]:
    with _connection(conn) as c:
        result = c.execute(text(sql), params)
        return [dict(row) for row in result.mappings().all()]


def _schema(schema: str | None) -> str:
    return schema or get_settings().default_schema


# ── Public API ───────────────────────────────────────────

def get_tables(schema: str | None = None, conn: Connection | None = None) -> list[str]:
    """Return table names in *schema*, alphabetically."""
    rows = _fetch(_TABLES_SQL, {"schema": _schema(schema)}, conn)
    return [r["tablename"] for r in rows]


def get_column_info(
    table: str, schema: str | None = None, conn: Connection | None = None,
) -> list[ColumnInfo]:
    """Return the columns of *table* in ordinal order."""
    rows = _fetch(_COLUMNS_SQL, {"table": table, "schema": _schema(schema)}, conn)
    return [
        ColumnInfo(
            name=r["column_name"],
            data_type=r["data_type"],
            is_nullable=r["is_nullable"] == "YES",
            default_value=r["column_default"],
            max_length=r["character_maximum_length"],
            position=r["ordinal_position"],
            is_primary_key=bool(r["is_primary_key"]),
            comment=r["column_comment"] or "",
        )
        for r in rows
    ]


def get_custom_types(schema: str | None = None, conn: Connection | None = None) -> list[CustomType]:
    """Return user-defined types (composite, enum, domain, base, range)."""
    rows = _fetch(_CUSTOM_TYPES_SQL, {"schema": _schema(schema)}, conn)
    return [CustomType(**r) for r in rows]


def get_enum_types(
    schema: str | None = None, conn: Connection | None = None,
) -> dict[str, list[EnumValue]]:
    """Return enum type name -> labels in sort order."""
    rows = _fetch(_ENUMS_SQL, {"schema": _schema(schema)}, conn)
    enums: dict[str, list[EnumValue]] = {}
    for r in rows:
        enums.setdefault(r["type_name"], []).append(
            EnumValue(type_name=r["type_name"], label=r["enum_label"], sort_order=r["sort_order"])
        )
    return enums


def get_composite_types(
    schema: str | None = None, conn: Connection | None = None,
) -> dict[str, list[CompositeTypeAttribute]]:
    """Return composite type name -> attributes in position order."""
    rows = _fetch(_COMPOSITES_SQL, {"schema": _schema(schema)}, conn)
    composites: dict[str, list[CompositeTypeAttribute]] = {}
    for r in rows:
        composites.setdefault(r["type_name"], []).append(CompositeTypeAttribute(**r))
    return composites


def get_domain_types(schema: str | None = None, conn: Connection | None = None) -> list[DomainInfo]:
    rows = _fetch(_DOMAINS_SQL, {"schema": _schema(schema)}, conn)
    return [DomainInfo(**r) for r in rows]


def get_range_types(schema: str | None = None, conn: Connection | None = None) -> list[CustomType]:
    rows = _fetch(_RANGES_SQL, {"schema": _schema(schema)}, conn)
    return [CustomType(**r) for r in rows]


def get_custom_types_with_details(
    schema: str | None = None, conn: Connection | None = None,
) -> dict[str, Any]:
    """Collect every kind of user-defined type in one dict.

    Keys: all_types, enum_types, composite_types, domain_types, range_types.
    A failing lookup is re-raised as RuntimeError naming the section.
    """
    sections = (
        ("all_types", get_custom_types),
        ("enum_types", get_enum_types),
        ("composite_types", get_composite_types),
        ("domain_types", get_domain_types),
        ("range_types", get_range_types),
    )
    details: dict[str, Any] = {}
    with _connection(conn) as c:
        for key, fetch in sections:
            try:
                details[key] = fetch(schema, c)
            except Exception as exc:
                logger.warning("Type introspection failed for %s: %s", key, exc)
                raise RuntimeError(f"error getting {key.replace('_', ' ')}: {exc}") from exc
    return details
