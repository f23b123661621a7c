"""
Query builder — turns a validated ChartSpec into ``(sql, args)``.

Only filter *values* are ever bound as parameters.  Axis columns, table
names, join conditions, group-by and order-by expressions are trusted
strings and are written into the SQL as-is; they must not come from
untrusted input.

Placeholders are PostgreSQL-style ``$n``.  One counter is shared across the
whole WHERE clause, so ``$n`` always refers to ``args[n - 1]``.

The input must already have passed ``validate_and_normalize``; the builder
does not re-check structure.
"""
from __future__ import annotations

from typing import Any

from chartql.chart.spec import (
    COMPARISON_OPERATORS,
    EQUALITY_OPERATORS,
    AxisSpec,
    ChartSpec,
    FilterSpec,
    RawFilterSpec,
)
from chartql.core.errors import QueryBuildError
from chartql.core.logging import get_logger

logger = get_logger(__name__)


# ── Parameter bookkeeping ────────────────────────────────

class _Bindings:
    """Argument list for one build; placeholder numbers follow its length."""

    def __init__(self) -> None:
        self.args: list[Any] = []

    def bind(self, value: Any) -> str:
        self.args.append(value)
        return f"${len(self.args)}"

    def bind_all(self, values: list[Any]) -> str:
        return ", ".join(self.bind(v) for v in values)

    def extend(self, values: list[Any]) -> None:
        self.args.extend(values)


# ── SELECT ───────────────────────────────────────────────

def _select_term(axis: AxisSpec, output_name: str) -> str:
    if axis.aggregation:
        return f"{axis.aggregation}({axis.column}) as {output_name}"
    return f"{axis.column} as {output_name}"


def _select_clause(spec: ChartSpec) -> str:
    terms = [_select_term(spec.x_axis, "x_value")]
    for i, axis in enumerate(spec.y_axis):
        terms.append(_select_term(axis, f"y_value_{i}"))
    return "SELECT " + ", ".join(terms)


# ── FROM / JOIN ──────────────────────────────────────────

def _from_clause(spec: ChartSpec) -> str:
    # Only the first table is a FROM target; joins hanging off any other
    # table entry are not emitted.
    base = spec.tables[0]
    parts = [f"FROM {base.name}"]
    if base.alias:
        parts.append(base.alias)
    for join in base.joins:
        parts.append(f"{join.type} JOIN {join.table}")
        if join.alias:
            parts.append(join.alias)
        parts.append(f"ON {join.condition}")
    return " ".join(parts)


# ── WHERE ────────────────────────────────────────────────

def _equality_predicate(flt: FilterSpec, op: str, bindings: _Bindings) -> str:
    col = flt.column
    operand = flt.operand
    negate = op != "="

    if operand.is_null:
        return f"{col} IS NOT NULL" if negate else f"{col} IS NULL"

    if operand.truth is not None:
        literal = "TRUE" if operand.truth else "FALSE"
        return f"{col} IS NOT {literal}" if negate else f"{col} IS {literal}"

    return f"{col} {flt.operator} {bindings.bind(operand.value)}"


def _comparison_predicate(flt: FilterSpec, bindings: _Bindings) -> str:
    operand = flt.operand
    if operand.is_null:
        raise QueryBuildError(
            f"comparison operator {flt.operator} cannot compare with NULL",
            field="filters.value",
        )
    return f"{flt.column} {flt.operator} {bindings.bind(operand.value)}"


def _nullable_predicate(flt: FilterSpec, bindings: _Bindings) -> str:
    """LIKE-family and unrecognised operators: a NULL operand means ``IS NULL``."""
    operand = flt.operand
    if operand.is_null:
        return f"{flt.column} IS NULL"
    return f"{flt.column} {flt.operator} {bindings.bind(operand.value)}"


def _membership_predicate(flt: FilterSpec, op: str, bindings: _Bindings) -> str:
    col = flt.column
    items = flt.values or []
    present = [v for v in items if v is not None]
    has_null = len(present) != len(items)

    if not present:
        # Every listed value is NULL.
        return f"{col} IS NULL" if op == "IN" else f"{col} IS NOT NULL"

    membership = f"{col} {op} ({bindings.bind_all(present)})"
    if has_null:
        return f"({membership} OR {col} IS NULL)"
    return membership


def _between_predicate(flt: FilterSpec, bindings: _Bindings) -> str:
    low, high = (flt.values or [None, None])[:2]
    if low is None or high is None:
        raise QueryBuildError("BETWEEN operator cannot have NULL values", field="filters.values")
    return f"{flt.column} BETWEEN {bindings.bind(low)} AND {bindings.bind(high)}"


def _filter_predicate(flt: FilterSpec | RawFilterSpec, bindings: _Bindings) -> str:
    if isinstance(flt, RawFilterSpec):
        bindings.extend(flt.raw_values)
        return flt.raw

    op = flt.operator.upper()

    if op in EQUALITY_OPERATORS:
        return _equality_predicate(flt, op, bindings)
    if op in COMPARISON_OPERATORS:
        return _comparison_predicate(flt, bindings)
    if op in ("IN", "NOT IN"):
        return _membership_predicate(flt, op, bindings)
    if op == "BETWEEN":
        return _between_predicate(flt, bindings)
    if op == "IS NULL":
        return f"{flt.column} IS NULL"
    if op == "IS NOT NULL":
        return f"{flt.column} IS NOT NULL"
    return _nullable_predicate(flt, bindings)


def _where_clause(spec: ChartSpec, bindings: _Bindings) -> str | None:
    if not spec.filters:
        return None
    predicates: list[str] = []
    for i, flt in enumerate(spec.filters):
        try:
            predicates.append(_filter_predicate(flt, bindings))
        except QueryBuildError as exc:
            exc.index = i
            raise
    return "WHERE " + " AND ".join(predicates)


# ── Public API ───────────────────────────────────────────

def build_chart_query(spec: ChartSpec) -> tuple[str, list[Any]]:
    """Build the SQL text and positional argument list for *spec*.

    Raises
    ------
    QueryBuildError
        If a BETWEEN bound or an ordered comparison operand is NULL.  No
        partial SQL is returned in that case.
    """
    bindings = _Bindings()

    clauses = [_select_clause(spec), _from_clause(spec)]

    where = _where_clause(spec, bindings)
    if where:
        clauses.append(where)

    if spec.group_by:
        clauses.append("GROUP BY " + ", ".join(spec.group_by))

    if spec.order_by:
        clauses.append(
            "ORDER BY " + ", ".join(f"{o.column} {o.direction}" for o in spec.order_by)
        )

    if spec.limit > 0:
        clauses.append(f"LIMIT {spec.limit}")

    sql = " ".join(clauses)
    logger.debug("Built chart query (%d args): %s", len(bindings.args), sql)
    return sql, bindings.args
