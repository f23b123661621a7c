"""
Validates a ChartSpec and fills in its defaults.

Checks run in a fixed order and stop at the first failure:
  1. chart_type is one of the supported chart types
  2. title is present
  3. at least one table
  4. at least one y-axis
  5. x_axis column is present
  6. every table has a name; every join has a table, a condition and a
     valid join type
  7. every y-axis has a column and, if aggregated, an allowed aggregation
  8. every filter has a column, a known operator and the operands that
     operator needs (raw filters only need their SQL text)
  9. order-by directions and limit are sane

Normalization never touches filter values.  Defaults:
  - join type      -> INNER
  - order direction -> ASC
  - width / height / theme -> 800 / 400 / "light"
"""
from __future__ import annotations

from chartql.chart.spec import (
    AGGREGATIONS,
    CHART_TYPES,
    FILTER_OPERATORS,
    JOIN_TYPES,
    ORDER_DIRECTIONS,
    ChartSpec,
    FilterSpec,
    JoinSpec,
    RawFilterSpec,
)
from chartql.core.errors import ConfigValidationError

DEFAULT_JOIN_TYPE = "INNER"
DEFAULT_ORDER_DIRECTION = "ASC"
DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 400
DEFAULT_THEME = "light"

# Operators that take their operands from ``values`` rather than ``value``.
_SEQUENCE_OPERATORS = ("IN", "NOT IN")
_OPERAND_FREE_OPERATORS = ("IS NULL", "IS NOT NULL")


def _one_of(choices: tuple[str, ...]) -> str:
    return ", ".join(choices)


def check_chart_config(spec: ChartSpec) -> None:
    """Raise ``ConfigValidationError`` for the first rule *spec* breaks."""
    if not spec.chart_type:
        raise ConfigValidationError("chart_type is required", field="chart_type")
    if spec.chart_type.lower() not in CHART_TYPES:
        raise ConfigValidationError(
            f"invalid chart_type '{spec.chart_type}'. Must be one of: {_one_of(CHART_TYPES)}",
            field="chart_type",
        )

    if not spec.title:
        raise ConfigValidationError("title is required", field="title")

    if not spec.tables:
        raise ConfigValidationError("at least one table is required", field="tables")

    if not spec.y_axis:
        raise ConfigValidationError("at least one y-axis is required", field="y_axis")

    if not spec.x_axis.column:
        raise ConfigValidationError("x_axis column is required", field="x_axis.column")

    for i, table in enumerate(spec.tables):
        if not table.name:
            raise ConfigValidationError(
                f"table name is required at index {i}", field="tables.name", index=i,
            )
        for j, join in enumerate(table.joins):
            _check_join(join, i, j)

    for i, axis in enumerate(spec.y_axis):
        if not axis.column:
            raise ConfigValidationError(
                f"y_axis column is required at index {i}", field="y_axis.column", index=i,
            )
        if axis.aggregation and axis.aggregation.upper() not in AGGREGATIONS:
            raise ConfigValidationError(
                f"invalid aggregation '{axis.aggregation}' for y_axis at index {i}. "
                f"Must be one of: {_one_of(AGGREGATIONS)}",
                field="y_axis.aggregation",
                index=i,
            )

    for i, flt in enumerate(spec.filters):
        if isinstance(flt, RawFilterSpec):
            if not flt.raw:
                raise ConfigValidationError(
                    f"raw filter SQL is required at index {i}", field="filters.raw", index=i,
                )
            continue
        _check_filter(flt, i)

    for i, order in enumerate(spec.order_by):
        if not order.column:
            raise ConfigValidationError(
                f"order_by column is required at index {i}", field="order_by.column", index=i,
            )
        if order.direction and order.direction.upper() not in ORDER_DIRECTIONS:
            raise ConfigValidationError(
                f"invalid order direction '{order.direction}' at index {i}. "
                f"Must be one of: {_one_of(ORDER_DIRECTIONS)}",
                field="order_by.direction",
                index=i,
            )

    if spec.limit < 0:
        raise ConfigValidationError(f"limit must be >= 0, got {spec.limit}", field="limit")


def _check_join(join: JoinSpec, table_index: int, join_index: int) -> None:
    where = f"at table index {table_index}, join index {join_index}"
    if not join.table:
        raise ConfigValidationError(
            f"join table is required {where}", field=f"tables[{table_index}].joins.table", index=join_index,
        )
    if not join.condition:
        raise ConfigValidationError(
            f"join condition is required {where}", field=f"tables[{table_index}].joins.condition", index=join_index,
        )
    if join.type and join.type.upper() not in JOIN_TYPES:
        raise ConfigValidationError(
            f"invalid join type '{join.type}' {where}. Must be one of: {_one_of(JOIN_TYPES)}",
            field=f"tables[{table_index}].joins.type",
            index=join_index,
        )


def _check_filter(flt: FilterSpec, index: int) -> None:
    if not flt.column:
        raise ConfigValidationError(
            f"filter column is required at index {index}", field="filters.column", index=index,
        )
    if not flt.operator:
        raise ConfigValidationError(
            f"filter operator is required at index {index}", field="filters.operator", index=index,
        )

    op = flt.operator.upper()
    if op not in FILTER_OPERATORS:
        raise ConfigValidationError(
            f"invalid filter operator '{flt.operator}' at index {index}. "
            f"Must be one of: {_one_of(FILTER_OPERATORS)}",
            field="filters.operator",
            index=index,
        )

    if op in _SEQUENCE_OPERATORS:
        if not flt.values:
            raise ConfigValidationError(
                f"{op} operator requires a non-empty 'values' array at filter index {index}",
                field="filters.values",
                index=index,
            )
    elif op == "BETWEEN":
        if flt.values is None or len(flt.values) != 2:
            raise ConfigValidationError(
                f"BETWEEN operator requires exactly 2 values at filter index {index}",
                field="filters.values",
                index=index,
            )
    elif op not in _OPERAND_FREE_OPERATORS and not flt.has_operand:
        raise ConfigValidationError(
            f"filter value is required for operator '{flt.operator}' at index {index}",
            field="filters.value",
            index=index,
        )


def normalize_chart_config(spec: ChartSpec) -> ChartSpec:
    """Return a deep copy of *spec* with defaults applied and keywords canonicalised."""
    out = spec.model_copy(deep=True)

    out.chart_type = out.chart_type.lower()

    for table in out.tables:
        for join in table.joins:
            join.type = join.type.upper() if join.type else DEFAULT_JOIN_TYPE

    if out.x_axis.aggregation:
        out.x_axis.aggregation = out.x_axis.aggregation.upper()
    for axis in out.y_axis:
        if axis.aggregation:
            axis.aggregation = axis.aggregation.upper()

    for flt in out.filters:
        if isinstance(flt, FilterSpec):
            flt.operator = flt.operator.upper()

    for order in out.order_by:
        order.direction = order.direction.upper() if order.direction else DEFAULT_ORDER_DIRECTION

    if out.options.width == 0:
        out.options.width = DEFAULT_WIDTH
    if out.options.height == 0:
        out.options.height = DEFAULT_HEIGHT
    if not out.options.theme:
        out.options.theme = DEFAULT_THEME

    return out


def validate_and_normalize(spec: ChartSpec) -> ChartSpec:
    """Check *spec* and return a normalized copy ready for the query builder.

    Raises
    ------
    ConfigValidationError
        On the first structural problem found.
    """
    check_chart_config(spec)
    return normalize_chart_config(spec)
