"""
Unit tests — query builder: ChartSpec -> (sql, args).
"""
import re

import pytest

from chartql.chart.query_builder import build_chart_query
from chartql.chart.service import to_sql
from chartql.chart.spec import (
    AxisSpec,
    ChartSpec,
    FilterSpec,
    JoinSpec,
    OrderSpec,
    RawFilterSpec,
    TableSpec,
)
from chartql.core.errors import ConfigValidationError, QueryBuildError

BASE_SELECT = "SELECT created_at as x_value, SUM(amount) as y_value_0 FROM orders"


# ── Helper ───────────────────────────────────────────────

def _spec(**overrides) -> ChartSpec:
    defaults = dict(
        chart_type="bar",
        title="Revenue",
        tables=[TableSpec(name="orders")],
        x_axis=AxisSpec(column="created_at"),
        y_axis=[AxisSpec(column="amount", aggregation="SUM")],
    )
    defaults.update(overrides)
    return ChartSpec(**defaults)


def _where(*filters) -> tuple[str, list]:
    """Build with only filters set; return the WHERE part and args."""
    sql, args = to_sql(_spec(filters=list(filters)))
    assert sql.startswith(BASE_SELECT + " WHERE ")
    return sql[len(BASE_SELECT) + len(" WHERE "):], args


def _placeholders(sql: str) -> list[int]:
    return [int(n) for n in re.findall(r"\$(\d+)", sql)]


# ── End-to-end shape ─────────────────────────────────────

def test_full_line_chart_query():
    spec = ChartSpec(
        chart_type="line",
        title="Revenue over time",
        tables=[
            TableSpec(
                name="orders",
                joins=[JoinSpec(table="users", type="LEFT", condition="orders.user_id = users.id")],
            )
        ],
        x_axis=AxisSpec(column="created_at"),
        y_axis=[AxisSpec(column="amount", aggregation="SUM")],
        filters=[FilterSpec(column="deleted_at", operator="IS NULL")],
        group_by=["created_at"],
        order_by=[OrderSpec(column="created_at", direction="ASC")],
        limit=100,
    )
    sql, args = to_sql(spec)
    assert sql == (
        "SELECT created_at as x_value, SUM(amount) as y_value_0 "
        "FROM orders LEFT JOIN users ON orders.user_id = users.id "
        "WHERE deleted_at IS NULL "
        "GROUP BY created_at "
        "ORDER BY created_at ASC "
        "LIMIT 100"
    )
    assert args == []


def test_minimal_query():
    sql, args = to_sql(_spec())
    assert sql == BASE_SELECT
    assert args == []


def test_build_is_deterministic():
    spec = _spec(filters=[
        FilterSpec(column="status", operator="IN", values=["a", "b", None]),
        FilterSpec(column="amount", operator=">", value=10),
    ])
    assert to_sql(spec) == to_sql(spec)


# ── SELECT list ──────────────────────────────────────────

def test_unaggregated_y_axis():
    sql, _ = to_sql(_spec(y_axis=[AxisSpec(column="amount")]))
    assert "amount as y_value_0" in sql


def test_x_axis_aggregation_is_applied():
    sql, _ = to_sql(_spec(x_axis=AxisSpec(column="id", aggregation="COUNT")))
    assert sql.startswith("SELECT COUNT(id) as x_value,")


def test_multiple_y_series_are_numbered_by_position():
    sql, _ = to_sql(_spec(y_axis=[
        AxisSpec(column="amount", aggregation="SUM"),
        AxisSpec(column="amount", aggregation="AVG"),
        AxisSpec(column="discount"),
    ]))
    assert "SUM(amount) as y_value_0, AVG(amount) as y_value_1, discount as y_value_2" in sql


def test_axis_alias_is_not_used_in_sql():
    sql, _ = to_sql(_spec(y_axis=[AxisSpec(column="amount", aggregation="SUM", alias="total")]))
    assert "as y_value_0" in sql
    assert "total" not in sql


# ── FROM / JOIN ──────────────────────────────────────────

def test_table_and_join_aliases():
    spec = _spec(tables=[
        TableSpec(
            name="orders",
            alias="o",
            joins=[
                JoinSpec(table="users", alias="u", condition="o.user_id = u.id"),
                JoinSpec(table="products", alias="p", type="right", condition="o.product_id = p.id"),
            ],
        )
    ])
    sql, _ = to_sql(spec)
    assert (
        "FROM orders o INNER JOIN users u ON o.user_id = u.id "
        "RIGHT JOIN products p ON o.product_id = p.id"
    ) in sql


def test_joins_on_other_tables_are_not_emitted():
    spec = _spec(tables=[
        TableSpec(name="orders"),
        TableSpec(
            name="users",
            joins=[JoinSpec(table="countries", condition="users.country_id = countries.id")],
        ),
    ])
    sql, _ = to_sql(spec)
    assert sql == BASE_SELECT
    assert "countries" not in sql


# ── Equality family ──────────────────────────────────────

def test_equality_binds_value():
    where, args = _where(FilterSpec(column="status", operator="=", value="completed"))
    assert where == "status = $1"
    assert args == ["completed"]


def test_equality_with_number():
    where, args = _where(FilterSpec(column="user_id", operator="!=", value=7))
    assert where == "user_id != $1"
    assert args == [7]


def test_equality_with_null_is_null():
    where, args = _where(FilterSpec(column="deleted_at", operator="=", value=None))
    assert where == "deleted_at IS NULL"
    assert args == []


@pytest.mark.parametrize("op", ["!=", "<>"])
def test_inequality_with_null_is_not_null(op):
    where, args = _where(FilterSpec(column="deleted_at", operator=op, value=None))
    assert where == "deleted_at IS NOT NULL"
    assert args == []


@pytest.mark.parametrize(
    "op, value, expected",
    [
        ("=", "true", "is_active IS TRUE"),
        ("=", "False", "is_active IS FALSE"),
        ("!=", "TRUE", "is_active IS NOT TRUE"),
        ("<>", "false", "is_active IS NOT FALSE"),
        ("=", True, "is_active IS TRUE"),
        ("=", False, "is_active IS FALSE"),
        ("!=", True, "is_active IS NOT TRUE"),
        ("<>", False, "is_active IS NOT FALSE"),
    ],
)
def test_boolean_literals_become_is_predicates(op, value, expected):
    where, args = _where(FilterSpec(column="is_active", operator=op, value=value))
    assert where == expected
    assert args == []


# ── Ordered comparisons ──────────────────────────────────

@pytest.mark.parametrize("op", ["<", "<=", ">", ">="])
def test_comparison_binds_value(op):
    where, args = _where(FilterSpec(column="amount", operator=op, value=100))
    assert where == f"amount {op} $1"
    assert args == [100]


def test_comparison_with_null_fails():
    spec = _spec(filters=[FilterSpec(column="amount", operator=">", value=None)])
    with pytest.raises(QueryBuildError, match="cannot compare with NULL"):
        to_sql(spec)


def test_comparison_without_value_fails_validation_first():
    spec = _spec(filters=[FilterSpec(column="amount", operator=">")])
    with pytest.raises(ConfigValidationError):
        to_sql(spec)


# ── LIKE family ──────────────────────────────────────────

@pytest.mark.parametrize("op", ["LIKE", "ILIKE", "NOT LIKE", "NOT ILIKE"])
def test_like_binds_pattern(op):
    where, args = _where(FilterSpec(column="name", operator=op, value="%shoe%"))
    assert where == f"name {op} $1"
    assert args == ["%shoe%"]


@pytest.mark.parametrize("op", ["LIKE", "NOT ILIKE"])
def test_like_with_null_is_null(op):
    where, args = _where(FilterSpec(column="name", operator=op, value=None))
    assert where == "name IS NULL"
    assert args == []


def test_like_with_boolean_looking_string_is_bound():
    where, args = _where(FilterSpec(column="flag", operator="LIKE", value="true"))
    assert where == "flag LIKE $1"
    assert args == ["true"]


# ── IN / NOT IN ──────────────────────────────────────────

def test_in_all_values():
    where, args = _where(FilterSpec(column="status", operator="IN", values=[1, 2]))
    assert where == "status IN ($1, $2)"
    assert args == [1, 2]


def test_in_mixed_with_null():
    where, args = _where(FilterSpec(column="status", operator="IN", values=[1, 2, None]))
    assert where == "(status IN ($1, $2) OR status IS NULL)"
    assert args == [1, 2]


def test_in_only_null():
    where, args = _where(FilterSpec(column="status", operator="IN", values=[None, None]))
    assert where == "status IS NULL"
    assert args == []


def test_not_in_all_values():
    where, args = _where(FilterSpec(column="status", operator="NOT IN", values=["a", "b"]))
    assert where == "status NOT IN ($1, $2)"
    assert args == ["a", "b"]


def test_not_in_mixed_with_null():
    where, args = _where(FilterSpec(column="status", operator="NOT IN", values=[None, "a"]))
    assert where == "(status NOT IN ($1) OR status IS NULL)"
    assert args == ["a"]


def test_not_in_only_null():
    where, args = _where(FilterSpec(column="status", operator="NOT IN", values=[None]))
    assert where == "status IS NOT NULL"
    assert args == []


# ── BETWEEN ──────────────────────────────────────────────

def test_between_binds_both_bounds():
    where, args = _where(FilterSpec(column="amount", operator="BETWEEN", values=[10, 20]))
    assert where == "amount BETWEEN $1 AND $2"
    assert args == [10, 20]


@pytest.mark.parametrize("values", [[10, None], [None, 20], [None, None]])
def test_between_with_null_fails(values):
    spec = _spec(filters=[FilterSpec(column="amount", operator="BETWEEN", values=values)])
    with pytest.raises(QueryBuildError, match="BETWEEN operator cannot have NULL values"):
        to_sql(spec)


def test_build_error_reports_filter_index():
    spec = _spec(filters=[
        FilterSpec(column="status", operator="=", value="x"),
        FilterSpec(column="amount", operator="BETWEEN", values=[1, None]),
    ])
    with pytest.raises(QueryBuildError) as exc_info:
        to_sql(spec)
    assert exc_info.value.index == 1
    assert exc_info.value.stage == "build"


# ── IS NULL / IS NOT NULL ────────────────────────────────

def test_is_null_ignores_value():
    where, args = _where(FilterSpec(column="deleted_at", operator="IS NULL", value="ignored"))
    assert where == "deleted_at IS NULL"
    assert args == []


def test_is_not_null():
    where, args = _where(FilterSpec(column="deleted_at", operator="IS NOT NULL"))
    assert where == "deleted_at IS NOT NULL"
    assert args == []


# ── Raw filters ──────────────────────────────────────────

def test_raw_filter_is_emitted_verbatim_with_its_values():
    where, args = _where(
        RawFilterSpec(raw="(region = $1 OR region = $2)", raw_values=["EU", "US"]),
        FilterSpec(column="status", operator="=", value="paid"),
    )
    assert where == "(region = $1 OR region = $2) AND status = $3"
    assert args == ["EU", "US", "paid"]


# ── Argument indexing across filters ─────────────────────

def test_placeholders_are_shared_across_filters():
    where, args = _where(
        FilterSpec(column="status", operator="=", value="a"),
        FilterSpec(column="id", operator="IN", values=[1, None, 3]),
        FilterSpec(column="deleted_at", operator="IS NULL"),
        FilterSpec(column="is_active", operator="=", value="true"),
        FilterSpec(column="amount", operator="BETWEEN", values=[5, 9]),
        FilterSpec(column="name", operator="LIKE", value="x%"),
    )
    assert where == (
        "status = $1 AND (id IN ($2, $3) OR id IS NULL) AND deleted_at IS NULL "
        "AND is_active IS TRUE AND amount BETWEEN $4 AND $5 AND name LIKE $6"
    )
    assert args == ["a", 1, 3, 5, 9, "x%"]


def test_placeholder_numbers_match_argument_positions():
    spec = _spec(filters=[
        FilterSpec(column="a", operator="NOT IN", values=[1, 2, None]),
        FilterSpec(column="b", operator="=", value=None),
        FilterSpec(column="c", operator=">=", value=3.5),
        FilterSpec(column="d", operator="IN", values=[None]),
        FilterSpec(column="e", operator="BETWEEN", values=["2024-01-01", "2024-12-31"]),
        FilterSpec(column="f", operator="<>", value=False),
        FilterSpec(column="g", operator="ILIKE", value="%x%"),
    ])
    sql, args = to_sql(spec)
    assert _placeholders(sql) == list(range(1, len(args) + 1))
    assert args == [1, 2, 3.5, "2024-01-01", "2024-12-31", "%x%"]


# ── GROUP BY / ORDER BY / LIMIT ──────────────────────────

def test_group_by_keeps_order():
    sql, _ = to_sql(_spec(group_by=["region", "created_at"]))
    assert sql.endswith("GROUP BY region, created_at")


def test_order_by_multiple_columns():
    sql, _ = to_sql(_spec(order_by=[
        OrderSpec(column="y_value_0", direction="desc"),
        OrderSpec(column="created_at"),
    ]))
    assert sql.endswith("ORDER BY y_value_0 DESC, created_at ASC")


def test_zero_limit_is_omitted():
    sql, _ = to_sql(_spec(limit=0))
    assert "LIMIT" not in sql


def test_positive_limit():
    sql, _ = to_sql(_spec(limit=25))
    assert sql.endswith("LIMIT 25")


# ── Operator matching ────────────────────────────────────

def test_operators_match_case_insensitively():
    where, args = _where(
        FilterSpec(column="status", operator="in", values=["a"]),
        FilterSpec(column="name", operator="not like", value="z%"),
    )
    assert where == "status IN ($1) AND name NOT LIKE $2"
    assert args == ["a", "z%"]


def test_builder_matches_lowercase_operators_directly():
    spec = _spec(filters=[FilterSpec(column="amount", operator="between", values=[1, 2])])
    sql, args = build_chart_query(spec)
    assert sql.endswith("WHERE amount BETWEEN $1 AND $2")
    assert args == [1, 2]


def test_unknown_operator_falls_back_to_binding():
    spec = _spec(filters=[FilterSpec(column="name", operator="~", value="^a")])
    sql, args = build_chart_query(spec)
    assert sql.endswith("WHERE name ~ $1")
    assert args == ["^a"]


def test_unknown_operator_without_value_is_null_check():
    spec = _spec(filters=[FilterSpec(column="name", operator="~")])
    sql, args = build_chart_query(spec)
    assert sql.endswith("WHERE name IS NULL")
    assert args == []
