"""
ChartSpec -- the declarative description of the data a chart needs.

These models are passive: they describe tables, joins, axes, filters,
ordering and visual options.  Structural rules and defaults live in
``chartql.chart.validator``; SQL emission lives in
``chartql.chart.query_builder``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import (
    AllowInfNan,
    BaseModel,
    Discriminator,
    Field,
    SerializerFunctionWrapHandler,
    Strict,
    StrictBool,
    StrictInt,
    StrictStr,
    Tag,
    model_serializer,
)

# ── Allowed vocabularies ─────────────────────────────────

CHART_TYPES = ("line", "bar", "pie", "scatter", "area", "histogram")
JOIN_TYPES = ("INNER", "LEFT", "RIGHT", "FULL")
AGGREGATIONS = ("SUM", "COUNT", "AVG", "MIN", "MAX")
ORDER_DIRECTIONS = ("ASC", "DESC")

EQUALITY_OPERATORS = ("=", "!=", "<>")
COMPARISON_OPERATORS = ("<", "<=", ">", ">=")
PATTERN_OPERATORS = ("LIKE", "ILIKE", "NOT LIKE", "NOT ILIKE")
SET_OPERATORS = ("IN", "NOT IN")
NULL_OPERATORS = ("IS NULL", "IS NOT NULL")
RANGE_OPERATORS = ("BETWEEN",)

FILTER_OPERATORS = (
    EQUALITY_OPERATORS
    + COMPARISON_OPERATORS
    + SET_OPERATORS
    + RANGE_OPERATORS
    + NULL_OPERATORS
    + PATTERN_OPERATORS
)

# inf and NaN would be written back as null.
FiniteFloat = Annotated[float, Strict(), AllowInfNan(False)]

# Bool first so JSON ``true`` never turns into ``1``.
Scalar = Union[StrictBool, StrictInt, FiniteFloat, StrictStr]


# ── Filter operand variant ───────────────────────────────

class ValueKind(str, Enum):
    ABSENT = "absent"
    NULL = "null"
    BOOLEAN = "boolean"
    SCALAR = "scalar"


@dataclass(frozen=True)
class Operand:
    """The single-value side of a filter, tagged by what kind of value it is."""

    kind: ValueKind
    value: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind in (ValueKind.ABSENT, ValueKind.NULL)

    @property
    def truth(self) -> bool | None:
        """``True``/``False`` for BOOLEAN operands, ``None`` otherwise."""
        if self.kind is not ValueKind.BOOLEAN:
            return None
        if isinstance(self.value, bool):
            return self.value
        return self.value.lower() == "true"


def classify_operand(value: Any, supplied: bool) -> Operand:
    """Tag a raw filter value.  *supplied* is False when the key was never set."""
    if value is None:
        return Operand(ValueKind.NULL if supplied else ValueKind.ABSENT)
    if isinstance(value, bool):
        return Operand(ValueKind.BOOLEAN, value)
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return Operand(ValueKind.BOOLEAN, value)
    return Operand(ValueKind.SCALAR, value)


# ── Data source ──────────────────────────────────────────

class JoinSpec(BaseModel):
    table: str = Field("", description="Joined table name")
    alias: str | None = Field(None, description="Optional alias for the joined table")
    type: str = Field("", description="INNER | LEFT | RIGHT | FULL (defaults to INNER)")
    condition: str = Field("", description="Raw ON predicate, e.g. 'users.id = orders.user_id'")


class TableSpec(BaseModel):
    name: str = Field("", description="Table name")
    alias: str | None = None
    joins: list[JoinSpec] = Field(default_factory=list)


# ── Axes ─────────────────────────────────────────────────

class AxisSpec(BaseModel):
    column: str = Field("", description="Column or expression, e.g. 'created_at' or 'COUNT(*)'")
    label: str = ""
    aggregation: str = Field("", description="SUM | COUNT | AVG | MIN | MAX")
    data_type: str = Field("", description="numeric | datetime | string")
    format: str | None = Field(None, description="currency | percentage | date")
    alias: str | None = None


# ── Filters ──────────────────────────────────────────────

class FilterSpec(BaseModel):
    """Structured filter: ``column operator value(s)``."""

    column: str = ""
    operator: str = ""
    value: Scalar | None = None
    values: list[Scalar | None] | None = None

    @property
    def operand(self) -> Operand:
        return classify_operand(self.value, "value" in self.model_fields_set)

    @property
    def has_operand(self) -> bool:
        return self.operand.kind is not ValueKind.ABSENT or bool(self.values)

    @model_serializer(mode="wrap")
    def _omit_unset_operands(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        if "value" not in self.model_fields_set:
            data.pop("value", None)
        if self.values is None:
            data.pop("values", None)
        return data


class RawFilterSpec(BaseModel):
    """Literal SQL predicate with its own bound values."""

    raw: str = ""
    raw_values: list[Scalar | None] = Field(default_factory=list)


def _filter_tag(obj: Any) -> str:
    if isinstance(obj, dict):
        return "raw" if obj.get("raw") else "structured"
    return "raw" if isinstance(obj, RawFilterSpec) else "structured"


AnyFilter = Annotated[
    Union[
        Annotated[FilterSpec, Tag("structured")],
        Annotated[RawFilterSpec, Tag("raw")],
    ],
    Discriminator(_filter_tag),
]


class OrderSpec(BaseModel):
    column: str = ""
    direction: str = Field("", description="ASC | DESC (defaults to ASC)")


# ── Visual options (never affect SQL) ────────────────────

class ChartOptions(BaseModel):
    width: int = 0
    height: int = 0
    theme: str = ""
    stacked: bool = False
    show_legend: bool = False
    show_grid: bool = False
    date_format: str | None = None
    time_interval: str | None = Field(None, description="day | week | month | year")
    colors: list[str] = Field(default_factory=list)


# ── Chart ────────────────────────────────────────────────

class ChartSpec(BaseModel):
    """Everything needed to turn one chart into one SQL query."""

    chart_type: str = Field("", description="line | bar | pie | scatter | area | histogram")
    title: str = ""
    description: str = ""

    tables: list[TableSpec] = Field(default_factory=list)

    x_axis: AxisSpec = Field(default_factory=AxisSpec)
    y_axis: list[AxisSpec] = Field(default_factory=list, description="One entry per Y series")

    group_by: list[str] = Field(default_factory=list)
    filters: list[AnyFilter] = Field(default_factory=list)

    options: ChartOptions = Field(default_factory=ChartOptions)

    limit: int = Field(0, description="Maximum rows; 0 means unlimited")
    order_by: list[OrderSpec] = Field(default_factory=list)
