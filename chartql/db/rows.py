"""
Turns raw result rows into chart rows.

A chart query always selects ``x_value`` first and then ``y_value_0``,
``y_value_1`` ...  Each output row keeps the x value as-is (after
coercion) and wraps every y value in a one-key dict named after its
column, so series stay identifiable when a chart has several.
"""
from __future__ import annotations

import decimal
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence


@dataclass
class ChartDataRow:
    x_value: Any
    y_values: list[dict[str, Any]] = field(default_factory=list)

    def y_value_as_float(self, index: int) -> float | None:
        """Return the y value at *index* as a float, or None if missing/non-numeric."""
        if index < 0 or index >= len(self.y_values):
            return None
        entry = self.y_values[index]
        if not entry:
            return None
        val = next(iter(entry.values()))
        if isinstance(val, bool):
            return 1.0 if val else 0.0
        if isinstance(val, (int, float, decimal.Decimal)):
            return float(val)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"x_value": self.x_value, "y_values": self.y_values}


def coerce_value(val: Any) -> Any:
    """Convert a driver value to the canonical chart form.

    bytes -> str, bool -> 1.0/0.0, any int/float/Decimal -> float.
    Everything else (None, str, dates, ...) passes through.
    """
    if val is None:
        return None
    if isinstance(val, (bytes, bytearray, memoryview)):
        return bytes(val).decode("utf-8", errors="replace")
    if isinstance(val, bool):
        return 1.0 if val else 0.0
    if isinstance(val, (int, float, decimal.Decimal)):
        return float(val)
    return val


def materialize_rows(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> list[ChartDataRow]:
    """Build one ChartDataRow per result row; the first column is the x value."""
    y_columns = list(columns[1:])
    result: list[ChartDataRow] = []
    for row in rows:
        values = [coerce_value(v) for v in row]
        result.append(
            ChartDataRow(
                x_value=values[0] if values else None,
                y_values=[{col: val} for col, val in zip(y_columns, values[1:])],
            )
        )
    return result
