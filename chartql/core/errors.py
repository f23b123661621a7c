"""
Error taxonomy for chart query building.

Every error names the pipeline stage it came from (parse, validate, build)
and, where it applies, the offending field and its index in a list.
"""
from __future__ import annotations

from typing import Any


class ChartError(ValueError):
    """Base class for all chart configuration and query errors."""

    stage = "chart"

    def __init__(self, message: str, field: str | None = None, index: int | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.index = index

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "field": self.field,
            "index": self.index,
        }


class ConfigParseError(ChartError):
    """Malformed configuration text, or a file that can't be read/written."""

    stage = "parse"


class ConfigValidationError(ChartError):
    """Configuration is structurally invalid."""

    stage = "validate"


class QueryBuildError(ChartError):
    """Configuration is structurally valid but encodes an impossible predicate."""

    stage = "build"
