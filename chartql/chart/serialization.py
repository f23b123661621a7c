"""
Reading and writing chart configurations.

JSON is the interchange format; files ending in ``.yaml``/``.yml`` are
read and written with PyYAML.  Parsing checks structure (see
``chartql.chart.validator.check_chart_config``) but does not apply
defaults.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from chartql.chart.spec import ChartSpec
from chartql.chart.validator import check_chart_config
from chartql.core.errors import ChartError, ConfigParseError
from chartql.core.logging import get_logger

logger = get_logger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")

_raw_list = TypeAdapter(list[Any])


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def chart_config_from_dict(data: Any) -> ChartSpec:
    """Build and structurally check a ChartSpec from already-decoded data."""
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"chart configuration must be an object, got {type(data).__name__}"
        )
    try:
        spec = ChartSpec.model_validate(data)
    except ValidationError as exc:
        raise ConfigParseError(f"failed to decode chart configuration: {exc}") from exc
    check_chart_config(spec)
    return spec


def parse_chart_config(text: str | bytes) -> ChartSpec:
    """Parse one JSON chart configuration.

    Raises
    ------
    ConfigParseError
        Malformed JSON or fields of the wrong shape.
    ConfigValidationError
        Well-formed JSON that breaks a structural rule.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"failed to parse JSON: {exc}") from exc
    return chart_config_from_dict(data)


def parse_chart_configs(text: str | bytes) -> list[ChartSpec]:
    """Parse a JSON array of chart configurations.

    A failing element is reported with its position in the array.
    """
    try:
        items = _raw_list.validate_json(text)
    except ValidationError as exc:
        raise ConfigParseError(f"failed to parse JSON array: {exc}") from exc

    configs: list[ChartSpec] = []
    for i, item in enumerate(items):
        try:
            configs.append(chart_config_from_dict(item))
        except ChartError as exc:
            # The element position goes in index; the inner error stays on __cause__.
            field = f"[{i}].{exc.field}" if exc.field else f"[{i}]"
            raise ConfigParseError(
                f"failed to parse config at index {i}: {exc}", field=field, index=i,
            ) from exc
    return configs


def dump_chart_config(spec: ChartSpec) -> str:
    """Render *spec* as indented JSON."""
    return spec.model_dump_json(indent=2)


def load_chart_config(path: str | Path) -> ChartSpec:
    """Read a chart configuration from a JSON or YAML file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"failed to read file {path}: {exc}") from exc

    if _is_yaml(path):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"failed to parse YAML in {path}: {exc}") from exc
        spec = chart_config_from_dict(data)
    else:
        spec = parse_chart_config(text)

    logger.info("Loaded chart config '%s' from %s", spec.title, path)
    return spec


def save_chart_config(spec: ChartSpec, path: str | Path) -> None:
    """Write *spec* to a JSON or YAML file (chosen by suffix)."""
    path = Path(path)
    if _is_yaml(path):
        text = yaml.safe_dump(spec.model_dump(mode="json"), sort_keys=False)
    else:
        text = dump_chart_config(spec)

    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ConfigParseError(f"failed to write file {path}: {exc}") from exc
    logger.info("Saved chart config '%s' to %s", spec.title, path)
