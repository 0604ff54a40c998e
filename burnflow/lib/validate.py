"""
Schema validation for burnflow snapshot files.

Every snapshot is validated against its JSON Schema before the store builds
entities from it. Fails hard with clear errors when data doesn't match.
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import jsonschema
import yaml


class ValidationError(Exception):
    """Schema validation failed."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


# Cache loaded schemas
_schema_cache: dict[str, dict] = {}

YAML_SUFFIXES = (".yaml", ".yml")


def _get_schemas_dir() -> Path:
    """Get path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


def _load_schema(schema_name: str) -> dict:
    """Load schema by name, with caching."""
    if schema_name not in _schema_cache:
        schema_path = _get_schemas_dir() / f"{schema_name}.schema.json"
        if not schema_path.exists():
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
        _schema_cache[schema_name] = json.loads(schema_path.read_text())
    return _schema_cache[schema_name]


def validate(data: dict, schema_name: str) -> None:
    """
    Validate data against named schema.

    Args:
        data: Dictionary to validate
        schema_name: Schema name (e.g., "snapshot")

    Raises:
        ValidationError: If validation fails
    """
    schema = _load_schema(schema_name)

    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else "(root)"
        raise ValidationError(schema_name, e.message, path) from None


def load_document(filepath: Path, schema_name: str) -> dict:
    """
    Load a JSON or YAML file and validate it against a schema.

    YAML timestamps and dates are turned back into ISO strings so both
    formats validate the same way.

    Returns:
        Parsed and validated data

    Raises:
        ValidationError: If file unreadable, unparsable or doesn't match schema
    """
    if not filepath.exists():
        raise ValidationError(schema_name, f"File not found: {filepath}")

    text = filepath.read_text()
    try:
        if filepath.suffix.lower() in YAML_SUFFIXES:
            data = _isoformat_dates(yaml.safe_load(text))
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(schema_name, f"Cannot parse {filepath}: {e}") from None

    if not isinstance(data, dict):
        raise ValidationError(schema_name, f"Expected a mapping at the top of {filepath}")

    validate(data, schema_name)
    return data


def _isoformat_dates(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _isoformat_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_isoformat_dates(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
