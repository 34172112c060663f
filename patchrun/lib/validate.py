"""
JSON Schema checks for patchrun's two documents.

plan.schema.json guards the plan file as it is loaded; run_result.schema.json
guards the run report before it lands next to the log file.
"""

import json
from pathlib import Path

import jsonschema

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


class ValidationError(Exception):
    """A document does not match its schema."""

    def __init__(self, schema_name: str, message: str, location: str | None = None):
        self.schema_name = schema_name
        self.location = location
        where = f" (at {location})" if location else ""
        super().__init__(f"{schema_name}: {message}{where}")


_loaded: dict[str, dict] = {}


def load_schema(schema_name: str) -> dict:
    """Read schemas/<name>.schema.json once per process."""
    if schema_name in _loaded:
        return _loaded[schema_name]
    schema_file = SCHEMAS_DIR / f"{schema_name}.schema.json"
    try:
        schema = json.loads(schema_file.read_text())
    except FileNotFoundError:
        raise ValidationError(schema_name, f"no schema file {schema_file}") from None
    _loaded[schema_name] = schema
    return schema


def validate(document: dict, schema_name: str) -> None:
    """
    Check a document against a named schema.

    Raises:
        ValidationError: naming the first offending key path, e.g.
            "plan: 'project' is a required property (at repos.0)"
    """
    try:
        jsonschema.validate(instance=document, schema=load_schema(schema_name))
    except jsonschema.ValidationError as e:
        location = ".".join(str(part) for part in e.absolute_path) or "top level"
        raise ValidationError(schema_name, e.message, location) from None


def validate_before_write(document: dict, schema_name: str, target: Path) -> None:
    """Same as validate(), with the file that was about to be written in the message."""
    try:
        validate(document, schema_name)
    except ValidationError as e:
        raise ValidationError(schema_name, f"not writing {target}: {e}") from None
