"""
callsum Schema Validation.

Responsibilities:
- Load the frozen CallResult JSON Schema
- Validate full CallResult documents
- Validate partial drafts assembled stage by stage

Forbidden:
- No pipeline logic
- No result construction
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import jsonschema


SCHEMA_DIR = Path(__file__).parent / "schemas"

SCHEMA_FILES = {
    "call_result": "call_result.schema.json",
}


class SchemaValidationError(ValueError):
    """
    Raised when a document does not satisfy its schema.

    Attributes:
        errors: List of "path: message" strings
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict:
    """Load a schema by name."""
    if schema_name not in SCHEMA_FILES:
        raise ValueError(f"Unknown schema: {schema_name}. Valid: {list(SCHEMA_FILES.keys())}")

    schema_path = SCHEMA_DIR / SCHEMA_FILES[schema_name]
    with open(schema_path, "r") as f:
        return json.load(f)


def validate_document(document: Mapping[str, Any], schema: dict, partial: bool = False) -> list[str]:
    """
    Validate a document against a schema.

    Args:
        document: Document to validate
        schema: Loaded JSON Schema
        partial: If True, missing required properties are not errors

    Returns:
        List of error messages (empty if valid).
    """
    validator = jsonschema.Draft7Validator(schema)
    errors = []
    for error in validator.iter_errors(dict(document)):
        if partial and error.validator == "required":
            continue
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        errors.append(f"{path}: {error.message}")
    return sorted(errors)


def check_call_result(document: Mapping[str, Any], partial: bool = False) -> None:
    """
    Validate a CallResult document.

    Raises:
        SchemaValidationError: If the document violates the schema.
    """
    errors = validate_document(document, load_schema("call_result"), partial=partial)
    if errors:
        raise SchemaValidationError(errors)
