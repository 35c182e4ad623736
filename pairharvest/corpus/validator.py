# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
JSON Schema validation for metadata documents.

The schema is loaded and checked once per run. If it is missing or is not a
valid Draft 2020-12 schema, nothing downstream can be trusted, so that error
is fatal. A document that fails validation only costs us that one file.
"""

import json
from pathlib import Path
from typing import Any, Iterable

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, ValidationError

from pairharvest.errors import MetadataValidationError, SchemaLoadError


def _sort_key(error: ValidationError) -> tuple[list[tuple[bool, Any]], str]:
    # Array indices compare as numbers, so pairs[2] comes before pairs[10].
    path = [(isinstance(part, str), part) for part in error.absolute_path]
    return path, error.message


def _describe(errors: Iterable[ValidationError]) -> list[str]:
    """Render violations as '<json path>: <message>' strings."""
    violations: list[str] = []
    for error in sorted(errors, key=_sort_key):
        if not error.context:
            violations.append(f"{error.json_path}: {error.message}")
            continue

        # oneOf failures only say "not valid under any schema". Report the
        # branch with the fewest errors: the shape the author was writing.
        branches: dict[Any, list[ValidationError]] = {}
        for branch_error in error.context:
            branches.setdefault(branch_error.relative_schema_path[0], []).append(branch_error)
        violations.extend(_describe(min(branches.values(), key=len)))
    return violations


class MetadataValidator:
    """Validates raw metadata documents against the published schema."""

    def __init__(self, schema: dict[str, Any]) -> None:
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as err:
            raise SchemaLoadError(f"Metadata schema is invalid: {err.message}") from err
        self._validator = Draft202012Validator(schema)

    @classmethod
    def from_file(cls, schema_path: Path) -> "MetadataValidator":
        """Load the schema from disk. Raises SchemaLoadError on any problem."""
        try:
            raw_text = schema_path.read_text(encoding="utf-8")
        except OSError as err:
            raise SchemaLoadError(f"Cannot read metadata schema {schema_path}: {err}") from err

        try:
            schema = json.loads(raw_text)
        except json.JSONDecodeError as err:
            raise SchemaLoadError(f"Metadata schema {schema_path} is not valid JSON: {err}") from err

        if not isinstance(schema, dict):
            raise SchemaLoadError(f"Metadata schema {schema_path} must be a JSON object")

        return cls(schema)

    def validate(self, document: Any) -> None:
        """
        Check a decoded metadata document.

        Raises:
            MetadataValidationError: listing every violated constraint.
        """
        errors = list(self._validator.iter_errors(document))
        if errors:
            raise MetadataValidationError(_describe(errors))
