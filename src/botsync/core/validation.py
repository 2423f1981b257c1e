"""
Schema validation adapter.

Schemas are pydantic models registered under a name. Validating a
document never raises for bad data: pydantic's errors are reshaped into
:class:`ValidationIssue` values (``field``, ``rule``, ``message``) and
returned. Only an unknown schema name raises, because that is a
configuration fault rather than a data fault.

Examples:
    >>> validator = Validator()
    >>> validator.validate("company-schema", {"name": "Foo Inc", "jurisdiction_code": "ie"})
    [ValidationIssue(field='company_number', rule='Required', message='company_number: Field required')]

Tags:
    validation, pydantic, schema, botsync
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import pydantic

from botsync.core.errors import ConfigError, SchemaNotFoundError
from botsync.core.schemas import BUILTIN_SCHEMAS

# pydantic's error type -> rule name reported to callers
_RULE_NAMES = {
    "missing": "Required",
}


@dataclass(frozen=True)
class ValidationIssue:
    """One schema violation."""

    field: str
    rule: str
    message: str

    # Kept for callers used to the json-schema style key
    @property
    def failed_attribute(self) -> str:
        return self.rule

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "rule": self.rule, "message": self.message}


class SchemaRegistry:
    """
    Name -> pydantic model lookup.

    Usage:
        registry = SchemaRegistry()
        registry.register("my-schema", MyModel)
        registry.get("my-schema")
    """

    def __init__(self, schemas: Mapping[str, type[pydantic.BaseModel]] | None = None):
        self._schemas: dict[str, type[pydantic.BaseModel]] = dict(
            BUILTIN_SCHEMAS if schemas is None else schemas
        )

    def register(self, name: str, model: type[pydantic.BaseModel]) -> None:
        if not (isinstance(model, type) and issubclass(model, pydantic.BaseModel)):
            raise ConfigError(f"Schema {name!r} must be a pydantic model class")
        self._schemas[name] = model

    def get(self, name: str) -> type[pydantic.BaseModel]:
        """
        Raises:
            SchemaNotFoundError: If *name* is not registered
        """
        try:
            return self._schemas[name]
        except KeyError:
            raise SchemaNotFoundError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def list_schemas(self) -> list[str]:
        return sorted(self._schemas)


def _issue_from_error(error: Mapping[str, Any]) -> ValidationIssue:
    field = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
    rule = _RULE_NAMES.get(error["type"], error["type"])
    return ValidationIssue(field=field, rule=rule, message=f"{field}: {error['msg']}")


class Validator:
    """Validates documents against named schemas."""

    def __init__(self, registry: SchemaRegistry | None = None):
        self.registry = registry or SchemaRegistry()

    def validate(self, schema_name: str, document: Mapping[str, Any]) -> list[ValidationIssue]:
        """
        Check *document* against the schema called *schema_name*.

        Returns:
            Issues found; an empty list means the document is valid

        Raises:
            SchemaNotFoundError: If the schema name does not resolve
        """
        model = self.registry.get(schema_name)
        try:
            model.model_validate(dict(document))
        except pydantic.ValidationError as exc:
            return [_issue_from_error(e) for e in exc.errors()]
        return []

    def is_valid(self, schema_name: str, document: Mapping[str, Any]) -> bool:
        return not self.validate(schema_name, document)


__all__ = ["ValidationIssue", "SchemaRegistry", "Validator"]
