"""Pydantic models for model schemas and schema build results.

This module contains schema-domain models:
- Field models: ValidationRule, FieldSchema
- Segment models: StaticCondition, DynamicCondition, Segment
- Model schema: ModelSchema
- Build result: FieldError, SchemaBuildResult

JSON rendering follows the admin-panel wire format (camelCase keys, optional
keys omitted when they were never set).
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ``idField`` of a model whose primary key spans several columns.
COMPOSITE_PRIMARY_FIELD = "forestCompositePrimary"


# ============================================================================
# Field Models
# ============================================================================


class ValidationRule(BaseModel):
    """A single validation rule exposed to the admin panel.

    Example:
        >>> rule = ValidationRule(type="is longer than", value=3)
        >>> rule.model_dump(exclude_unset=True)
        {'type': 'is longer than', 'value': 3}
    """

    model_config = ConfigDict(frozen=True)

    type: str
    value: Any = None
    message: str | None = None


class FieldSchema(BaseModel):
    """Schema for one field of a model (column, association or smart field).

    ``type`` is a semantic tag (``"String"``, ``"Number"``...), a one element
    tuple of a tag for "many" cardinality, or ``None`` when the native column
    type is not recognized.

    ``search`` and ``is_virtual`` only exist in process; they are never part
    of the rendered JSON.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    field: str
    type: str | tuple[Any, ...] | None = None
    column_name: str | None = Field(default=None, alias="columnName")
    primary_key: bool | None = Field(default=None, alias="primaryKey")
    enums: tuple[Any, ...] | None = None
    is_required: bool | None = Field(default=None, alias="isRequired")
    default_value: Any = Field(default=None, alias="defaultValue")
    validations: tuple[ValidationRule, ...] | None = None
    reference: str | None = None
    inverse_of: str | None = Field(default=None, alias="inverseOf")

    search: Callable[..., Any] | None = Field(default=None, exclude=True)
    is_virtual: bool = Field(default=False, exclude=True)

    def to_json(self) -> dict[str, Any]:
        """Render the field with only the keys that were explicitly set."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ============================================================================
# Segment Models
# ============================================================================


class StaticCondition(BaseModel):
    """A segment condition known at registration time."""

    kind: Literal["static"] = "static"
    value: Any


class DynamicCondition(BaseModel):
    """A segment condition computed from the request parameters.

    ``fn`` receives the request parameters and returns the condition, either
    directly or as an awaitable.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["dynamic"] = "dynamic"
    fn: Callable[[Any], Any | Awaitable[Any]]


async def resolve_condition(
    condition: StaticCondition | DynamicCondition | None, params: Any
) -> Any:
    """Resolve a segment condition to a plain where value.

    Args:
        condition: Segment condition, or None.
        params: Request parameters handed to dynamic conditions.

    Returns:
        The where value, or None when the segment has no condition.
    """
    if condition is None:
        return None
    if isinstance(condition, StaticCondition):
        return condition.value

    value = condition.fn(params)
    if inspect.isawaitable(value):
        value = await value
    return value


class Segment(BaseModel):
    """A named, predefined filter on a model's records.

    Example:
        >>> segment = Segment(name="published", where=StaticCondition(value={"published": True}))
        >>> segment.scope is None
        True
    """

    model_config = ConfigDict(frozen=True)

    name: str
    scope: str | None = None
    where: StaticCondition | DynamicCondition | None = None


# ============================================================================
# Model Schema
# ============================================================================


class ModelSchema(BaseModel):
    """Normalized schema of one model. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    id_field: str | None = Field(default=None, alias="idField")
    primary_keys: tuple[str, ...] = Field(default=(), alias="primaryKeys")
    is_composite_primary: bool = Field(default=False, alias="isCompositePrimary")
    fields: tuple[FieldSchema, ...] = ()
    search_fields: tuple[str, ...] | None = None
    segments: tuple[Segment, ...] = ()

    def get_field(self, name: str) -> FieldSchema | None:
        """Return the field schema named ``name``, if any."""
        for field in self.fields:
            if field.field == name:
                return field
        return None

    def get_segment(self, name: str) -> Segment | None:
        """Return the segment named ``name``, if any."""
        for segment in self.segments:
            if segment.name == name:
                return segment
        return None

    def to_json(self) -> dict[str, Any]:
        """Render the schema registry entry sent to the admin panel."""
        return {
            "name": self.name,
            "idField": self.id_field,
            "primaryKeys": list(self.primary_keys),
            "isCompositePrimary": self.is_composite_primary,
            "fields": [field.to_json() for field in self.fields],
        }


# ============================================================================
# Build Result Models
# ============================================================================


class FieldError(BaseModel):
    """A column or association whose schema could not be derived."""

    model: str
    field: str
    kind: Literal["column", "association"]
    message: str = ""


@dataclass
class SchemaBuildResult:
    """Result of building one model schema.

    Example:
        result = SchemaBuildResult(schema=ModelSchema(name="Article"))
        result.ok
        # True
        result.format_report()
        # 'Schema built for Article'
    """

    schema: ModelSchema
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every column and association was introspected."""
        return not self.errors

    def format_report(self) -> str:
        """Format the build result as a human-readable report."""
        if self.ok:
            return f"Schema built for {self.schema.name}"

        lines = [f"Schema built for {self.schema.name} with {len(self.errors)} skipped fields:"]
        for error in self.errors:
            lines.append(f"    - {error.kind} {error.field}: {error.message}")
        return "\n".join(lines)
