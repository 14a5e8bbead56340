"""Schema introspection and the schema registry.

Provides model introspection (``SchemaBuilder``, ``build_schema``), the
immutable registry (``SchemaRegistry``, ``build_registry``), and the schema
models rendered to the admin panel.

Usage:
    from panel_adapter.schema import build_registry, SchemaBuilder
    from panel_adapter.schema import ModelSchema, FieldSchema, Segment
"""

from panel_adapter.schema.builder import SchemaBuilder, build_schema, get_validations
from panel_adapter.schema.models import (
    COMPOSITE_PRIMARY_FIELD,
    DynamicCondition,
    FieldError,
    FieldSchema,
    ModelSchema,
    SchemaBuildResult,
    Segment,
    StaticCondition,
    ValidationRule,
    resolve_condition,
)
from panel_adapter.schema.registry import SchemaNotFoundError, SchemaRegistry, build_registry
from panel_adapter.schema.types import AssociationKind, get_association_kind, get_type_for

__all__ = [
    "SchemaBuilder",
    "build_schema",
    "get_validations",
    "SchemaRegistry",
    "SchemaNotFoundError",
    "build_registry",
    "COMPOSITE_PRIMARY_FIELD",
    "DynamicCondition",
    "FieldError",
    "FieldSchema",
    "ModelSchema",
    "SchemaBuildResult",
    "Segment",
    "StaticCondition",
    "ValidationRule",
    "resolve_condition",
    "AssociationKind",
    "get_association_kind",
    "get_type_for",
]
