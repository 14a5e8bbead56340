"""Schema introspection of SQLAlchemy mapped classes.

This module inspects a mapped class to extract:
- Columns: semantic type, enums, default value, required flag, validations
- Relationships: association type, reference, inverse
- Primary keys and composite primary key detection

Validation rules are read from ``column.info["validate"]``; each rule is
either a bare value or ``{"args": value, "msg": message}``::

    title: Mapped[str] = mapped_column(
        String(120),
        info={"validate": {"len": [3, 120], "is_": r"^[A-Z]"}},
    )

Usage:
    from panel_adapter.schema.builder import SchemaBuilder

    result = SchemaBuilder(Article).build()
    if not result.ok:
        print(result.format_report())
    schema = result.schema
"""

import logging
import re
from typing import Any

from sqlalchemy import Column
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper, RelationshipProperty

from panel_adapter.schema.models import (
    COMPOSITE_PRIMARY_FIELD,
    FieldError,
    FieldSchema,
    ModelSchema,
    SchemaBuildResult,
    Segment,
    ValidationRule,
)
from panel_adapter.schema.types import AssociationKind, get_association_kind, get_type_for

logger = logging.getLogger(__name__)


def _rule_args(rule: Any) -> tuple[Any, str | None]:
    """Split a validation rule into its value and optional message."""
    if isinstance(rule, dict) and "args" in rule:
        return rule["args"], rule.get("msg")
    return rule, None


def _make_rule(rule_type: str, value: Any, message: str | None) -> ValidationRule:
    if message is None:
        return ValidationRule(type=rule_type, value=value)
    return ValidationRule(type=rule_type, value=value, message=message)


def is_autogenerated(column: Column) -> bool:
    """True for columns whose value is produced by the database or the ORM."""
    if column.info.get("autogenerated") is True:
        return True
    if column.table is not None and column.table.autoincrement_column is column:
        return True
    return (
        column.server_default is not None
        or column.onupdate is not None
        or column.server_onupdate is not None
    )


def get_validations(column: Column) -> list[ValidationRule]:
    """Extract admin-panel validation rules from a column.

    Autogenerated columns never carry rules: they would block record
    creation and update from the panel.
    """
    validations: list[ValidationRule] = []

    if is_autogenerated(column):
        return validations

    if column.nullable is False:
        validations.append(ValidationRule(type="is present"))

    validate = column.info.get("validate")
    if not validate:
        return validations

    for key, rule_type in (
        ("min", "is greater than"),
        ("max", "is less than"),
        ("is_before", "is before"),
        ("is_after", "is after"),
    ):
        if validate.get(key) is not None:
            value, message = _rule_args(validate[key])
            validations.append(_make_rule(rule_type, value, message))

    if validate.get("len"):
        length, message = _rule_args(validate["len"])

        # A single bound is always reported as a minimum length.
        if isinstance(length, (list, tuple)) and len(length) > 1 and length[0] and length[1]:
            validations.append(_make_rule("is longer than", length[0], message))
            validations.append(_make_rule("is shorter than", length[1], message))
        else:
            validations.append(_make_rule("is longer than", length, message))

    if validate.get("contains"):
        value, message = _rule_args(validate["contains"])
        validations.append(_make_rule("contains", value, message))

    if validate.get("is_") and not isinstance(validate["is_"], (list, tuple)):
        value, message = _rule_args(validate["is_"])
        display = value.pattern if isinstance(value, re.Pattern) else str(value)
        validations.append(_make_rule("is like", display, message))

    return validations


class SchemaBuilder:
    """Builds the admin-panel schema of one SQLAlchemy mapped class.

    Every column and relationship is introspected independently: a failure
    on one of them is logged, recorded on the result and the field skipped.

    Args:
        model: Declarative mapped class.
        search_fields: Optional restricted list of searchable fields
            (``"field"`` or ``"association.field"``).
        segments: Optional named segments available on the model.
        smart_fields: Optional fields with no backing column, typically
            carrying a ``search`` hook.

    Example:
        builder = SchemaBuilder(Article, search_fields=["title"])
        result = builder.build()
        result.schema.to_json()["fields"][0]
        # {'field': 'id', 'type': 'Number', 'columnName': 'id', 'primaryKey': True}
    """

    def __init__(
        self,
        model: type,
        search_fields: list[str] | None = None,
        segments: list[Segment] | None = None,
        smart_fields: list[FieldSchema] | None = None,
    ) -> None:
        self.model = model
        self.mapper: Mapper = sa_inspect(model)
        self.name: str = model.__name__
        self._search_fields = search_fields
        self._segments = segments or []
        self._smart_fields = smart_fields or []
        self._field_names_to_exclude: set[str] = set()

    @property
    def primary_keys(self) -> list[str]:
        """Attribute names of the primary key columns, in declaration order."""
        return [
            self.mapper.get_property_by_column(column).key
            for column in self.mapper.primary_key
        ]

    def build(self) -> SchemaBuildResult:
        """Introspect the model and return its schema with any field errors."""
        fields: list[FieldSchema] = []
        errors: list[FieldError] = []

        for prop in self.mapper.column_attrs:
            try:
                fields.append(self._get_schema_for_column(prop.key, prop.columns[0]))
            except Exception as e:
                logger.error(
                    "Cannot fetch properly column %s of model %s",
                    prop.key,
                    self.name,
                    exc_info=e,
                )
                errors.append(
                    FieldError(model=self.name, field=prop.key, kind="column", message=str(e))
                )

        for relationship in self.mapper.relationships:
            try:
                fields.append(self._get_schema_for_association(relationship))
            except Exception as e:
                logger.error(
                    "Cannot fetch properly association %s of model %s",
                    relationship.key,
                    self.name,
                    exc_info=e,
                )
                errors.append(
                    FieldError(
                        model=self.name,
                        field=relationship.key,
                        kind="association",
                        message=str(e),
                    )
                )

        fields = [
            field
            for field in fields
            if field.field not in self._field_names_to_exclude or field.primary_key
        ]
        fields.extend(self._smart_fields)

        primary_keys = self.primary_keys
        is_composite_primary = len(primary_keys) > 1
        if is_composite_primary:
            id_field = COMPOSITE_PRIMARY_FIELD
        else:
            id_field = primary_keys[0] if primary_keys else None

        schema = ModelSchema(
            name=self.name,
            id_field=id_field,
            primary_keys=primary_keys,
            is_composite_primary=is_composite_primary,
            fields=fields,
            search_fields=self._search_fields,
            segments=self._segments,
        )
        return SchemaBuildResult(schema=schema, errors=errors)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def _get_schema_for_column(self, key: str, column: Column) -> FieldSchema:
        field_type = get_type_for(column.type)
        # columnName matters when the attribute and database column differ
        attrs: dict[str, Any] = {"field": key, "type": field_type, "column_name": column.name}

        if column.primary_key:
            attrs["primary_key"] = True
        if field_type == "Enum":
            attrs["enums"] = tuple(column.type.enums)
        if not is_autogenerated(column) and column.nullable is False:
            attrs["is_required"] = True

        default = column.default
        if default is not None and getattr(default, "is_scalar", False) and default.arg is not None:
            # Primary key defaults are left out (autoincrement, uuid4...).
            if key not in self.primary_keys:
                attrs["default_value"] = default.arg

        validations = get_validations(column)
        if validations:
            attrs["validations"] = validations

        return FieldSchema(**attrs)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def _get_target_key(self, relationship: RelationshipProperty, kind: AssociationKind) -> str:
        """Attribute name on the target model that the association points at."""
        target: Mapper = relationship.mapper
        if kind is AssociationKind.BELONGS_TO:
            _, remote = relationship.local_remote_pairs[0]
            return target.get_property_by_column(remote).key
        return target.get_property_by_column(target.primary_key[0]).key

    def _get_type_for_association(
        self, relationship: RelationshipProperty, kind: AssociationKind, target_key: str
    ) -> str | list[Any] | None:
        target_attrs = relationship.mapper.column_attrs
        if target_key in target_attrs:
            field_type = get_type_for(target_attrs[target_key].columns[0].type)
        else:
            field_type = "Number"

        if kind.is_many:
            return [field_type]
        return field_type

    def _get_schema_for_association(self, relationship: RelationshipProperty) -> FieldSchema:
        kind = get_association_kind(relationship)
        target_key = self._get_target_key(relationship, kind)

        # backref() also fills back_populates on both sides
        inverse_of = relationship.back_populates or None

        if kind is AssociationKind.BELONGS_TO:
            for column in relationship.local_columns:
                self._field_names_to_exclude.add(self.mapper.get_property_by_column(column).key)

        return FieldSchema(
            field=relationship.key,
            type=self._get_type_for_association(relationship, kind, target_key),
            reference=f"{relationship.mapper.class_.__name__}.{target_key}",
            inverse_of=inverse_of,
        )


def build_schema(
    model: type,
    search_fields: list[str] | None = None,
    segments: list[Segment] | None = None,
    smart_fields: list[FieldSchema] | None = None,
) -> SchemaBuildResult:
    """Build the schema of ``model``. Shortcut for ``SchemaBuilder(...).build()``."""
    return SchemaBuilder(
        model,
        search_fields=search_fields,
        segments=segments,
        smart_fields=smart_fields,
    ).build()
