"""Mapping of SQLAlchemy column types and relationships to schema tags.

Semantic tags are the type names understood by the admin panel:
``String``, ``Enum``, ``Boolean``, ``Dateonly``, ``Date``, ``Time``,
``Number`` and ``Json``. A column wrapping another type (``ARRAY``) maps to a
one element list of the inner tag.
"""

from enum import Enum
from typing import Any

from sqlalchemy import types as sa_types
from sqlalchemy.orm import RelationshipDirection, RelationshipProperty


class AssociationKind(str, Enum):
    """Cardinality of a relationship, as seen from the declaring model."""

    BELONGS_TO = "BelongsTo"
    HAS_ONE = "HasOne"
    HAS_MANY = "HasMany"
    BELONGS_TO_MANY = "BelongsToMany"

    @property
    def is_many(self) -> bool:
        return self in (AssociationKind.HAS_MANY, AssociationKind.BELONGS_TO_MANY)


# Checked in order: Enum subclasses String, so it must come first.
_TYPE_TAGS: list[tuple[tuple[type, ...], str]] = [
    ((sa_types.Enum,), "Enum"),
    ((sa_types.String, sa_types.Uuid), "String"),
    ((sa_types.Boolean,), "Boolean"),
    ((sa_types.Date,), "Dateonly"),
    ((sa_types.DateTime,), "Date"),
    ((sa_types.Integer, sa_types.Numeric, sa_types.Float), "Number"),
    ((sa_types.JSON,), "Json"),
    ((sa_types.Time,), "Time"),
]


def get_type_for(column_type: Any) -> str | list[Any] | None:
    """Return the semantic tag of a SQLAlchemy type instance.

    Args:
        column_type: A ``TypeEngine`` instance (``column.type``).

    Returns:
        The tag, a one element list for wrapping types, or None when the
        type is not recognized.

    Example:
        >>> get_type_for(sa_types.ARRAY(sa_types.Integer()))
        ['Number']
    """
    # Interval is stored as a DateTime on some backends.
    if isinstance(column_type, sa_types.Interval):
        return None
    if isinstance(column_type, sa_types.TypeDecorator):
        column_type = column_type.impl

    if getattr(column_type, "__visit_name__", None) == "CITEXT":
        return "String"

    for classes, tag in _TYPE_TAGS:
        if isinstance(column_type, classes):
            return tag

    item_type = getattr(column_type, "item_type", None)
    if item_type is not None:
        return [get_type_for(item_type)]

    return None


def get_association_kind(relationship: RelationshipProperty) -> AssociationKind:
    """Classify a relationship into one of the four association kinds."""
    if relationship.direction is RelationshipDirection.MANYTOONE:
        return AssociationKind.BELONGS_TO
    if relationship.direction is RelationshipDirection.MANYTOMANY:
        return AssociationKind.BELONGS_TO_MANY
    if relationship.uselist:
        return AssociationKind.HAS_MANY
    return AssociationKind.HAS_ONE
