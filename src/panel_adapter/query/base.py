"""Collaborator protocols and the shared query option structures.

Where conditions are plain nested structures:

- ``{"$and": [cond, ...]}`` / ``{"$or": [cond, ...]}`` combine conditions;
  a bare list is an unqualified conjunction.
- ``{"field": value}`` compares a column; ``value`` is either a literal
  (``None`` meaning IS NULL) or an operator dict such as ``{"$gt": 18}``.
- ``{"$author.name$": value}`` reaches a column through the ``author``
  relationship.

They are compiled into SQLAlchemy expressions by the backing collection
(``panel_adapter.adapters.collection``).

Usage:
    from panel_adapter.query.base import QueryOptions, association_key

    options = QueryOptions(where={"$and": [{association_key("author", "name"): "Ann"}]})
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from panel_adapter.query.params import ResourceQuery
    from panel_adapter.schema.models import FieldSchema, ModelSchema

AND = "$and"
OR = "$or"

# Separator of association paths in filter keys (``author:name``).
FILTER_PATH_SEPARATOR = ":"


def association_key(association: str, field_name: str) -> str:
    """Return the joined-table reference key of ``association.field_name``."""
    return f"${association}.{field_name}$"


def split_association_key(key: str) -> tuple[str, str] | None:
    """Split ``"$author.name$"`` into ``("author", "name")``; None for plain keys."""
    if len(key) > 2 and key.startswith("$") and key.endswith("$") and "." in key:
        association, field_name = key[1:-1].split(".", 1)
        return association, field_name
    return None


@dataclass
class QueryOptions:
    """Options of one count or list query.

    ``order`` entries are ``(field, "ASC" | "DESC")`` where ``field`` may be
    ``"association.field"``.
    """

    where: Any = None
    include: list[str] = field(default_factory=list)
    order: list[tuple[str, str]] | None = None
    offset: int | None = None
    limit: int | None = None


@dataclass
class SearchOptions:
    """Fields and associations a free-text search may look into."""

    fields: list["FieldSchema"] = field(default_factory=list)
    associations: list[str] = field(default_factory=list)
    search_fields: Sequence[str] | None = None


class FilterValueParser(Protocol):
    """Parses one raw filter value into a condition value."""

    def perform(self, model: type, key: str, value: str, timezone: str | None) -> Any:
        """Return the condition value for ``key`` (literal or operator dict).

        Raises:
            ValueError: If ``value`` cannot be parsed for the field.
        """
        ...


class SearchConditionBuilder(Protocol):
    """Builds the free-text search condition of a list request."""

    def perform(
        self,
        model: type,
        opts: SearchOptions,
        params: "ResourceQuery",
        field_names: list[str] | None,
    ) -> Any:
        """Return a where condition matching ``params.search``."""
        ...


class ListQueryBuilder(Protocol):
    """Computes includes, order and pagination of a list request."""

    def get_includes(self, model: type, field_names: list[str] | None) -> list[str]:
        ...

    def get_order(self) -> list[tuple[str, str]]:
        ...

    def get_skip(self) -> int:
        ...

    def get_limit(self) -> int:
        ...


class CompositeKeyFormatter(Protocol):
    """Computes the single identifier of a composite-primary-key record."""

    def create_composite_primary(
        self, model: type, schema: "ModelSchema", record: Any
    ) -> str:
        ...
