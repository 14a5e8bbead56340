"""Default free-text search condition builder."""

import uuid
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import types as sa_types

from panel_adapter.query.base import OR, SearchOptions, association_key
from panel_adapter.query.params import ResourceQuery
from panel_adapter.schema.types import get_type_for


def _is_integer(term: str) -> bool:
    try:
        int(term)
    except ValueError:
        return False
    return True


def _as_uuid(term: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(term)
    except ValueError:
        return None


class SearchBuilder:
    """Builds an OR condition matching the search term on searchable fields.

    - String fields: case-insensitive substring match.
    - Enum fields: equality when the term is one of the allowed values.
    - Primary key: equality when the term is an integer (Number key) or a
      UUID (String key).
    - ``association.field`` search fields: case-insensitive substring match
      on the associated column.
    """

    def perform(
        self,
        model: type,
        opts: SearchOptions,
        params: ResourceQuery,
        field_names: list[str] | None = None,
    ) -> dict[str, Any]:
        term = (params.search or "").strip()
        pattern = f"%{term}%"
        conditions: list[dict[str, Any]] = []

        for field in opts.fields:
            if field.is_virtual or field.reference is not None:
                continue

            if field.primary_key:
                if field.type == "Number" and _is_integer(term):
                    conditions.append({field.field: int(term)})
                elif field.type == "String" and _as_uuid(term) is not None:
                    conditions.append({field.field: self._uuid_operand(model, field.field, term)})
                continue

            if field.type == "String":
                conditions.append({field.field: {"$ilike": pattern}})
            elif field.type == "Enum" and term in (field.enums or []):
                conditions.append({field.field: term})

        relationships = sa_inspect(model).relationships
        for search_field in opts.search_fields or []:
            if "." not in search_field:
                continue
            association, field_name = search_field.split(".", 1)
            if association not in opts.associations or association not in relationships:
                continue
            if field_names is not None and association not in field_names:
                continue

            target_attrs = relationships[association].mapper.column_attrs
            if field_name not in target_attrs:
                continue
            if get_type_for(target_attrs[field_name].columns[0].type) == "String":
                conditions.append({association_key(association, field_name): {"$ilike": pattern}})

        return {OR: conditions}

    def _uuid_operand(self, model: type, field_name: str, term: str) -> Any:
        column_type = sa_inspect(model).column_attrs[field_name].columns[0].type
        if isinstance(column_type, sa_types.Uuid) and column_type.as_uuid:
            return _as_uuid(term)
        return str(_as_uuid(term))
