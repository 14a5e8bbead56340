"""Composite primary key values of records."""

from typing import Any

from panel_adapter.schema.models import ModelSchema

# Separator between the primary key values of one record.
GLUE = "|"


class CompositeKeysManager:
    """Joins the primary key values of a record into one identifier.

    Example:
        manager = CompositeKeysManager()
        manager.create_composite_primary(Enrollment, schema, enrollment)
        # '12|fr-FR'
    """

    def create_composite_primary(self, model: type, schema: ModelSchema, record: Any) -> str:
        values = []
        for key in schema.primary_keys:
            value = getattr(record, key, None)
            values.append("null" if value is None else str(value))
        return GLUE.join(values)
