"""Default parser of filter values sent by the admin panel.

A raw value may carry an operator prefix:

========== ================================ ===========================
Raw value  Meaning                          Condition value
========== ================================ ===========================
``42``     equal                            ``42``
``!42``    not equal                        ``{"$ne": 42}``
``>42``    greater than                     ``{"$gt": 42}``
``<42``    less than                        ``{"$lt": 42}``
``*ann*``  wildcard match                   ``{"$like": "%ann%"}``
``$present`` not null                       ``{"$ne": None}``
``$blank`` null or empty                    ``{"$or": [{"$eq": None}, {"$eq": ""}]}``
``null``   is null                          ``None``
========== ================================ ===========================

Operands are cast with the semantic type of the filtered column.
"""

import re
import uuid
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import Column
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import types as sa_types

from panel_adapter.query.base import split_association_key
from panel_adapter.schema.types import get_type_for

_INTEGER_PATTERN = re.compile(r"^[-+]?\d+$")
_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


class OperatorValueError(ValueError):
    """Raised when a filter value cannot be parsed for its field."""

    pass


def resolve_column(model: type, key: str) -> Column:
    """Return the column filtered by ``key`` (plain or ``$association.field$``).

    Raises:
        OperatorValueError: If the key does not name a column.
    """
    path = split_association_key(key)
    field_name = key
    if path is not None:
        association, field_name = path
        relationships = sa_inspect(model).relationships
        if association not in relationships:
            raise OperatorValueError(
                f"Unknown association '{association}' on model {model.__name__}"
            )
        model = relationships[association].mapper.class_

    column_attrs = sa_inspect(model).column_attrs
    if field_name not in column_attrs:
        raise OperatorValueError(f"Unknown field '{field_name}' on model {model.__name__}")
    return column_attrs[field_name].columns[0]


class OperatorValueParser:
    """Parses ``field=value`` filters into condition values."""

    def perform(
        self, model: type, key: str, value: str, timezone: str | None = None
    ) -> Any:
        """Parse one raw filter value.

        Args:
            model: Mapped class being listed.
            key: Filter key, plain or ``$association.field$``.
            value: Raw value, possibly prefixed with an operator.
            timezone: IANA timezone of the panel user, applied to naive
                datetimes.

        Returns:
            A literal (equality) or an operator dict.

        Raises:
            OperatorValueError: If the field is unknown or the operand
                cannot be cast to its type.
        """
        column = resolve_column(model, key)
        value = value.strip()

        if value == "$present":
            return {"$ne": None}
        if value == "$blank":
            return {"$or": [{"$eq": None}, {"$eq": ""}]}
        if value == "null":
            return None

        if value.startswith("!"):
            return {"$ne": self._cast(column, value[1:], timezone)}
        if value.startswith(">"):
            return {"$gt": self._cast(column, value[1:], timezone)}
        if value.startswith("<"):
            return {"$lt": self._cast(column, value[1:], timezone)}
        if "*" in value:
            return {"$like": value.replace("*", "%")}

        return self._cast(column, value, timezone)

    def _cast(self, column: Column, value: str, timezone: str | None) -> Any:
        field_type = get_type_for(column.type)

        try:
            if field_type == "Number":
                if _INTEGER_PATTERN.match(value) and isinstance(column.type, sa_types.Integer):
                    return int(value)
                return float(value)
            if field_type == "Boolean":
                lowered = value.lower()
                if lowered in _TRUE_VALUES:
                    return True
                if lowered in _FALSE_VALUES:
                    return False
                raise ValueError(f"not a boolean: {value!r}")
            if field_type == "Date":
                return self._parse_datetime(value, timezone)
            if field_type == "Dateonly":
                return date.fromisoformat(value)
            if field_type == "Time":
                return time.fromisoformat(value)
            if isinstance(column.type, sa_types.Uuid) and column.type.as_uuid:
                return uuid.UUID(value)
        except ValueError as e:
            raise OperatorValueError(
                f"Invalid value {value!r} for field '{column.key}': {e}"
            ) from e

        return value

    def _parse_datetime(self, value: str, timezone: str | None) -> datetime:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None and timezone:
            try:
                parsed = parsed.replace(tzinfo=ZoneInfo(timezone))
            except ZoneInfoNotFoundError as e:
                raise ValueError(f"unknown timezone {timezone!r}") from e
        return parsed
