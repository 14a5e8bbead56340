"""Default computation of includes, order and pagination of list requests."""

from sqlalchemy import inspect as sa_inspect

from panel_adapter.config.models import PaginationConfig
from panel_adapter.query.params import ResourceQuery
from panel_adapter.schema.types import get_association_kind


class QueryBuilder:
    """Translates request parameters into includes, order, offset and limit.

    Args:
        model: Mapped class being listed.
        params: Request parameters.
        pagination: Page size bounds (default and maximum size).
    """

    def __init__(
        self,
        model: type,
        params: ResourceQuery,
        pagination: PaginationConfig | None = None,
    ) -> None:
        self.model = model
        self.params = params
        self.pagination = pagination or PaginationConfig()

    def get_includes(self, model: type, field_names: list[str] | None) -> list[str]:
        """Single-valued relationships to eager-load.

        Every belongs-to and has-one relationship is included when no field
        subset was requested; otherwise only the requested ones.
        """
        includes = []
        for relationship in sa_inspect(model).relationships:
            if get_association_kind(relationship).is_many:
                continue
            if field_names is None or relationship.key in field_names:
                includes.append(relationship.key)
        return includes

    def get_order(self) -> list[tuple[str, str]]:
        """Order entries from ``sort`` (``"-field"`` sorts descending).

        Without ``sort``, records come newest first by primary key.

        Raises:
            ValueError: If a dotted sort goes through a to-many relationship.
        """
        sort = self.params.sort
        mapper = sa_inspect(self.model)
        if not sort:
            primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key
            return [(primary_key, "DESC")]

        direction = "ASC"
        if sort.startswith("-"):
            sort, direction = sort[1:], "DESC"

        if "." in sort:
            association = sort.split(".", 1)[0]
            relationship = mapper.relationships.get(association)
            # Joined rows of a to-many relationship would break offset/limit.
            if relationship is not None and get_association_kind(relationship).is_many:
                raise ValueError(
                    f"Cannot sort {mapper.class_.__name__} on '{sort}': "
                    f"'{association}' is a to-many association"
                )
        return [(sort, direction)]

    def get_limit(self) -> int:
        size = self.params.page.size or self.pagination.default_size
        return min(size, self.pagination.max_size)

    def get_skip(self) -> int:
        return (self.params.page.number - 1) * self.get_limit()
