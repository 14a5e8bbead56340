"""List and count records of one collection for the admin panel.

``ResourcesGetter`` turns the request parameters of a list view (filters,
search term, segment, sort, pagination, requested fields) into two queries
sharing the same where condition, runs them concurrently and returns
``(count, records)``.

Usage:
    from panel_adapter.services import ResourcesGetter

    registry = build_registry([Article, Author], config=config)
    collection = Collection(Article, session_factory)
    params = ResourceQuery.model_validate({"search": "hello", "fields": {"Article": "title"}})

    count, records = await ResourcesGetter(collection, registry, params).perform()
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import inspect as sa_inspect

from panel_adapter.config.models import AdapterConfig
from panel_adapter.query.base import (
    AND,
    FILTER_PATH_SEPARATOR,
    CompositeKeyFormatter,
    FilterValueParser,
    QueryOptions,
    SearchConditionBuilder,
    SearchOptions,
    association_key,
)
from panel_adapter.query.builder import QueryBuilder
from panel_adapter.query.composite import CompositeKeysManager
from panel_adapter.query.operators import OperatorValueParser
from panel_adapter.query.params import ResourceQuery
from panel_adapter.query.search import SearchBuilder
from panel_adapter.schema.models import COMPOSITE_PRIMARY_FIELD, ModelSchema, resolve_condition
from panel_adapter.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)


def _union(*groups: Iterable[str]) -> list[str]:
    """Ordered union of several name lists."""
    names: list[str] = []
    for group in groups:
        for name in group:
            if name not in names:
                names.append(name)
    return names


class ResourcesGetter:
    """Fetches one page of records and the total count of a collection.

    Args:
        collection: Backing collection (see ``panel_adapter.adapters.collection``).
        registry: Schema registry holding the collection's model schema.
        params: Request parameters.
        config: Adapter configuration (pagination bounds).
        operator_value_parser: Parser of raw filter values.
        search_builder: Builder of the free-text search condition.
        query_builder_class: Factory of the includes/order/pagination builder,
            called with ``(model, params, pagination)``.
        composite_keys_manager: Formatter of composite primary key values.

    Example:
        getter = ResourcesGetter(collection, registry, ResourceQuery(search="ann"))
        count, records = await getter.perform()
    """

    def __init__(
        self,
        collection: Any,
        registry: SchemaRegistry,
        params: ResourceQuery,
        config: AdapterConfig | None = None,
        operator_value_parser: FilterValueParser | None = None,
        search_builder: SearchConditionBuilder | None = None,
        query_builder_class: type = QueryBuilder,
        composite_keys_manager: CompositeKeyFormatter | None = None,
    ) -> None:
        self.collection = collection
        self.model = collection.model
        self.params = params
        self.schema: ModelSchema = registry[collection.name]
        self.config = config or AdapterConfig()

        self.operator_value_parser = operator_value_parser or OperatorValueParser()
        self.search_builder = search_builder or SearchBuilder()
        self.query_builder = query_builder_class(self.model, params, self.config.pagination)
        self.composite_keys_manager = composite_keys_manager or CompositeKeysManager()

        self.fields = list(self.schema.fields)
        self.associations = [r.key for r in sa_inspect(self.model).relationships]
        self.field_names_requested = self._get_field_names_requested()

        self._segment_scope: str | None = None
        self._segment_where: Any = None

    # ------------------------------------------------------------------
    # Field selection
    # ------------------------------------------------------------------

    def _get_field_names_requested(self) -> list[str] | None:
        """Fields to retrieve, or None when the request does not restrict them.

        Primary keys are always part of the selection, as are associations
        needed by filter keys (``author:name``) or a dotted sort key.
        """
        requested = (self.params.fields or {}).get(self.schema.name)
        if not requested:
            return None

        associations_for_query = []
        for key in self.params.filter or {}:
            if FILTER_PATH_SEPARATOR in key:
                associations_for_query.append(key.split(FILTER_PATH_SEPARATOR)[0])

        sort = self.params.sort
        if sort and "." in sort:
            associations_for_query.append(sort.lstrip("-").split(".")[0])

        return _union(
            self.schema.primary_keys,
            [name.strip() for name in requested.split(",") if name.strip()],
            associations_for_query,
        )

    def _select_search_fields(self) -> None:
        """Narrow searched fields and associations to the declared search fields."""
        search_fields = self.schema.search_fields or []
        simple_fields = [name for name in search_fields if "." not in name]
        association_names = _union([name.split(".")[0] for name in search_fields if "." in name])

        self.fields = [field for field in self.fields if field.field in simple_fields]
        self.associations = [name for name in self.associations if name in association_names]

        matched_fields = {field.field for field in self.fields}
        fields_not_found = [name for name in simple_fields if name not in matched_fields]
        associations_not_found = [
            name for name in association_names if name not in self.associations
        ]

        if fields_not_found:
            logger.warning(
                "Cannot find the fields [%s] while searching records in model %s.",
                ", ".join(fields_not_found),
                self.schema.name,
            )
        if associations_not_found:
            logger.warning(
                "Cannot find the associations [%s] while searching records in model %s.",
                ", ".join(associations_not_found),
                self.schema.name,
            )

    # ------------------------------------------------------------------
    # Segment
    # ------------------------------------------------------------------

    async def _resolve_segment(self) -> None:
        if not self.params.segment:
            return

        segment = self.schema.get_segment(self.params.segment)
        if segment is None:
            logger.debug(
                "Segment %s is not defined on model %s", self.params.segment, self.schema.name
            )
            return

        self._segment_scope = segment.scope
        if segment.where is not None:
            self._segment_where = await resolve_condition(segment.where, self.params)

    # ------------------------------------------------------------------
    # Where
    # ------------------------------------------------------------------

    def _get_filter_condition(self) -> Any:
        conditions = []
        for key, values in (self.params.filter or {}).items():
            if FILTER_PATH_SEPARATOR in key:
                association, field_name = key.split(FILTER_PATH_SEPARATOR, 1)
                key = association_key(association, field_name)
            for value in values.split(","):
                conditions.append(
                    {
                        key: self.operator_value_parser.perform(
                            self.model, key, value, self.params.timezone
                        )
                    }
                )

        if self.params.filter_type:
            return {f"${self.params.filter_type}": conditions}
        return conditions

    def _has_search_term(self) -> bool:
        return bool((self.params.search or "").strip())

    def _get_where(self) -> dict[str, list[Any]]:
        where: dict[str, list[Any]] = {AND: []}

        if self._has_search_term():
            opts = SearchOptions(
                fields=self.fields,
                associations=self.associations,
                search_fields=self.schema.search_fields,
            )
            where[AND].append(
                self.search_builder.perform(
                    self.model, opts, self.params, self.field_names_requested
                )
            )

        if self.params.filter:
            where[AND].append(self._get_filter_condition())

        if self._segment_where is not None:
            where[AND].append(self._segment_where)

        return where

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _apply_search_hooks(self, count_options: QueryOptions, list_options: QueryOptions) -> None:
        for field in self.schema.fields:
            if field.search is None:
                continue
            try:
                field.search(count_options, self.params.search)
                field.search(list_options, self.params.search)
            except Exception as e:
                logger.error("Cannot search properly on Smart Field %s", field.field, exc_info=e)

    async def _get_and_count_records(self) -> tuple[int, list[Any]]:
        if self.schema.search_fields is not None:
            self._select_search_fields()

        count_options = QueryOptions(
            where=self._get_where(),
            include=self.query_builder.get_includes(self.model, self.field_names_requested),
        )
        list_options = QueryOptions(
            where=self._get_where(),
            include=self.query_builder.get_includes(self.model, self.field_names_requested),
            order=self.query_builder.get_order(),
            offset=self.query_builder.get_skip(),
            limit=self.query_builder.get_limit(),
        )

        if self._has_search_term():
            self._apply_search_hooks(count_options, list_options)

        logger.debug("Listing %s with %s", self.schema.name, list_options)

        if self._segment_scope:
            collection = self.collection.scope(self._segment_scope)
        else:
            collection = self.collection.unscoped()

        count, records = await asyncio.gather(
            collection.count(count_options),
            collection.find_all(list_options),
        )
        return count, list(records)

    async def perform(self) -> tuple[int, list[Any]]:
        """Run the count and list queries.

        Returns:
            Tuple of (total count ignoring pagination, records of the page).
            Records of a composite primary key model carry a
            ``forestCompositePrimary`` attribute.

        Raises:
            OperatorValueError: If a filter value cannot be parsed.
            UnknownScopeError: If the segment names an undefined scope.
        """
        await self._resolve_segment()
        count, records = await self._get_and_count_records()

        if self.schema.is_composite_primary:
            for record in records:
                setattr(
                    record,
                    COMPOSITE_PRIMARY_FIELD,
                    self.composite_keys_manager.create_composite_primary(
                        self.model, self.schema, record
                    ),
                )

        return count, records
