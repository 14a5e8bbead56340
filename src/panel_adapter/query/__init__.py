"""Query construction collaborators of the resources getter.

Usage:
    from panel_adapter.query import ResourceQuery, QueryOptions
    from panel_adapter.query import OperatorValueParser, SearchBuilder, QueryBuilder
"""

from panel_adapter.query.base import (
    AND,
    OR,
    CompositeKeyFormatter,
    FilterValueParser,
    ListQueryBuilder,
    QueryOptions,
    SearchConditionBuilder,
    SearchOptions,
    association_key,
    split_association_key,
)
from panel_adapter.query.builder import QueryBuilder
from panel_adapter.query.composite import CompositeKeysManager
from panel_adapter.query.operators import OperatorValueError, OperatorValueParser
from panel_adapter.query.params import PageParams, ResourceQuery
from panel_adapter.query.search import SearchBuilder

__all__ = [
    "AND",
    "OR",
    "CompositeKeyFormatter",
    "FilterValueParser",
    "ListQueryBuilder",
    "QueryOptions",
    "SearchConditionBuilder",
    "SearchOptions",
    "association_key",
    "split_association_key",
    "QueryBuilder",
    "CompositeKeysManager",
    "OperatorValueError",
    "OperatorValueParser",
    "PageParams",
    "ResourceQuery",
    "SearchBuilder",
]
