"""Backing collections and async engine helpers.

Provides ``Collection``, the count/list access to one mapped class used by
the resources getter, and the helpers creating the ``async_sessionmaker``
it runs its queries on.

Usage:
    from panel_adapter.adapters import Collection, create_session_factory

    session_factory = create_session_factory("postgresql://localhost/mydb")
    collection = Collection(Article, session_factory)
"""

from panel_adapter.adapters.collection import Collection, UnknownScopeError, compile_where
from panel_adapter.adapters.engine import (
    create_async_engine_pooled,
    create_session_factory,
    normalize_database_url,
)

__all__ = [
    "Collection",
    "UnknownScopeError",
    "compile_where",
    "create_async_engine_pooled",
    "create_session_factory",
    "normalize_database_url",
]
