"""panel-adapter: Admin panel schemas and list queries for SQLAlchemy models.

Introspects declarative mapped classes into the schema description consumed
by an admin panel, and serves its list views (filters, search, segments,
sort, pagination) with concurrent count and fetch queries.

Usage:
    from panel_adapter import build_registry, Collection, ResourcesGetter
    from panel_adapter import ResourceQuery, load_config, create_session_factory
"""

__version__ = "0.1.0"

# Schema
from panel_adapter.schema.builder import SchemaBuilder, build_schema
from panel_adapter.schema.models import (
    COMPOSITE_PRIMARY_FIELD,
    DynamicCondition,
    FieldSchema,
    ModelSchema,
    Segment,
    StaticCondition,
)
from panel_adapter.schema.registry import SchemaNotFoundError, SchemaRegistry, build_registry

# Config
from panel_adapter.config.loader import ConfigError, load_config
from panel_adapter.config.models import AdapterConfig, CollectionConfig, PaginationConfig

# Query
from panel_adapter.query.base import QueryOptions
from panel_adapter.query.operators import OperatorValueError
from panel_adapter.query.params import PageParams, ResourceQuery

# Adapters
from panel_adapter.adapters.collection import Collection, UnknownScopeError
from panel_adapter.adapters.engine import create_session_factory

# Services
from panel_adapter.services.resources_getter import ResourcesGetter

__all__ = [
    # Schema
    "SchemaBuilder",
    "build_schema",
    "COMPOSITE_PRIMARY_FIELD",
    "DynamicCondition",
    "FieldSchema",
    "ModelSchema",
    "Segment",
    "StaticCondition",
    "SchemaNotFoundError",
    "SchemaRegistry",
    "build_registry",
    # Config
    "load_config",
    "ConfigError",
    "AdapterConfig",
    "CollectionConfig",
    "PaginationConfig",
    # Query
    "QueryOptions",
    "OperatorValueError",
    "PageParams",
    "ResourceQuery",
    # Adapters
    "Collection",
    "UnknownScopeError",
    "create_session_factory",
    # Services
    "ResourcesGetter",
]
