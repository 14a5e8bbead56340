"""Immutable registry of model schemas, built once at startup.

Usage:
    from panel_adapter.schema.registry import build_registry

    registry = build_registry([Article, Author], config=load_config())
    schema = registry["Article"]
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from panel_adapter.schema.builder import SchemaBuilder
from panel_adapter.schema.models import FieldError, ModelSchema

if TYPE_CHECKING:
    from panel_adapter.config.models import AdapterConfig

logger = logging.getLogger(__name__)


class SchemaNotFoundError(KeyError):
    """Raised when a model has no schema in the registry."""

    pass


class SchemaRegistry(Mapping[str, ModelSchema]):
    """Read-only mapping of model name to schema.

    Args:
        schemas: Schemas keyed by model name.
        errors: Field errors collected while building the schemas.
    """

    def __init__(
        self,
        schemas: Mapping[str, ModelSchema],
        errors: Iterable[FieldError] = (),
    ) -> None:
        self._schemas = MappingProxyType(dict(schemas))
        self.errors: tuple[FieldError, ...] = tuple(errors)

    def __getitem__(self, name: str) -> ModelSchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise SchemaNotFoundError(
                f"No schema registered for model '{name}'. "
                f"Registered models: {', '.join(self._schemas) or '(none)'}"
            ) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def to_json(self) -> list[dict]:
        """Render every schema, ordered by model name."""
        return [self._schemas[name].to_json() for name in sorted(self._schemas)]


def build_registry(
    models: Iterable[type],
    config: "AdapterConfig | None" = None,
) -> SchemaRegistry:
    """Build the schema of every model into a new registry.

    Args:
        models: Declarative mapped classes.
        config: Optional adapter configuration providing search fields,
            segments and smart fields per model name.

    Returns:
        SchemaRegistry keyed by model class name. Fields that failed to
        introspect are absent from their schema and listed in
        ``registry.errors``.
    """
    from panel_adapter.config.models import AdapterConfig

    if config is None:
        config = AdapterConfig()
    schemas: dict[str, ModelSchema] = {}
    errors: list[FieldError] = []

    for model in models:
        customization = config.collection(model.__name__)
        result = SchemaBuilder(
            model,
            search_fields=customization.search_fields,
            segments=customization.segments,
            smart_fields=customization.smart_fields,
        ).build()
        schemas[result.schema.name] = result.schema
        errors.extend(result.errors)

    logger.debug("Built schemas for %d models (%d field errors)", len(schemas), len(errors))
    return SchemaRegistry(schemas, errors)
