"""Pydantic models for adapter configuration."""

from pydantic import BaseModel, Field

from panel_adapter.schema.models import FieldSchema, Segment


# ============================================================================
# Configuration Models
# ============================================================================


class PaginationConfig(BaseModel):
    """Page size bounds applied to list requests."""

    default_size: int = Field(default=15, gt=0)
    max_size: int = Field(default=100, gt=0)


class CollectionConfig(BaseModel):
    """Registration-time customization of one model.

    Segments loaded from TOML are static; code-level configuration may also
    declare dynamic segments and smart fields with search hooks.
    """

    search_fields: list[str] | None = None
    segments: list[Segment] = Field(default_factory=list)
    smart_fields: list[FieldSchema] = Field(default_factory=list)


class AdapterConfig(BaseModel):
    """Complete adapter configuration from panel.toml."""

    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    collections: dict[str, CollectionConfig] = Field(default_factory=dict)

    def collection(self, name: str) -> CollectionConfig:
        """Return the customization of model ``name`` (empty when absent)."""
        return self.collections.get(name) or CollectionConfig()
