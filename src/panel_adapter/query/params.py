"""Pydantic model of list request parameters."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PageParams(BaseModel):
    """Requested page, 1-based. ``size`` None means the configured default."""

    number: int = Field(default=1, ge=1)
    size: int | None = Field(default=None, ge=1)


class ResourceQuery(BaseModel):
    """Parameters of a list request, as parsed by the HTTP layer.

    Example:
        >>> params = ResourceQuery.model_validate(
        ...     {"filter": {"age": "18,21"}, "filterType": "or", "fields": {"User": "name"}}
        ... )
        >>> params.filter_type
        'or'
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    filter: dict[str, str] | None = None
    filter_type: Literal["and", "or"] | None = Field(default=None, alias="filterType")
    search: str | None = None
    fields: dict[str, str] | None = None
    sort: str | None = None
    page: PageParams = Field(default_factory=PageParams)
    segment: str | None = None
    timezone: str | None = None
