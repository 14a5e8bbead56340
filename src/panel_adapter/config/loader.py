"""Configuration loading from panel.toml."""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from panel_adapter.config.models import AdapterConfig, CollectionConfig, PaginationConfig
from panel_adapter.schema.models import Segment, StaticCondition


class ConfigError(ValueError):
    """Raised when panel.toml exists but its content is invalid."""

    pass


def _parse_segment(data: dict[str, Any]) -> Segment:
    where = data.get("where")
    return Segment(
        name=data["name"],
        scope=data.get("scope"),
        where=StaticCondition(value=where) if where is not None else None,
    )


def load_config(config_path: Path | None = None) -> AdapterConfig:
    """Load adapter configuration from TOML file.

    Args:
        config_path: Path to panel.toml (default: ``panel.toml`` in the
            current working directory)

    Returns:
        AdapterConfig with pagination settings and collection customizations

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config format is invalid

    Example:
        >>> config = load_config(Path("panel.toml"))
        >>> config.collection("Article").search_fields
        ['title', 'author.name']
    """
    if config_path is None:
        config_path = Path.cwd() / "panel.toml"

    if not config_path.exists():
        raise FileNotFoundError(f"Adapter config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path.name}: {e}") from e

    try:
        pagination = PaginationConfig(**data.get("pagination", {}))

        collections = {}
        for name, collection_data in data.get("collections", {}).items():
            collections[name] = CollectionConfig(
                search_fields=collection_data.get("search_fields"),
                segments=[_parse_segment(s) for s in collection_data.get("segments", [])],
            )
    except (ValidationError, KeyError, TypeError) as e:
        raise ConfigError(f"Invalid configuration in {config_path.name}: {e}") from e

    return AdapterConfig(pagination=pagination, collections=collections)
