"""Configuration management: TOML loading and config models.

Usage:
    >>> from panel_adapter.config import load_config, AdapterConfig, CollectionConfig
"""

from panel_adapter.config.loader import ConfigError, load_config
from panel_adapter.config.models import AdapterConfig, CollectionConfig, PaginationConfig

__all__ = [
    "load_config",
    "ConfigError",
    "AdapterConfig",
    "CollectionConfig",
    "PaginationConfig",
]
