"""Request services of the admin panel.

Usage:
    from panel_adapter.services import ResourcesGetter
"""

from panel_adapter.services.resources_getter import ResourcesGetter

__all__ = ["ResourcesGetter"]
