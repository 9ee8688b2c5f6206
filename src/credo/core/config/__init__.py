"""Service configuration, composed from per-concern pydantic settings classes."""

from .settings import Settings, create_settings

__all__ = ["Settings", "create_settings"]
