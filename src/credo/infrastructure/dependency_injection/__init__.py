"""Service wiring for the memory and SQL backends."""

from .container import Container, build_container

__all__ = ["Container", "build_container"]
