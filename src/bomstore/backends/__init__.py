"""Storage backends for the ModelStore contract."""

from .memory import InMemoryModelStore

__all__ = ["InMemoryModelStore"]
