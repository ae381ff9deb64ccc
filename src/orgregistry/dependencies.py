"""
orgregistry/dependencies.py — Зависимости FastAPI dev-сервера (Dependency Injection).
"""

from __future__ import annotations

from fastapi import HTTPException, Path, status

from orgregistry.memory_store import MemoryRegistry, get_memory_registry
from orgregistry.models import Collection


def get_registry() -> MemoryRegistry:
    """Хранилище dev-сервера; в тестах подменяется через ``dependency_overrides``."""
    return get_memory_registry()


def writable_collection(collection: str = Path(...)) -> Collection:
    """
    Сегмент пути ``/api/{collection}`` → Collection.

    Raises:
        HTTPException(404): неизвестная или read-only коллекция.
    """
    try:
        resolved = Collection(collection)
    except ValueError:
        resolved = None
    if resolved is None or resolved is Collection.IMPORTS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown collection: {collection}",
        )
    return resolved
