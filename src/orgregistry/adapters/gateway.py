"""
orgregistry/adapters/gateway.py — Контракт Remote Resource Gateway.

Ядро клиента (движок списков, справочники, guard, формы) зависит только
от этих протоколов. Реализация по HTTP — ``http_gateway.HttpGateway``,
в тестах используются in-process фейки.
"""

from __future__ import annotations

from typing import Any, Protocol

from orgregistry.models import Collection, ListQuery, Page


class CollectionGateway(Protocol):
    """CRUD + search/sort/page одной коллекции."""

    collection: Collection

    async def list(self, query: ListQuery) -> Page: ...

    async def list_all(self) -> list[Any]: ...

    async def get(self, entity_id: int) -> Any: ...

    async def create(self, payload: dict[str, Any]) -> Any: ...

    async def update(self, entity_id: int, payload: dict[str, Any]) -> Any: ...

    async def delete(self, entity_id: int, *, cascade: bool = False) -> None:
        """
        Удаляет запись.

        Raises:
            ConflictRequiresCascade: на запись ссылаются, ``cascade`` не задан.
            NotFoundError: записи уже нет.
        """
        ...


class RegistryGateway(Protocol):
    """Набор коллекций реестра + эндпоинты специальных операций."""

    def collection(self, collection: Collection) -> CollectionGateway: ...

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any: ...
