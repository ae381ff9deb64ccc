"""
Общие фикстуры: in-process фейки Gateway и push-канала.

FakeCollection в режиме ``manual=True`` не отвечает сам: каждый запрос
списка ждёт Future, которую тест завершает в нужном порядке. Так
моделируются гонки ответов.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from orgregistry import events
from orgregistry.exceptions import ConflictRequiresCascade, NotFoundError, RegistryError
from orgregistry.models import Collection, ListQuery, Page


async def settle(rounds: int = 10) -> None:
    """Даёт отработать всем готовым задачам цикла событий."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeCollection:
    def __init__(self, collection: Collection, rows: list[Any] | None = None, *, manual: bool = False):
        self.collection = Collection(collection)
        self.rows: dict[int, Any] = {r.id: r for r in rows or []}
        self.manual = manual
        self.requests: list[ListQuery] = []
        self.pending: list[tuple[ListQuery, asyncio.Future]] = []
        self.delete_calls: list[tuple[int, bool]] = []
        self.saved: list[tuple[str, int | None, dict]] = []
        self.requires_cascade: set[int] = set()
        self.fail_with: RegistryError | None = None

    def page(self) -> Page:
        items = [self.rows[k] for k in sorted(self.rows)]
        return Page(content=items, total_pages=1 if items else 0)

    async def list(self, query: ListQuery) -> Page:
        self.requests.append(query)
        if self.manual:
            future = asyncio.get_running_loop().create_future()
            self.pending.append((query, future))
            return await future
        if self.fail_with is not None:
            raise self.fail_with
        return self.page()

    async def list_all(self) -> list[Any]:
        if self.manual:
            future = asyncio.get_running_loop().create_future()
            self.pending.append((None, future))
            return await future
        if self.fail_with is not None:
            raise self.fail_with
        return self.page().content

    async def get(self, entity_id: int) -> Any:
        if self.fail_with is not None:
            raise self.fail_with
        if entity_id not in self.rows:
            raise NotFoundError(self.collection.value, entity_id)
        return self.rows[entity_id]

    async def create(self, payload: dict[str, Any]) -> Any:
        self.saved.append(("create", None, payload))
        if self.fail_with is not None:
            raise self.fail_with
        return {"id": 100, **payload}

    async def update(self, entity_id: int, payload: dict[str, Any]) -> Any:
        self.saved.append(("update", entity_id, payload))
        if self.fail_with is not None:
            raise self.fail_with
        if entity_id not in self.rows:
            raise NotFoundError(self.collection.value, entity_id)
        return {"id": entity_id, **payload}

    async def delete(self, entity_id: int, *, cascade: bool = False) -> None:
        self.delete_calls.append((entity_id, cascade))
        if entity_id not in self.rows:
            raise NotFoundError(self.collection.value, entity_id)
        if entity_id in self.requires_cascade and not cascade:
            raise ConflictRequiresCascade(self.collection.value, entity_id)
        del self.rows[entity_id]

    def respond(self, index: int, page: Page | list | Exception) -> None:
        """Завершает ``index``-й отложенный запрос (страница или list_all)."""
        _, future = self.pending[index]
        if isinstance(page, Exception):
            future.set_exception(page)
        else:
            future.set_result(page)


class FakeGateway:
    def __init__(self) -> None:
        self.collections = {c: FakeCollection(c) for c in Collection}
        self.calls: list[tuple[str, str, dict | None]] = []
        self.responses: dict[tuple[str, str], Any] = {}

    def collection(self, collection: Collection) -> FakeCollection:
        return self.collections[Collection(collection)]

    async def request(self, method: str, path: str, *, params: dict | None = None, json: Any = None) -> Any:
        self.calls.append((method, path, params))
        response = self.responses.get((method, path))
        if callable(response):
            response = response(params)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSubscription:
    def __init__(self, push: "FakePush", topic: str, handler) -> None:
        self._push = push
        self.topic = topic
        self.handler = handler

    async def unsubscribe(self) -> None:
        self._push.handlers[self.topic].remove(self.handler)


class FakePush:
    def __init__(self) -> None:
        self.handlers: dict[str, list] = {}

    async def subscribe(self, topic: str, handler) -> FakeSubscription:
        self.handlers.setdefault(topic, []).append(handler)
        return FakeSubscription(self, topic, handler)

    async def fire(self, topic: str, payload: bytes = b"{}") -> None:
        for handler in list(self.handlers.get(topic, [])):
            await handler(payload)

    def count(self, topic: str) -> int:
        return len(self.handlers.get(topic, []))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def push() -> FakePush:
    return FakePush()


@pytest.fixture
def published(monkeypatch) -> list[tuple[str, str, Any]]:
    """Перехватывает события dev-сервера вместо публикации в NATS."""
    sent: list[tuple[str, str, Any]] = []

    async def _emit(collection: str, action: str, entity_id: Any) -> None:
        sent.append((collection, action, entity_id))

    monkeypatch.setattr(events, "emit_changed", _emit)
    return sent
