"""
orgregistry/sync/cache.py — Общий кэш результатов списков.

Хранит страницы, запомненные по ``(collection, cache_key)``, и реестр
наблюдателей коллекций. ``invalidate()`` помечает записи коллекции
устаревшими и будит всех её наблюдателей — так локальная мутация
или push-уведомление обновляют все открытые списки сразу.
Число записей ограничено: при переполнении вытесняются давно
не использованные ключи.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from typing import Callable

from orgregistry.models import Collection, Page
from orgregistry.state.query import CacheKey

logger = logging.getLogger(__name__)

Observer = Callable[[], None]


@dataclass
class CacheEntry:
    page: Page
    stale: bool = False


class QueryCache:
    """Мемоизация страниц по ключу + инвалидация по коллекции."""

    def __init__(self, max_entries: int = 256) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[Collection, CacheKey], CacheEntry] = OrderedDict()
        self._observers: dict[Collection, list[Observer]] = defaultdict(list)

    def get(self, collection: Collection, key: CacheKey) -> CacheEntry | None:
        entry = self._entries.get((collection, key))
        if entry is not None:
            self._entries.move_to_end((collection, key))
        return entry

    def put(self, collection: Collection, key: CacheKey, page: Page) -> None:
        self._entries[(collection, key)] = CacheEntry(page=page)
        self._entries.move_to_end((collection, key))
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s %s", evicted[0].value, evicted[1])

    def entry_count(self) -> int:
        return len(self._entries)

    def register(self, collection: Collection, observer: Observer) -> Callable[[], None]:
        """Подписывает наблюдателя на инвалидацию коллекции."""
        observers = self._observers[collection]
        observers.append(observer)

        def _unregister() -> None:
            if observer in observers:
                observers.remove(observer)

        return _unregister

    def observer_count(self, collection: Collection) -> int:
        return len(self._observers.get(collection, ()))

    def invalidate(self, *collections: Collection) -> None:
        """Помечает записи устаревшими и запускает перезапрос у наблюдателей."""
        for collection in collections:
            for (entry_collection, _), entry in self._entries.items():
                if entry_collection == collection:
                    entry.stale = True
            observers = list(self._observers.get(collection, ()))
            logger.debug(
                "Invalidated %s (%d observers)", collection.value, len(observers)
            )
            for observer in observers:
                observer()
