"""
orgregistry/state/query.py — Query State Store списка.

Состояние одного списка: поисковая строка, поле поиска, поле и направление
сортировки, номер страницы. Из состояния выводится неизменяемый ключ кэша,
по которому движок синхронизации решает, свежий ответ или устаревший.
"""

from __future__ import annotations

import logging
from typing import Callable, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from orgregistry.config import get_settings
from orgregistry.models import Collection, ListQuery, SortDirection

logger = logging.getLogger(__name__)


SEARCH_FIELDS: dict[Collection, tuple[str, ...]] = {
    Collection.ORGANIZATIONS: (
        "name",
        "fullName",
        "postalAddress.zipCode",
        "postalAddress.town.name",
    ),
    Collection.COORDINATES: (),
    Collection.ADDRESSES: (),
    Collection.LOCATIONS: (),
    Collection.IMPORTS: (),
}


class CacheKey(NamedTuple):
    search: str
    search_field: str
    page: int
    sort: str
    direction: SortDirection


class QueryState(BaseModel):
    """Снимок состояния списка (immutable)."""

    model_config = ConfigDict(frozen=True)

    search: str = ""
    search_field: str = "name"
    sort: str = "id"
    direction: SortDirection = SortDirection.ASC
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, ge=1)

    @property
    def cache_key(self) -> CacheKey:
        return CacheKey(self.search, self.search_field, self.page, self.sort, self.direction)

    def to_query(self) -> ListQuery:
        search = self.search.strip()
        return ListQuery(
            page=self.page,
            size=self.page_size,
            sort=self.sort,
            dir=self.direction,
            search=search or None,
            search_field=self.search_field if search else None,
        )


Listener = Callable[[CacheKey], None]


class QueryStateStore:
    """
    Владелец состояния одного списка.

    Любая мутация, кроме прямой навигации по страницам, сбрасывает
    страницу на 0. Подписчики уведомляются только при смене ключа кэша.
    Размер страницы по умолчанию берётся из настроек (``PAGE_SIZE``).
    """

    def __init__(
        self,
        collection: Collection,
        *,
        search_fields: tuple[str, ...] | None = None,
        default_sort: str = "id",
        page_size: int | None = None,
    ) -> None:
        if page_size is None:
            page_size = get_settings().page_size
        self.collection = Collection(collection)
        self.search_fields = (
            SEARCH_FIELDS[self.collection] if search_fields is None else tuple(search_fields)
        )
        self._state = QueryState(
            search_field=self.search_fields[0] if self.search_fields else "",
            sort=default_sort,
            page_size=page_size,
        )
        self._listeners: list[Listener] = []

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def cache_key(self) -> CacheKey:
        return self._state.cache_key

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Регистрирует слушателя смены ключа; возвращает функцию отписки."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Мутации ─────────────────────────────────────────────────────────

    def set_search(self, text: str, field: str | None = None) -> None:
        field = field if field is not None else self._state.search_field
        if field not in self.search_fields:
            raise ValueError(
                f"Search field {field!r} is not allowed for {self.collection.value}"
            )
        self._replace(search=text, search_field=field, page=0)

    def set_sort(self, field: str) -> None:
        if field == self._state.sort:
            self._replace(direction=self._state.direction.toggled(), page=0)
        else:
            self._replace(sort=field, direction=SortDirection.ASC, page=0)

    def set_page(self, page: int) -> None:
        if page < 0:
            raise ValueError("page index must be non-negative")
        self._replace(page=page)

    def _replace(self, **changes) -> None:
        previous = self._state.cache_key
        self._state = self._state.model_copy(update=changes)
        key = self._state.cache_key
        if key == previous:
            return
        logger.debug("Query state %s: %s", self.collection.value, key)
        for listener in list(self._listeners):
            listener(key)
