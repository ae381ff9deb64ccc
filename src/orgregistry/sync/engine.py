"""
═══════════════════════════════════════════════════════════════════════════════
Registry — Движок синхронизации списков (List Synchronization Engine)
═══════════════════════════════════════════════════════════════════════════════

Держит список (поиск / сортировка / пагинация) согласованным при трёх
одновременных источниках изменений:
    • локальная мутация (удаление, сохранение формы) → инвалидация кэша
    • периодический polling текущего ключа
    • push-уведомление коллекции → внеочередной перезапрос

Порядок применения ответов:
    • для текущего ключа применяется ответ, пришедший последним
      (по порядку прихода, а не отправки);
    • ответ на запрос, после отправки которого ключ менялся (даже если
      вернулся к прежнему значению), или для закрытого представления
      отбрасывается без записи в кэш.

На push-топик коллекции движок подписывается один раз, пока открыто
хотя бы одно представление.

Пока запрос нового ключа в полёте, представление показывает страницу
из кэша для этого ключа, а если её нет — предыдущие данные.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from orgregistry.adapters.gateway import CollectionGateway
from orgregistry.events import PushChannel, Subscription
from orgregistry.exceptions import ConflictRequiresCascade, NotFoundError, RegistryError
from orgregistry.models import CASCADE_DEPENDENTS, Collection, ListQuery, Page
from orgregistry.state.query import CacheKey, QueryStateStore
from orgregistry.sync.cache import QueryCache
from orgregistry.sync.polling import NoPolling, PollPolicy, PollTimer

logger = logging.getLogger(__name__)

ConfirmCascade = Callable[[ConflictRequiresCascade], "bool | Awaitable[bool]"]


class ViewStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RemoveOutcome(str, Enum):
    DELETED = "deleted"
    CASCADE_DELETED = "cascade_deleted"
    DECLINED = "declined"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoveResult:
    outcome: RemoveOutcome
    entity_id: int
    error: RegistryError | None = None

    @property
    def deleted(self) -> bool:
        return self.outcome in (RemoveOutcome.DELETED, RemoveOutcome.CASCADE_DELETED)


async def _confirmed(answer: Any) -> bool:
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


# ═══════════════════════════════════════════════════════════════════════════
# ДВИЖОК
# ═══════════════════════════════════════════════════════════════════════════


class ListSyncEngine:
    """
    Движок одной коллекции.

    Использование::

        engine = ListSyncEngine(gateway.organizations, cache, push,
                                poll_policy=live_policy())
        async with engine.observe(store) as view:
            view.on_change(render)
    """

    def __init__(
        self,
        gateway: CollectionGateway,
        cache: QueryCache | None = None,
        push: PushChannel | None = None,
        *,
        poll_policy: PollPolicy | None = None,
    ) -> None:
        self.gateway = gateway
        self.collection = Collection(gateway.collection)
        self.cache = cache if cache is not None else QueryCache()
        self.push = push
        self.poll_policy = poll_policy or NoPolling()
        self._push_users = 0
        self._push_subscription: Subscription | None = None

    def observe(self, store: QueryStateStore) -> "ListView":
        if store.collection != self.collection:
            raise ValueError(
                f"Store for {store.collection.value} cannot drive {self.collection.value}"
            )
        return ListView(self, store)

    async def remove(
        self,
        entity_id: int,
        *,
        cascade: bool = False,
        confirm: ConfirmCascade | None = None,
    ) -> RemoveResult:
        """
        Удаляет запись с согласованием каскада.

        Алгоритм:
            1. DELETE без каскада (или с каскадом, если он запрошен явно).
            2. ConflictRequiresCascade → ``confirm(conflict)``; отказ —
               ничего не удаляется.
            3. Подтверждение → повторный DELETE с ``cascade=True``.
            4. Успех → инвалидация коллекции (и зависимых при каскаде).

        Ошибки не пробрасываются, а возвращаются в ``RemoveResult``.
        """
        try:
            await self.gateway.delete(entity_id, cascade=cascade)
            outcome = RemoveOutcome.CASCADE_DELETED if cascade else RemoveOutcome.DELETED
        except ConflictRequiresCascade as conflict:
            if cascade:
                return self._remove_failed(entity_id, conflict)
            if confirm is None or not await _confirmed(confirm(conflict)):
                logger.info(
                    "Cascade delete of %s #%s declined", self.collection.value, entity_id
                )
                return RemoveResult(RemoveOutcome.DECLINED, entity_id, conflict)
            try:
                await self.gateway.delete(entity_id, cascade=True)
            except RegistryError as exc:
                return self._remove_failed(entity_id, exc)
            outcome = RemoveOutcome.CASCADE_DELETED
        except RegistryError as exc:
            return self._remove_failed(entity_id, exc)

        if outcome is RemoveOutcome.CASCADE_DELETED:
            self.cache.invalidate(self.collection, *CASCADE_DEPENDENTS[self.collection])
        else:
            self.cache.invalidate(self.collection)
        return RemoveResult(outcome, entity_id)

    # ── Push: одна подписка на коллекцию ───────────────────────────────

    async def _acquire_push(self) -> None:
        self._push_users += 1
        if self.push is None or self._push_users > 1:
            return
        try:
            self._push_subscription = await self.push.subscribe(
                self.collection.value, self._on_push
            )
        except Exception as exc:
            logger.warning(
                "Push subscription for %s failed, polling only: %s",
                self.collection.value, exc,
            )

    async def _release_push(self) -> None:
        self._push_users -= 1
        if self._push_users > 0 or self._push_subscription is None:
            return
        subscription, self._push_subscription = self._push_subscription, None
        try:
            await subscription.unsubscribe()
        except Exception as exc:
            logger.warning("Push unsubscribe for %s failed: %s", self.collection.value, exc)

    async def _on_push(self, _payload: bytes) -> None:
        logger.debug("Push invalidation for %s", self.collection.value)
        self.cache.invalidate(self.collection)

    def _remove_failed(self, entity_id: int, exc: RegistryError) -> RemoveResult:
        logger.warning(
            "Delete of %s #%s failed: %s", self.collection.value, entity_id, exc.message
        )
        if isinstance(exc, NotFoundError):
            self.cache.invalidate(self.collection)
        return RemoveResult(RemoveOutcome.FAILED, entity_id, exc)


# ═══════════════════════════════════════════════════════════════════════════
# ПРЕДСТАВЛЕНИЕ СПИСКА
# ═══════════════════════════════════════════════════════════════════════════


class ListView:
    """Наблюдаемое состояние списка, привязанное к своему QueryStateStore."""

    def __init__(self, engine: ListSyncEngine, store: QueryStateStore) -> None:
        self._engine = engine
        self._store = store
        self.items: list[Any] = []
        self.total_pages = 0
        self.status = ViewStatus.LOADING
        self.error: RegistryError | None = None
        self.action_error: RegistryError | None = None
        self.is_placeholder = False

        self._closed = False
        self._inflight: set[asyncio.Task] = set()
        self._poll = PollTimer(self._on_poll)
        self._holds_push = False
        self._generation = 0
        self._detach_store: Callable[[], None] | None = None
        self._detach_cache: Callable[[], None] | None = None
        self._listeners: list[Callable[["ListView"], None]] = []

    # ── Свойства ────────────────────────────────────────────────────────

    @property
    def collection(self) -> Collection:
        return self._engine.collection

    @property
    def store(self) -> QueryStateStore:
        return self._store

    @property
    def key(self) -> CacheKey:
        return self._store.cache_key

    @property
    def is_fetching(self) -> bool:
        return bool(self._inflight)

    @property
    def is_polling(self) -> bool:
        return self._poll.active

    @property
    def closed(self) -> bool:
        return self._closed

    def on_change(self, listener: Callable[["ListView"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Жизненный цикл ──────────────────────────────────────────────────

    async def start(self) -> "ListView":
        self._detach_store = self._store.subscribe(self._on_key_changed)
        self._detach_cache = self._engine.cache.register(self.collection, self._on_invalidated)
        self._holds_push = True
        await self._engine._acquire_push()
        self._show_memoized(self.key)
        self._issue("mount")
        return self

    async def close(self) -> None:
        """Отменяет таймер и подписки; запросы в полёте дорабатывают вхолостую."""
        if self._closed:
            return
        self._closed = True
        self._poll.cancel()
        if self._detach_store:
            self._detach_store()
        if self._detach_cache:
            self._detach_cache()
        if self._holds_push:
            self._holds_push = False
            await self._engine._release_push()

    async def __aenter__(self) -> "ListView":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── Публичные действия ──────────────────────────────────────────────

    def refresh(self) -> asyncio.Task | None:
        """Ручной повтор: перезапрашивает только текущий ключ."""
        return self._issue("manual")

    async def remove(
        self,
        entity_id: int,
        *,
        cascade: bool = False,
        confirm: ConfirmCascade | None = None,
    ) -> RemoveResult:
        result = await self._engine.remove(entity_id, cascade=cascade, confirm=confirm)
        self.action_error = result.error if result.outcome is RemoveOutcome.FAILED else None
        self._notify()
        return result

    async def wait_idle(self) -> None:
        """Ждёт завершения всех запросов в полёте (включая порождённые ими)."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ── Источники обновлений ────────────────────────────────────────────

    def _on_key_changed(self, key: CacheKey) -> None:
        if self._closed:
            return
        self._generation += 1
        self._poll.cancel()
        self.error = None
        if not self._show_memoized(key):
            self.is_placeholder = bool(self.items)
            self.status = ViewStatus.SUCCESS if self.items else ViewStatus.LOADING
        self._notify()
        self._issue("query")

    def _on_invalidated(self) -> None:
        if not self._closed:
            self._issue("invalidate")

    def _on_poll(self) -> None:
        if not self._closed:
            self._issue("poll")

    # ── Запросы ─────────────────────────────────────────────────────────

    def _show_memoized(self, key: CacheKey) -> bool:
        entry = self._engine.cache.get(self.collection, key)
        if entry is None:
            return False
        self._apply_page(entry.page)
        self.is_placeholder = entry.stale
        return True

    def _issue(self, reason: str) -> asyncio.Task | None:
        if self._closed:
            return None
        key = self._store.cache_key
        query = self._store.state.to_query()
        task = asyncio.get_running_loop().create_task(
            self._fetch(self._generation, key, query, reason)
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _fetch(self, generation: int, key: CacheKey, query: ListQuery, reason: str) -> None:
        try:
            page = await self._engine.gateway.list(query)
        except RegistryError as exc:
            if self._is_current(generation, key, reason):
                self._apply_failure(exc, reason)
            return
        if self._is_current(generation, key, reason):
            self._apply_success(key, page)

    def _is_current(self, generation: int, key: CacheKey, reason: str) -> bool:
        # Ключ мог вернуться к прежнему значению: сверяется поколение, а не ключ.
        if self._closed:
            logger.debug("Dropping %s response for closed %s view", reason, self.collection.value)
            return False
        if generation != self._generation:
            logger.debug("Dropping %s response for superseded key %s", reason, key)
            return False
        return True

    def _apply_success(self, key: CacheKey, page: Page) -> None:
        self._engine.cache.put(self.collection, key, page)
        self._apply_page(page)
        self._poll.schedule(self._engine.poll_policy.next_interval(page))
        self._notify()

    def _apply_failure(self, exc: RegistryError, reason: str) -> None:
        logger.warning(
            "Fetch of %s (%s) failed: %s", self.collection.value, reason, exc.message
        )
        self.status = ViewStatus.ERROR
        self.error = exc
        self._poll.cancel()
        self._notify()

    def _apply_page(self, page: Page) -> None:
        self.items = list(page.content)
        self.total_pages = page.total_pages
        self.status = ViewStatus.SUCCESS
        self.error = None
        self.is_placeholder = False

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
