"""
orgregistry/guard.py — Защита от конкурентного удаления (Concurrent-Deletion Guard).

Оборачивает загрузку одной сущности (карточка, форма редактирования):

    loading → ready | not_found_after_seen | not_found_cold | error

``not_found_after_seen`` — сущность уже была получена в этой сессии, а
очередной запрос (polling, push или неудачная мутация) вернул 404: её
удалил кто-то другой. Guard один раз перенаправляет на список с
уведомлением. ``not_found_cold`` — id никогда не существовал: обычная
ошибка страницы без редиректа.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from orgregistry.config import get_settings
from orgregistry.events import PushChannel, Subscription
from orgregistry.exceptions import NotFoundError, RegistryError
from orgregistry.models import Collection
from orgregistry.sync.cache import QueryCache
from orgregistry.sync.polling import PollTimer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GuardState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    NOT_FOUND_AFTER_SEEN = "not_found_after_seen"
    NOT_FOUND_COLD = "not_found_cold"
    ERROR = "error"


@dataclass(frozen=True)
class RedirectNotice:
    target: str
    message: str


class Navigator:
    """Навигация UI: редирект и одноразовое уведомление для целевой страницы."""

    def __init__(self) -> None:
        self.redirects: list[RedirectNotice] = []
        self._pending: RedirectNotice | None = None

    def redirect(self, target: str, message: str) -> None:
        notice = RedirectNotice(target, message)
        self.redirects.append(notice)
        self._pending = notice
        logger.info("Redirect to %s: %s", target, message)

    def take_notice(self, target: str) -> str | None:
        """Забирает уведомление для страницы ``target`` (показывается один раз)."""
        if self._pending is None or self._pending.target != target:
            return None
        notice, self._pending = self._pending, None
        return notice.message


class DeletionGuard(Generic[T]):
    """
    Guard загрузки одной сущности.

    Использование::

        guard = DeletionGuard(lambda: gateway.organizations.get(42),
                              navigator=navigator, poll_interval=1.0,
                              push=push, topic=Collection.ORGANIZATIONS)
        await guard.start()
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        navigator: Navigator,
        redirect_to: str = Collection.ORGANIZATIONS.value,
        notice: str | None = None,
        poll_interval: float | None = None,
        push: PushChannel | None = None,
        topic: Collection | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self._fetch = fetch
        self._navigator = navigator
        self._redirect_to = redirect_to
        self._notice = notice or get_settings().redirect_notice
        self._poll_interval = poll_interval
        self._push = push
        self._topic = topic
        self._cache = cache

        self.state = GuardState.LOADING
        self.entity: T | None = None
        self.error: RegistryError | None = None
        self.seen = False
        self.redirected = False

        self._closed = False
        self._poll = PollTimer(self._on_tick)
        self._inflight: set[asyncio.Task] = set()
        self._subscription: Subscription | None = None
        self._detach_cache: Callable[[], None] | None = None

    @property
    def terminal(self) -> bool:
        return self.state is GuardState.NOT_FOUND_AFTER_SEEN

    # ── Жизненный цикл ──────────────────────────────────────────────────

    async def start(self) -> GuardState:
        if self._push is not None and self._topic is not None:
            try:
                self._subscription = await self._push.subscribe(
                    Collection(self._topic).value, self._on_push
                )
            except Exception as exc:
                logger.warning("Guard push subscription failed: %s", exc)
        if self._cache is not None and self._topic is not None:
            self._detach_cache = self._cache.register(Collection(self._topic), self._on_tick)
        return await self.load()

    async def close(self) -> None:
        self._closed = True
        self._poll.cancel()
        if self._detach_cache:
            self._detach_cache()
            self._detach_cache = None
        if self._subscription is not None:
            try:
                await self._subscription.unsubscribe()
            except Exception as exc:
                logger.warning("Guard push unsubscribe failed: %s", exc)
            self._subscription = None

    async def __aenter__(self) -> "DeletionGuard[T]":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── Загрузка ────────────────────────────────────────────────────────

    async def load(self) -> GuardState:
        """Один запрос сущности с применением перехода."""
        try:
            entity = await self._fetch()
        except NotFoundError as exc:
            self.report_not_found(exc)
        except RegistryError as exc:
            self._apply_error(exc)
        else:
            self._apply_entity(entity)
        return self.state

    async def retry(self) -> GuardState:
        if self.terminal:
            return self.state
        return await self.load()

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def report_not_found(self, exc: NotFoundError | None = None) -> None:
        """Переход по 404 — от загрузки или от неудачной мутации (update/delete)."""
        if self._closed or self.terminal:
            return
        self._poll.cancel()
        if not self.seen:
            self.state = GuardState.NOT_FOUND_COLD
            self.error = exc or NotFoundError(self._redirect_to, None)
            return
        self.state = GuardState.NOT_FOUND_AFTER_SEEN
        self.entity = None
        if not self.redirected:
            self.redirected = True
            self._navigator.redirect(self._redirect_to, self._notice)

    def _apply_entity(self, entity: T) -> None:
        if self._closed or self.terminal:
            return
        self.entity = entity
        self.seen = True
        self.error = None
        self.state = GuardState.READY
        if self._poll_interval is not None:
            self._poll.schedule(self._poll_interval)

    def _apply_error(self, exc: RegistryError) -> None:
        if self._closed or self.terminal:
            return
        logger.warning("Entity fetch failed: %s", exc.message)
        self.error = exc
        self.state = GuardState.ERROR
        self._poll.cancel()

    # ── Источники обновлений ────────────────────────────────────────────

    def _on_tick(self) -> None:
        if self._closed or self.terminal:
            return
        task = asyncio.get_running_loop().create_task(self.load())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _on_push(self, _payload: bytes) -> None:
        self._on_tick()
