"""
orgregistry/sync/polling.py — Политики и таймер периодического обновления.

    • FixedInterval    — живые справочники, обновление раз в ~1 с
    • WhileInProgress  — история (импорты): опрос, пока есть незавершённые записи
    • NoPolling        — только push и ручное обновление
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from orgregistry.config import RegistrySettings, get_settings
from orgregistry.models import Page

logger = logging.getLogger(__name__)


class PollPolicy(Protocol):
    def next_interval(self, page: Page) -> float | None:
        """Задержка до следующего обновления после успешного ответа (None — не опрашивать)."""
        ...


@dataclass(frozen=True)
class FixedInterval:
    seconds: float

    def next_interval(self, page: Page) -> float | None:
        return self.seconds


def _in_progress(item: Any) -> bool:
    return bool(getattr(item, "in_progress", False))


@dataclass(frozen=True)
class WhileInProgress:
    seconds: float
    predicate: Callable[[Any], bool] = _in_progress

    def next_interval(self, page: Page) -> float | None:
        if any(self.predicate(item) for item in page.content):
            return self.seconds
        return None


class NoPolling:
    def next_interval(self, page: Page) -> float | None:
        return None


def live_policy(settings: RegistrySettings | None = None) -> FixedInterval:
    return FixedInterval((settings or get_settings()).live_poll_interval)


def history_policy(settings: RegistrySettings | None = None) -> WhileInProgress:
    return WhileInProgress((settings or get_settings()).history_poll_interval)


class PollTimer:
    """Одноразовый отменяемый таймер; ``schedule`` перезапускает отсчёт."""

    def __init__(self, tick: Callable[[], Any]) -> None:
        self._tick = tick
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float | None) -> None:
        self.cancel()
        if delay is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._fire(delay))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fire(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._task = None
        self._tick()
