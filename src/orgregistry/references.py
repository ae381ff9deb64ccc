"""
orgregistry/references.py — Таблица справочников (Reference Resolution Table).

Кэш трёх разделяемых коллекций (координаты, адреса, города) для
селекторов «выбрать существующий» в формах. Загружается один раз при
монтировании и перечитывается по push-уведомлению соответствующей
коллекции. Сама таблица Gateway никогда не изменяет.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from orgregistry.adapters.gateway import RegistryGateway
from orgregistry.events import PushChannel, Subscription
from orgregistry.exceptions import RegistryError
from orgregistry.models import Collection

logger = logging.getLogger(__name__)

REFERENCE_KINDS: tuple[Collection, ...] = (
    Collection.COORDINATES,
    Collection.ADDRESSES,
    Collection.LOCATIONS,
)


@dataclass(frozen=True)
class ReferenceOption:
    id: int
    label: str


class ReferenceTable:
    """Read-only кэш справочников."""

    def __init__(self, gateway: RegistryGateway, push: PushChannel | None = None) -> None:
        self._gateway = gateway
        self._push = push
        self._rows: dict[Collection, dict[int, Any]] = {kind: {} for kind in REFERENCE_KINDS}
        self._subscriptions: list[Subscription] = []
        self.errors: dict[Collection, RegistryError] = {}
        self._generations: dict[Collection, int] = {kind: 0 for kind in REFERENCE_KINDS}
        self.mounted = False

    async def mount(self) -> "ReferenceTable":
        await asyncio.gather(*(self.reload(kind) for kind in REFERENCE_KINDS))
        if self._push is not None:
            for kind in REFERENCE_KINDS:
                try:
                    sub = await self._push.subscribe(kind.value, self._reloader(kind))
                except Exception as exc:
                    logger.warning("Reference push for %s unavailable: %s", kind.value, exc)
                    continue
                if sub is not None:
                    self._subscriptions.append(sub)
        self.mounted = True
        return self

    async def close(self) -> None:
        for sub in self._subscriptions:
            try:
                await sub.unsubscribe()
            except Exception as exc:
                logger.warning("Reference unsubscribe failed: %s", exc)
        self._subscriptions.clear()
        self.mounted = False

    async def __aenter__(self) -> "ReferenceTable":
        return await self.mount()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _reloader(self, kind: Collection):
        async def _on_push(_payload: bytes) -> None:
            await self.reload(kind)
        return _on_push

    async def reload(self, kind: Collection) -> None:
        """
        Перечитывает одну коллекцию; при ошибке сохраняет прежние строки.

        Применяется только ответ последнего начатого перечитывания вида:
        ответ, обогнанный более новым запросом, отбрасывается.
        """
        kind = self._check_kind(kind)
        self._generations[kind] += 1
        generation = self._generations[kind]
        try:
            rows = await self._gateway.collection(kind).list_all()
        except RegistryError as exc:
            if generation != self._generations[kind]:
                logger.debug("Dropping superseded %s failure: %s", kind.value, exc.message)
                return
            logger.warning("Failed to load %s references: %s", kind.value, exc.message)
            self.errors[kind] = exc
            return
        if generation != self._generations[kind]:
            logger.debug("Dropping superseded %s references", kind.value)
            return
        self._rows[kind] = {row.id: row for row in rows if row.id is not None}
        self.errors.pop(kind, None)
        logger.debug("Loaded %d %s references", len(self._rows[kind]), kind.value)

    # ── Чтение ──────────────────────────────────────────────────────────

    def list_all(self, kind: Collection) -> list[ReferenceOption]:
        rows = self._rows[self._check_kind(kind)]
        return [ReferenceOption(id=row_id, label=row.label) for row_id, row in rows.items()]

    def get(self, kind: Collection, entity_id: int) -> Any | None:
        return self._rows[self._check_kind(kind)].get(entity_id)

    def contains(self, kind: Collection, entity_id: int) -> bool:
        return entity_id in self._rows[self._check_kind(kind)]

    @staticmethod
    def _check_kind(kind: Collection) -> Collection:
        kind = Collection(kind)
        if kind not in REFERENCE_KINDS:
            raise ValueError(f"{kind.value} is not a reference collection")
        return kind
