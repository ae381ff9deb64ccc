"""
orgregistry/events.py — Push-канал реестра через NATS.

Gateway публикует уведомления об изменениях в топики коллекций:
    • ``registry.organizations``
    • ``registry.coordinates``
    • ``registry.addresses``
    • ``registry.locations``
    • ``registry.imports``

Содержимое сообщения для клиента непрозрачно: важен только факт
изменения, по которому движок списков инвалидирует кэш.

Graceful degradation: если NATS недоступен — подписка не создаётся,
списки продолжают обновляться polling'ом; публикация пропускается
с предупреждением в лог.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Protocol

import nats
from nats.aio.client import Client as NATSClient

from orgregistry.config import get_settings

logger = logging.getLogger(__name__)

PushHandler = Callable[[bytes], Awaitable[None]]


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class PushChannel(Protocol):
    """Источник push-уведомлений по топикам коллекций."""

    async def subscribe(self, topic: str, handler: PushHandler) -> Subscription | None: ...


def subject_for(topic: str) -> str:
    """``organizations`` → ``registry.organizations``."""
    return f"{get_settings().nats_subject_prefix}.{topic}"


# ── Singleton NATS connection ─────────────────────────────────────────────

_nc: NATSClient | None = None


async def connect() -> NATSClient | None:
    """Подключается к NATS (если ещё не подключён)."""
    global _nc
    if _nc is not None and _nc.is_connected:
        return _nc
    settings = get_settings()
    try:
        _nc = await nats.connect(settings.nats_url)
        logger.info("NATS connected: %s", settings.nats_url)
        return _nc
    except Exception as exc:
        logger.warning("NATS connect failed (push disabled): %s", exc)
        _nc = None
        return None


def is_connected() -> bool:
    return _nc is not None and _nc.is_connected


async def disconnect() -> None:
    """Закрывает соединение с NATS."""
    global _nc
    if _nc and _nc.is_connected:
        await _nc.drain()
        logger.info("NATS disconnected")
    _nc = None


# ── Публикация (dev-сервер) ──────────────────────────────────────────────

async def publish(topic: str, data: dict[str, Any]) -> None:
    """
    Публикует JSON-уведомление об изменении коллекции.

    Args:
        topic: Коллекция (e.g. ``coordinates``).
        data: Payload (сериализуется в JSON).
    """
    nc = await connect()
    if nc is None:
        logger.debug("NATS unavailable — skipping event %s", topic)
        return
    try:
        payload = json.dumps(data, default=str).encode("utf-8")
        await nc.publish(subject_for(topic), payload)
        logger.info("NATS event published: %s", subject_for(topic))
    except Exception as exc:
        logger.warning("NATS publish failed for %s: %s", topic, exc)


async def emit_changed(collection: str, action: str, entity_id: Any) -> None:
    """Событие: запись коллекции создана / изменена / удалена."""
    await publish(collection, {
        "event": f"{collection}.{action}",
        "id": entity_id,
    })


# ── Подписка (клиент) ────────────────────────────────────────────────────

class NatsPushChannel:
    """PushChannel поверх общего NATS-соединения."""

    async def subscribe(self, topic: str, handler: PushHandler) -> Subscription | None:
        nc = await connect()
        if nc is None:
            logger.warning("Push subscription to %s skipped: NATS unavailable", topic)
            return None

        async def _on_message(msg) -> None:
            logger.debug("Push message on %s", msg.subject)
            await handler(msg.data)

        sub = await nc.subscribe(subject_for(topic), cb=_on_message)
        logger.info("Subscribed to %s", subject_for(topic))
        return sub
