"""
═══════════════════════════════════════════════════════════════════════════════
Registry — Иерархия ошибок клиента (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Базовый класс ``RegistryError``. Код ошибки совпадает с полем
``error.code`` в ответах Gateway, HTTP-маппинг для dev-сервера
выполняется в ``orgregistry.main:registry_error_handler``.

Таксономия:
    • FormValidationError      — локальная ошибка формы, в сеть не уходит
    • ConflictRequiresCascade  — удаление заблокировано живыми ссылками
    • NotFoundError            — сущность не найдена
    • TransientGatewayError    — сеть / 5xx, допускает ручной повтор
    • GatewayRejectedError     — прочие 4xx (серверная валидация и т.п.)
"""

from __future__ import annotations

from typing import Any


class RegistryError(Exception):
    """
    Базовое исключение для всех ошибок клиента реестра.

    Атрибуты
    ────────
        message (str):  Описание ошибки, пригодное для показа пользователю.
        code (str):     Строковый код. Используется для маппинга на HTTP-статус.
        details (dict): Дополнительные данные (entity, id и т.д.).
    """

    def __init__(
        self,
        message: str,
        code: str = "REGISTRY_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class FormValidationError(RegistryError):
    """Ошибка валидации формы, привязанная к пути поля (``postalAddress.town.x``)."""

    def __init__(self, path: Any, message: str):
        self.path = path
        super().__init__(
            message,
            code="REGISTRY_VALIDATION_ERROR",
            details={"field": str(path)},
        )


class ConflictRequiresCascade(RegistryError):
    """Удаление невозможно: на сущность ссылаются другие записи (409 + маркер)."""

    def __init__(
        self,
        collection: str,
        entity_id: int,
        message: str = "Entity is referenced by other records",
        details: dict | None = None,
    ):
        self.collection = collection
        self.entity_id = entity_id
        payload = {"collection": collection, "id": entity_id, "requiresCascade": True}
        payload.update(details or {})
        super().__init__(message, code="CASCADE_REQUIRED", details=payload)


class NotFoundError(RegistryError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="REGISTRY_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class TransientGatewayError(RegistryError):
    """Сетевая ошибка или 5xx. Последние данные сохраняются, polling на паузе."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(
            message,
            code="REGISTRY_GATEWAY_UNAVAILABLE",
            details={"status": status_code} if status_code else None,
        )


class GatewayRejectedError(RegistryError):
    """Gateway отклонил запрос (400/401/403/422 и прочие 4xx)."""

    def __init__(self, message: str, status_code: int, details: dict | None = None):
        self.status_code = status_code
        super().__init__(message, code="REGISTRY_REJECTED", details=details)


__all__ = [
    "RegistryError",
    "FormValidationError",
    "ConflictRequiresCascade",
    "NotFoundError",
    "TransientGatewayError",
    "GatewayRejectedError",
]
