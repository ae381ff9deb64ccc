"""
═══════════════════════════════════════════════════════════════════════════════
Registry — Настройки клиента (Application Configuration)
═══════════════════════════════════════════════════════════════════════════════

Класс RegistrySettings для клиента реестра организаций.
Содержит настройки:
    • Gateway (базовый URL REST API, токен, таймаут)
    • NATS (push-уведомления об изменениях коллекций)
    • Polling (интервалы обновления списков)
    • Политика валидации координат
    • Dev-сервер (host, port, CORS)
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    """
    Настройки клиента реестра.

    Все параметры читаются из переменных окружения или .env файла.
    Префикс не используется (GATEWAY_URL, NATS_URL и т.д.).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Среда выполнения ──────────────────────────────────────────────────
    app_env: str = Field(
        default="development",
        description="Application environment: development | staging | production",
    )
    log_level: str = Field(default="INFO")

    # ── Gateway (REST API реестра) ────────────────────────────────────────
    gateway_url: str = Field(
        default="http://localhost:35000",
        description="Base URL of the registry REST API",
    )
    api_token: str = Field(default="", description="Bearer token, empty for anonymous access")
    request_timeout: float = Field(default=10.0, gt=0)
    cascade_conflict_code: str = Field(
        default="CASCADE_REQUIRED",
        description="Error code of a 409 response that asks for cascadeDelete=true",
    )

    # ── NATS (push-канал) ─────────────────────────────────────────────────
    nats_url: str = Field(default="nats://localhost:4222")
    nats_subject_prefix: str = Field(default="registry")

    # ── Polling ───────────────────────────────────────────────────────────
    live_poll_interval: float = Field(
        default=1.0,
        description="Seconds between refreshes of live reference lists",
    )
    history_poll_interval: float = Field(
        default=4.0,
        description="Seconds between refreshes of history lists with running entries",
    )
    page_size: int = Field(default=10, ge=1, le=500)

    # ── Политика координат ────────────────────────────────────────────────
    # Ранние ревизии формы ограничивали x ≤ 882 и y > -540.
    # По умолчанию ограничения выключены.
    coordinates_x_max: int | None = Field(default=None)
    coordinates_y_min_exclusive: int | None = Field(default=None)

    # ── Тексты уведомлений ────────────────────────────────────────────────
    redirect_notice: str = Field(
        default="Организация была удалена. Мы вернули вас на главную.",
    )

    # ── Dev-сервер ────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=35000, ge=1, le=65535)
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors(cls, v: str | List[str]) -> List[str]:
        """Парсит CORS_ORIGINS из JSON-строки."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("live_poll_interval", "history_poll_interval")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll interval must be positive")
        return v

    @model_validator(mode="after")
    def _validate_gateway_url(self) -> "RegistrySettings":
        """В production Gateway должен быть доступен по HTTPS."""
        if self.app_env == "production" and not self.gateway_url.startswith("https://"):
            raise ValueError("GATEWAY_URL must use https:// in production")
        self.gateway_url = self.gateway_url.rstrip("/")
        return self


@lru_cache
def get_settings() -> RegistrySettings:
    """
    Возвращает единственный экземпляр RegistrySettings (singleton).

    Декоратор ``@lru_cache`` гарантирует, что объект создаётся
    только при первом вызове.
    """
    return RegistrySettings()


__all__ = ["RegistrySettings", "get_settings"]
