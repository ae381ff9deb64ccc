"""
═══════════════════════════════════════════════════════════════════════════════
Registry — Dev-сервер Gateway (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения (Application Factory Pattern) для локального Gateway
реестра: REST API коллекций поверх in-memory хранилища и публикация
уведомлений об изменениях в NATS. Клиентское ядро (HttpGateway,
ListSyncEngine, DeletionGuard) работает с ним так же, как с боевым.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orgregistry import __version__
from orgregistry.config import get_settings
from orgregistry.exceptions import RegistryError

# ── API роутеры ───────────────────────────────────────────────────────────
from orgregistry.api.health import router as health_router
from orgregistry.api.operations import router as operations_router
from orgregistry.api.resources import router as resources_router

# ═══════════════════════════════════════════════════════════════════════════════
# Настройка логирования
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Коды RegistryError → HTTP-статусы
STATUS_MAP: dict[str, int] = {
    "REGISTRY_NOT_FOUND": 404,
    "CASCADE_REQUIRED": 409,
    "REGISTRY_VALIDATION_ERROR": 422,
    "REGISTRY_REJECTED": 400,
    "REGISTRY_GATEWAY_UNAVAILABLE": 503,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan — управление жизненным циклом
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        1. Подключаемся к NATS (при недоступности — без push, graceful degradation).

    Shutdown:
        1. Закрываем соединение с NATS.
    """
    settings = get_settings()
    logger.info(f"🚀 Registry dev gateway v{__version__} starting...")
    logger.info(f"   Log level: {settings.log_level}")

    from orgregistry.events import connect as nats_connect
    if await nats_connect() is None:
        logger.warning("⚠️  NATS publisher not available (events will be skipped)")

    yield

    from orgregistry.events import disconnect as nats_disconnect
    try:
        await nats_disconnect()
    except Exception as e:
        logger.warning(f"⚠️  NATS disconnect failed: {e}")
    logger.info("🛑 Registry dev gateway stopped")


# ═══════════════════════════════════════════════════════════════════════════════
# Обработчик RegistryError
# ═══════════════════════════════════════════════════════════════════════════════

async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    """Маппинг кодов RegistryError на HTTP-статусы в формате ``{"error": {...}}``."""
    status_code = getattr(exc, "status_code", None) or STATUS_MAP.get(exc.code, 500)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Фабрика приложения
# ═══════════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Создаёт и конфигурирует FastAPI-приложение dev-сервера."""
    settings = get_settings()

    _is_production = settings.app_env == "production"

    app = FastAPI(
        redirect_slashes=False,
        title="Organization Registry Gateway (dev)",
        description=(
            "Local gateway for the organization registry: collections CRUD, "
            "cascade delete negotiation, special operations and NATS change events."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if _is_production else "/docs",
        redoc_url=None if _is_production else "/redoc",
    )

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    # ── Подключение API-роутеров ─────────────────────────────────────────
    # Фиксированные пути регистрируются раньше ``/{collection}``.
    api_router = APIRouter(prefix="/api")
    api_router.include_router(health_router)
    api_router.include_router(operations_router)
    api_router.include_router(resources_router)
    app.include_router(api_router)

    app.add_exception_handler(RegistryError, registry_error_handler)

    @app.get("/")
    async def root():
        return {
            "name": "orgregistry",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "health": "/api/health",
                "collections": "/api/{collection}",
                "operations": "/api/operations",
            },
        }

    return app


# ═══════════════════════════════════════════════════════════════════════════════
# Module-level singleton
# ═══════════════════════════════════════════════════════════════════════════════
app = create_app()


def main() -> None:
    """Запускает dev-сервер через Uvicorn."""
    settings = get_settings()
    logger.info(f"Starting registry dev gateway on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "orgregistry.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
