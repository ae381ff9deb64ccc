"""
orgregistry/adapters/http_gateway.py — HTTP-клиент Gateway реестра (httpx).

Переводит ответы REST API в доменные модели и иерархию ``RegistryError``:

    404                       → NotFoundError
    409 + маркер каскада      → ConflictRequiresCascade
    прочие 4xx                → GatewayRejectedError
    5xx, таймауты, обрывы     → TransientGatewayError

Маркер каскада — структурный: ``error.code == CASCADE_REQUIRED`` (код
настраивается) или ``error.details.requiresCascade == true``. Текст
сообщения для распознавания не используется.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from orgregistry.config import RegistrySettings, get_settings
from orgregistry.exceptions import (
    ConflictRequiresCascade,
    GatewayRejectedError,
    NotFoundError,
    TransientGatewayError,
)
from orgregistry.models import (
    Address,
    Collection,
    Coordinates,
    ImportOperation,
    ListQuery,
    Location,
    Organization,
    Page,
    RegistryBase,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

COLLECTION_MODELS: dict[Collection, type[RegistryBase]] = {
    Collection.ORGANIZATIONS: Organization,
    Collection.COORDINATES: Coordinates,
    Collection.ADDRESSES: Address,
    Collection.LOCATIONS: Location,
    Collection.IMPORTS: ImportOperation,
}


# ═══════════════════════════════════════════════════════════════════════════
# РАЗБОР ОШИБОК
# ═══════════════════════════════════════════════════════════════════════════


def _error_body(response: httpx.Response) -> dict[str, Any]:
    """Возвращает ``error``-объект ответа в нормализованном виде."""
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text or response.reason_phrase}
    if not isinstance(body, dict):
        return {"message": str(body)}
    error = body.get("error")
    if isinstance(error, dict):
        return error
    if isinstance(error, str):
        return {"message": error}
    return {"message": body.get("message") or response.reason_phrase}


def raise_for_response(
    response: httpx.Response,
    *,
    collection: Collection | None = None,
    entity_id: Any = None,
    cascade_code: str = "CASCADE_REQUIRED",
) -> None:
    """Бросает доменное исключение для неуспешного ответа."""
    if response.is_success:
        return

    error = _error_body(response)
    message = error.get("message") or f"HTTP {response.status_code}"
    details = error.get("details") if isinstance(error.get("details"), dict) else {}
    status = response.status_code
    entity = collection.value if collection else "resource"

    if status == 404:
        raise NotFoundError(entity, entity_id)
    if status == 409 and (
        error.get("code") == cascade_code or details.get("requiresCascade") is True
    ):
        raise ConflictRequiresCascade(entity, entity_id, message=message, details=details)
    if status >= 500:
        raise TransientGatewayError(message, status_code=status)
    raise GatewayRejectedError(message, status_code=status, details=details)


# ═══════════════════════════════════════════════════════════════════════════
# КОЛЛЕКЦИЯ
# ═══════════════════════════════════════════════════════════════════════════


class HttpCollection:
    """CRUD одной коллекции поверх общего ``httpx.AsyncClient``."""

    def __init__(self, gateway: "HttpGateway", collection: Collection) -> None:
        self._gateway = gateway
        self.collection = collection
        self.model = COLLECTION_MODELS[collection]
        self._base = f"{API_PREFIX}/{collection.value}"

    def _parse(self, item: Any) -> Any:
        return self.model.model_validate(item)

    async def list(self, query: ListQuery) -> Page:
        data = await self._gateway.request(
            "GET", self._base, params=query.to_params(), collection=self.collection,
        )
        if isinstance(data, list):
            return Page(content=[self._parse(i) for i in data], total_pages=1 if data else 0)
        page = Page.model_validate(data)
        page.content = [self._parse(i) for i in page.content]
        return page

    async def list_all(self) -> list[Any]:
        data = await self._gateway.request("GET", self._base, collection=self.collection)
        items = data.get("content", []) if isinstance(data, dict) else data
        return [self._parse(i) for i in items or []]

    async def get(self, entity_id: int) -> Any:
        data = await self._gateway.request(
            "GET", f"{self._base}/{entity_id}",
            collection=self.collection, entity_id=entity_id,
        )
        return self._parse(data)

    async def create(self, payload: dict[str, Any]) -> Any:
        data = await self._gateway.request(
            "POST", self._base, json=payload, collection=self.collection,
        )
        return self._parse(data)

    async def update(self, entity_id: int, payload: dict[str, Any]) -> Any:
        data = await self._gateway.request(
            "PUT", f"{self._base}/{entity_id}", json=payload,
            collection=self.collection, entity_id=entity_id,
        )
        return self._parse(data)

    async def delete(self, entity_id: int, *, cascade: bool = False) -> None:
        await self._gateway.request(
            "DELETE", f"{self._base}/{entity_id}",
            params={"cascadeDelete": "true" if cascade else "false"},
            collection=self.collection, entity_id=entity_id,
        )
        logger.info("Deleted %s #%s (cascade=%s)", self.collection.value, entity_id, cascade)


# ═══════════════════════════════════════════════════════════════════════════
# GATEWAY
# ═══════════════════════════════════════════════════════════════════════════


class HttpGateway:
    """
    HTTP-реализация Remote Resource Gateway.

    Использование::

        async with HttpGateway() as gateway:
            page = await gateway.organizations.list(ListQuery(page=0))
    """

    def __init__(
        self,
        settings: RegistrySettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if self._settings.api_token:
            headers["Authorization"] = f"Bearer {self._settings.api_token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.gateway_url,
            headers=headers,
            timeout=self._settings.request_timeout,
        )
        self._collections = {c: HttpCollection(self, c) for c in Collection}

    @property
    def organizations(self) -> HttpCollection:
        return self._collections[Collection.ORGANIZATIONS]

    @property
    def coordinates(self) -> HttpCollection:
        return self._collections[Collection.COORDINATES]

    @property
    def addresses(self) -> HttpCollection:
        return self._collections[Collection.ADDRESSES]

    @property
    def locations(self) -> HttpCollection:
        return self._collections[Collection.LOCATIONS]

    @property
    def imports(self) -> HttpCollection:
        return self._collections[Collection.IMPORTS]

    def collection(self, collection: Collection) -> HttpCollection:
        return self._collections[Collection(collection)]

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        collection: Collection | None = None,
        entity_id: Any = None,
    ) -> Any:
        """Выполняет запрос и возвращает JSON-тело (``None`` для пустого ответа)."""
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            logger.warning("Gateway %s %s failed: %s", method, path, exc)
            raise TransientGatewayError(f"Gateway unavailable: {exc}") from exc

        raise_for_response(
            response,
            collection=collection,
            entity_id=entity_id,
            cascade_code=self._settings.cascade_conflict_code,
        )
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
