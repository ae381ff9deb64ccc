"""
═══════════════════════════════════════════════════════════════════════════════
Registry — In-Memory хранилище Gateway (для локальной разработки и тестов)
═══════════════════════════════════════════════════════════════════════════════

Хранит записи коллекций в нормализованном виде (организация ссылается на
координаты и адреса по id, адрес — на город) и отдаёт их развёрнутыми,
в формате ответов Gateway (camelCase).

Правила каскада:
    • coordinates → organizations
    • addresses   → organizations (почтовый или юридический адрес)
    • locations   → addresses → organizations

Удаление записи, на которую есть ссылки, без ``cascade=True`` бросает
ConflictRequiresCascade — dev-сервер отвечает 409 с маркером каскада.
Данные теряются при перезапуске.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from itertools import count
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from orgregistry.exceptions import (
    ConflictRequiresCascade,
    GatewayRejectedError,
    NotFoundError,
)
from orgregistry.models import (
    Collection,
    Coordinates,
    Location,
    OrganizationType,
    SortDirection,
)

logger = logging.getLogger(__name__)

Removed = list[tuple[Collection, int]]

_now = lambda: datetime.now(timezone.utc)  # noqa: E731


def _dig(row: dict[str, Any], dotted: str) -> Any:
    """Значение по пути ``postalAddress.town.name``; None, если пути нет."""
    value: Any = row
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _sort_key(field: str) -> Callable[[dict[str, Any]], tuple]:
    def key(row: dict[str, Any]) -> tuple:
        value = _dig(row, field)
        if isinstance(value, str):
            value = value.lower()
        return (value is None, value if value is not None else 0)
    return key


def _reject(message: str, details: dict | None = None) -> GatewayRejectedError:
    return GatewayRejectedError(message, status_code=400, details=details)


def _validated(model: type[BaseModel], data: Any, entity: str) -> dict[str, Any]:
    """Проверяет тело записи моделью и возвращает его в camelCase (без id)."""
    if not isinstance(data, dict):
        raise _reject(f"{entity}: ожидался объект")
    try:
        parsed = model.model_validate(data)
    except ValidationError as exc:
        raise _reject(
            f"{entity}: некорректные данные", {"errors": exc.errors(include_url=False, include_context=False)}
        ) from exc
    return parsed.model_dump(by_alias=True, exclude={"id"}, mode="json")


class MemoryRegistry:
    """In-memory реализация Gateway: CRUD, поиск, каскад и операции."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._rows: dict[Collection, dict[int, dict[str, Any]]] = {c: {} for c in Collection}
        self._ids: dict[Collection, count] = {c: count(1) for c in Collection}

    # ═══════════════════════════════════════════════════════════════════════
    # Развёртывание записей
    # ═══════════════════════════════════════════════════════════════════════

    def _row(self, collection: Collection, entity_id: int) -> dict[str, Any]:
        row = self._rows[collection].get(entity_id)
        if row is None:
            raise NotFoundError(collection.value, entity_id)
        return row

    def _expand(self, collection: Collection, row: dict[str, Any]) -> dict[str, Any]:
        if collection is Collection.ADDRESSES:
            town = self._rows[Collection.LOCATIONS].get(row.get("townId"))
            return {"id": row["id"], "zipCode": row.get("zipCode"), "town": dict(town) if town else None}
        if collection is Collection.ORGANIZATIONS:
            data = {k: v for k, v in row.items() if not k.endswith("Id")}
            coords = self._rows[Collection.COORDINATES].get(row.get("coordinatesId"))
            data["coordinates"] = dict(coords) if coords else None
            for slot in ("postalAddress", "officialAddress"):
                address = self._rows[Collection.ADDRESSES].get(row.get(f"{slot}Id"))
                data[slot] = self._expand(Collection.ADDRESSES, address) if address else None
            return data
        return dict(row)

    def _insert(self, collection: Collection, data: dict[str, Any]) -> dict[str, Any]:
        entity_id = next(self._ids[collection])
        row = {"id": entity_id, **data}
        self._rows[collection][entity_id] = row
        logger.info("Memory registry: created %s #%s", collection.value, entity_id)
        return row

    # ═══════════════════════════════════════════════════════════════════════
    # Чтение
    # ═══════════════════════════════════════════════════════════════════════

    async def list_page(
        self,
        collection: Collection,
        *,
        page: int = 0,
        size: int | None = None,
        sort: str = "id",
        direction: SortDirection = SortDirection.ASC,
        search: str | None = None,
        search_field: str = "name",
    ) -> dict[str, Any]:
        """
        Страница коллекции ``{content, totalPages}``.

        Поиск — регистронезависимое вхождение подстроки в поле
        ``search_field`` (допускается путь через точку). ``size=None``
        отдаёт всю коллекцию одной страницей.
        """
        rows = [self._expand(collection, r) for r in self._rows[collection].values()]
        if search:
            needle = search.strip().lower()
            rows = [r for r in rows if needle in str(_dig(r, search_field) or "").lower()]
        rows.sort(key=_sort_key(sort), reverse=direction is SortDirection.DESC)

        if size is None:
            return {"content": rows, "totalPages": 1 if rows else 0}
        total_pages = math.ceil(len(rows) / size)
        start = page * size
        return {"content": rows[start:start + size], "totalPages": total_pages}

    async def get(self, collection: Collection, entity_id: int) -> dict[str, Any]:
        return self._expand(collection, self._row(collection, entity_id))

    # ═══════════════════════════════════════════════════════════════════════
    # Запись
    # ═══════════════════════════════════════════════════════════════════════

    def _resolve(
        self,
        body: dict[str, Any],
        slot: str,
        collection: Collection,
        create: Callable[[Any], dict[str, Any]],
    ) -> int | None:
        """``{slot}Id`` — ссылка на существующую запись, ``{slot}`` — создание новой."""
        ref = body.get(f"{slot}Id")
        if ref is not None:
            if ref not in self._rows[collection]:
                raise _reject(f"{slot}: запись #{ref} не найдена", {"field": f"{slot}Id"})
            return ref
        inline = body.get(slot)
        if inline is None:
            return None
        return create(inline)["id"]

    def _create_coordinates(self, data: Any) -> dict[str, Any]:
        return self._insert(Collection.COORDINATES, _validated(Coordinates, data, "coordinates"))

    def _create_location(self, data: Any) -> dict[str, Any]:
        return self._insert(Collection.LOCATIONS, _validated(Location, data, "location"))

    def _address_fields(self, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise _reject("address: ожидался объект")
        zip_code = data.get("zipCode")
        if zip_code is not None and len(str(zip_code)) < 7:
            raise _reject("zipCode: минимум 7 символов", {"field": "zipCode"})
        town_id = self._resolve(data, "town", Collection.LOCATIONS, self._create_location)
        return {"zipCode": zip_code, "townId": town_id}

    def _create_address(self, data: Any) -> dict[str, Any]:
        return self._insert(Collection.ADDRESSES, self._address_fields(data))

    def _organization_fields(self, body: dict[str, Any]) -> dict[str, Any]:
        name = (body.get("name") or "").strip()
        if not name:
            raise _reject("name: обязательное поле", {"field": "name"})
        try:
            org_type = OrganizationType(body.get("type"))
        except ValueError:
            raise _reject("type: неизвестный тип организации", {"field": "type"}) from None
        employees = body.get("employeesCount", 0)
        if not isinstance(employees, int) or employees < 0:
            raise _reject("employeesCount: не может быть отрицательным", {"field": "employeesCount"})
        rating = body.get("rating")
        if rating is not None and (not isinstance(rating, (int, float)) or rating <= 0):
            raise _reject("rating: должен быть больше 0", {"field": "rating"})

        coordinates_id = self._resolve(body, "coordinates", Collection.COORDINATES, self._create_coordinates)
        if coordinates_id is None:
            raise _reject("coordinates: обязательное поле", {"field": "coordinates"})
        postal_id = self._resolve(body, "postalAddress", Collection.ADDRESSES, self._create_address)
        if body.get("reusePostalAddressAsOfficial"):
            official_id = postal_id
        else:
            official_id = self._resolve(body, "officialAddress", Collection.ADDRESSES, self._create_address)

        return {
            "name": name,
            "fullName": body.get("fullName"),
            "employeesCount": employees,
            "type": org_type.value,
            "rating": rating,
            "annualTurnover": body.get("annualTurnover"),
            "coordinatesId": coordinates_id,
            "postalAddressId": postal_id,
            "officialAddressId": official_id,
        }

    def _fields(self, collection: Collection, body: dict[str, Any]) -> dict[str, Any]:
        if collection is Collection.ORGANIZATIONS:
            return self._organization_fields(body)
        if collection is Collection.COORDINATES:
            return _validated(Coordinates, body, "coordinates")
        if collection is Collection.LOCATIONS:
            return _validated(Location, body, "location")
        if collection is Collection.ADDRESSES:
            return self._address_fields(body)
        raise _reject(f"{collection.value} is read-only")

    async def create(self, collection: Collection, body: dict[str, Any]) -> dict[str, Any]:
        fields = self._fields(collection, body)
        if collection is Collection.ORGANIZATIONS:
            fields["creationDate"] = _now().isoformat()
        return self._expand(collection, self._insert(collection, fields))

    async def update(self, collection: Collection, entity_id: int, body: dict[str, Any]) -> dict[str, Any]:
        row = self._row(collection, entity_id)
        row.update(self._fields(collection, body))
        logger.info("Memory registry: updated %s #%s", collection.value, entity_id)
        return self._expand(collection, row)

    # ═══════════════════════════════════════════════════════════════════════
    # Удаление и каскад
    # ═══════════════════════════════════════════════════════════════════════

    def _dependents(self, collection: Collection, entity_id: int) -> Removed:
        """Записи, удаляемые каскадом вместе с ``collection #entity_id``."""
        orgs = self._rows[Collection.ORGANIZATIONS].values()
        if collection is Collection.COORDINATES:
            return [(Collection.ORGANIZATIONS, o["id"]) for o in orgs if o["coordinatesId"] == entity_id]
        if collection is Collection.ADDRESSES:
            return [
                (Collection.ORGANIZATIONS, o["id"]) for o in orgs
                if entity_id in (o["postalAddressId"], o["officialAddressId"])
            ]
        if collection is Collection.LOCATIONS:
            found: Removed = []
            for address in self._rows[Collection.ADDRESSES].values():
                if address["townId"] == entity_id:
                    found.append((Collection.ADDRESSES, address["id"]))
                    found.extend(
                        d for d in self._dependents(Collection.ADDRESSES, address["id"])
                        if d not in found
                    )
            return found
        return []

    async def delete(self, collection: Collection, entity_id: int, *, cascade: bool = False) -> Removed:
        """
        Удаляет запись. Возвращает все удалённые записи, включая каскадные.

        Raises:
            NotFoundError: записи нет.
            ConflictRequiresCascade: есть зависимые записи, а ``cascade`` выключен.
        """
        self._row(collection, entity_id)
        dependents = self._dependents(collection, entity_id)
        if dependents and not cascade:
            raise ConflictRequiresCascade(
                collection.value,
                entity_id,
                message=f"{collection.value} #{entity_id} используется другими записями",
                details={"dependents": len(dependents)},
            )
        removed: Removed = []
        for dep_collection, dep_id in dependents:
            if self._rows[dep_collection].pop(dep_id, None) is not None:
                removed.append((dep_collection, dep_id))
        del self._rows[collection][entity_id]
        removed.append((collection, entity_id))
        logger.info(
            "Memory registry: deleted %s #%s (cascade=%s, removed=%d)",
            collection.value, entity_id, cascade, len(removed),
        )
        return removed

    # ═══════════════════════════════════════════════════════════════════════
    # Специальные операции
    # ═══════════════════════════════════════════════════════════════════════

    async def minimal_coordinates(self) -> dict[str, Any]:
        """Организация с минимальными координатами (по x, затем по y)."""
        orgs = [self._expand(Collection.ORGANIZATIONS, o) for o in self._rows[Collection.ORGANIZATIONS].values()]
        orgs = [o for o in orgs if o["coordinates"]]
        if not orgs:
            raise NotFoundError(Collection.ORGANIZATIONS.value, "minimal-coordinates")
        return min(orgs, key=lambda o: (o["coordinates"]["x"], o["coordinates"]["y"], o["id"]))

    async def group_by_rating(self) -> dict[str, int]:
        groups: dict[str, int] = {}
        for org in self._rows[Collection.ORGANIZATIONS].values():
            if org["rating"] is None:
                continue
            key = str(float(org["rating"]))
            groups[key] = groups.get(key, 0) + 1
        return dict(sorted(groups.items(), key=lambda kv: float(kv[0])))

    async def count_by_type(self, org_type: OrganizationType) -> int:
        return sum(
            1 for o in self._rows[Collection.ORGANIZATIONS].values()
            if o["type"] == OrganizationType(org_type).value
        )

    async def dismiss_employees(self, organization_id: int) -> dict[str, Any]:
        row = self._row(Collection.ORGANIZATIONS, organization_id)
        dismissed = row["employeesCount"]
        row["employeesCount"] = 0
        return {"message": f"Уволено сотрудников: {dismissed}", "id": organization_id}

    async def absorb(self, absorbing_id: int, absorbed_id: int) -> dict[str, Any]:
        if absorbing_id == absorbed_id:
            raise _reject("Организация не может поглотить саму себя")
        absorbing = self._row(Collection.ORGANIZATIONS, absorbing_id)
        absorbed = self._row(Collection.ORGANIZATIONS, absorbed_id)
        absorbing["employeesCount"] += absorbed["employeesCount"]
        del self._rows[Collection.ORGANIZATIONS][absorbed_id]
        logger.info("Memory registry: #%s absorbed #%s", absorbing_id, absorbed_id)
        return {
            "message": f"Организация #{absorbed_id} поглощена организацией #{absorbing_id}",
            "id": absorbing_id,
        }


# ── Singleton для dev-сервера ─────────────────────────────────────────────

_registry: MemoryRegistry | None = None


def get_memory_registry() -> MemoryRegistry:
    global _registry
    if _registry is None:
        _registry = MemoryRegistry()
        logger.warning("🧠 Registry memory store ACTIVATED — all data is in-memory (lost on restart).")
    return _registry
