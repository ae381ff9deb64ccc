"""
orgregistry/api/resources.py — CRUD-эндпоинты коллекций реестра.

    GET    /api/organizations/types
    GET    /api/{collection}               — страница или вся коллекция
    GET    /api/{collection}/{id}
    POST   /api/{collection}
    PUT    /api/{collection}/{id}
    DELETE /api/{collection}/{id}?cascadeDelete=true|false

После каждой мутации в push-топик коллекции публикуется событие;
при каскадном удалении — по событию на каждую затронутую коллекцию.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status

from orgregistry import events
from orgregistry.dependencies import get_registry, writable_collection
from orgregistry.memory_store import MemoryRegistry
from orgregistry.models import Collection, OrganizationType, SortDirection

router = APIRouter(tags=["collections"])


@router.get("/organizations/types", summary="Типы организаций")
async def organization_types():
    return [{"value": t.value, "label": t.label} for t in OrganizationType]


@router.get("/{collection}", summary="Страница коллекции")
async def list_collection(
    collection: Collection,
    page: int = Query(0, ge=0),
    size: int | None = Query(None, ge=1),
    sort: str = Query("id"),
    direction: SortDirection = Query(SortDirection.ASC, alias="dir"),
    search: str | None = Query(None),
    search_field: str = Query("name", alias="searchField"),
    registry: MemoryRegistry = Depends(get_registry),
):
    """Без ``size`` возвращается вся коллекция одной страницей."""
    return await registry.list_page(
        collection,
        page=page,
        size=size,
        sort=sort,
        direction=direction,
        search=search,
        search_field=search_field,
    )


@router.get("/{collection}/{entity_id}", summary="Запись коллекции")
async def get_entity(
    collection: Collection,
    entity_id: int,
    registry: MemoryRegistry = Depends(get_registry),
):
    return await registry.get(collection, entity_id)


@router.post("/{collection}", status_code=status.HTTP_201_CREATED, summary="Создать запись")
async def create_entity(
    collection: Collection = Depends(writable_collection),
    body: dict[str, Any] = Body(...),
    registry: MemoryRegistry = Depends(get_registry),
):
    entity = await registry.create(collection, body)
    await events.emit_changed(collection.value, "created", entity["id"])
    return entity


@router.put("/{collection}/{entity_id}", summary="Изменить запись")
async def update_entity(
    entity_id: int,
    collection: Collection = Depends(writable_collection),
    body: dict[str, Any] = Body(...),
    registry: MemoryRegistry = Depends(get_registry),
):
    entity = await registry.update(collection, entity_id, body)
    await events.emit_changed(collection.value, "updated", entity_id)
    return entity


@router.delete(
    "/{collection}/{entity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Удалить запись",
)
async def delete_entity(
    entity_id: int,
    collection: Collection = Depends(writable_collection),
    cascade_delete: bool = Query(False, alias="cascadeDelete"),
    registry: MemoryRegistry = Depends(get_registry),
):
    """409 CASCADE_REQUIRED, если на запись ссылаются, а ``cascadeDelete=false``."""
    removed = await registry.delete(collection, entity_id, cascade=cascade_delete)
    for touched in dict.fromkeys(c for c, _ in removed):
        ids = [i for c, i in removed if c is touched]
        await events.emit_changed(touched.value, "deleted", ids[0] if len(ids) == 1 else ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
