"""
orgregistry/api/operations.py — Специальные операции над организациями.
"""

from fastapi import APIRouter, Depends, Query

from orgregistry import events
from orgregistry.dependencies import get_registry
from orgregistry.memory_store import MemoryRegistry
from orgregistry.models import Collection, OrganizationType

router = APIRouter(prefix="/operations", tags=["operations"])


@router.get("/minimal-coordinates", summary="Организация с минимальными координатами")
async def minimal_coordinates(registry: MemoryRegistry = Depends(get_registry)):
    return await registry.minimal_coordinates()


@router.get("/group-by-rating", summary="Количество организаций по рейтингу")
async def group_by_rating(registry: MemoryRegistry = Depends(get_registry)):
    return await registry.group_by_rating()


@router.get("/count-by-type", summary="Количество организаций заданного типа")
async def count_by_type(
    org_type: OrganizationType = Query(..., alias="type"),
    registry: MemoryRegistry = Depends(get_registry),
):
    return {"type": org_type.value, "count": await registry.count_by_type(org_type)}


@router.post("/dismiss-employees", summary="Уволить всех сотрудников организации")
async def dismiss_employees(
    organization_id: int = Query(..., alias="organizationId"),
    registry: MemoryRegistry = Depends(get_registry),
):
    result = await registry.dismiss_employees(organization_id)
    await events.emit_changed(Collection.ORGANIZATIONS.value, "updated", organization_id)
    return result


@router.post("/absorb", summary="Поглощение организации")
async def absorb(
    absorbing_id: int = Query(..., alias="absorbingId"),
    absorbed_id: int = Query(..., alias="absorbedId"),
    registry: MemoryRegistry = Depends(get_registry),
):
    result = await registry.absorb(absorbing_id, absorbed_id)
    await events.emit_changed(Collection.ORGANIZATIONS.value, "absorbed", [absorbing_id, absorbed_id])
    return result
