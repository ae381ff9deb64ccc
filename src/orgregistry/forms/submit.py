"""
orgregistry/forms/submit.py — Отправка форм: compile → create/update → invalidate.

Ошибки валидации в сеть не уходят. 404 при сохранении существующей
записи означает, что её удалили конкурентно: решение о редиректе
принимает DeletionGuard формы.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from orgregistry.adapters.gateway import CollectionGateway
from orgregistry.exceptions import FormValidationError, NotFoundError, RegistryError
from orgregistry.forms.compiler import FormCompiler
from orgregistry.forms.drafts import (
    AddressDraft,
    CoordinatesDraft,
    LocationDraft,
    OrganizationDraft,
)
from orgregistry.guard import DeletionGuard
from orgregistry.models import CASCADE_DEPENDENTS, Collection
from orgregistry.sync.cache import QueryCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    entity: Any = None
    error: RegistryError | None = None
    redirected: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def field_path(self) -> str | None:
        """Путь поля для фокуса/прокрутки формы."""
        if isinstance(self.error, FormValidationError):
            return str(self.error.path)
        return None


class _Submitter:
    def __init__(
        self,
        gateway: CollectionGateway,
        cache: QueryCache,
        compiler: FormCompiler | None = None,
        *,
        entity_id: int | None = None,
        guard: DeletionGuard | None = None,
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._compiler = compiler or FormCompiler()
        self._entity_id = entity_id
        self._guard = guard

    @property
    def is_edit(self) -> bool:
        return self._entity_id is not None

    async def _save(self, body: dict[str, Any], touched: set[Collection]) -> SubmitResult:
        collection = Collection(self._gateway.collection)
        try:
            if self._entity_id is None:
                entity = await self._gateway.create(body)
            else:
                entity = await self._gateway.update(self._entity_id, body)
        except NotFoundError as exc:
            logger.warning("%s #%s vanished before save", collection.value, self._entity_id)
            if self._guard is not None:
                self._guard.report_not_found(exc)
            return SubmitResult(
                error=exc, redirected=bool(self._guard and self._guard.redirected)
            )
        except RegistryError as exc:
            logger.warning("Saving %s failed: %s", collection.value, exc.message)
            return SubmitResult(error=exc)

        self._cache.invalidate(collection, *sorted(touched, key=lambda c: c.value))
        return SubmitResult(entity=entity)


class OrganizationFormSubmitter(_Submitter):
    """Сохранение формы организации."""

    async def submit(self, draft: OrganizationDraft) -> SubmitResult:
        try:
            payload = self._compiler.compile(draft)
        except FormValidationError as exc:
            return SubmitResult(error=exc)
        return await self._save(payload.to_json(), payload.created_collections)


class ReferenceFormSubmitter(_Submitter):
    """Сохранение формы справочника (координаты, адрес, город)."""

    async def submit(self, draft: CoordinatesDraft | AddressDraft | LocationDraft) -> SubmitResult:
        collection = Collection(self._gateway.collection)
        try:
            if collection is Collection.COORDINATES:
                body = self._compiler.compile_coordinates(draft)
            elif collection is Collection.ADDRESSES:
                body = self._compiler.compile_address(draft)
            elif collection is Collection.LOCATIONS:
                body = self._compiler.compile_location(draft)
            else:
                raise ValueError(f"{collection.value} has no reference form")
        except FormValidationError as exc:
            return SubmitResult(error=exc)

        touched = set(CASCADE_DEPENDENTS[collection]) if self.is_edit else set()
        if collection is Collection.ADDRESSES and "town" in body:
            touched.add(Collection.LOCATIONS)
        return await self._save(body, touched)
