"""
orgregistry/services/operations.py — Специальные операции над организациями.

    • find_minimal_coordinates — организация с минимальными координатами
    • group_by_rating          — количество организаций по рейтингам
    • count_by_type            — количество организаций заданного типа
    • dismiss_employees        — увольнение всех сотрудников (по списку id)
    • absorb                   — поглощение одной организации другой

Массовые операции не останавливаются на первой ошибке: результат по
каждой записи собирается в OperationReport (успехи + структурированные
ошибки), который UI показывает списком.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from orgregistry.adapters.gateway import RegistryGateway
from orgregistry.exceptions import RegistryError
from orgregistry.models import Collection, Organization, OrganizationType
from orgregistry.sync.cache import QueryCache

logger = logging.getLogger(__name__)

OPERATIONS_PREFIX = "/api/operations"

_RECORD_PREFIX = re.compile(r"Ошибка в записи #(\d+)")


# ═══════════════════════════════════════════════════════════════════════════
# ОТЧЁТ ОБ ОПЕРАЦИИ
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OperationSuccess:
    record: str
    message: str


@dataclass(frozen=True)
class OperationFailure:
    record: str
    code: str
    messages: list[str]


@dataclass
class OperationReport:
    operation: str
    successes: list[OperationSuccess] = field(default_factory=list)
    failures: list[OperationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def lines(self) -> list[str]:
        """Плоский список сообщений для показа пользователю."""
        result = [f"{s.record}: {s.message}" for s in self.successes]
        for failure in self.failures:
            result.extend(f"{failure.record}: {m}" for m in failure.messages)
        return result


def split_error_messages(raw: Any) -> list[str]:
    """
    Разбивает составное сообщение Gateway на отдельные пункты.

    ``"Ошибка в записи #3: name пустое; rating < 1"`` →
    ``["Ошибка в записи #3: name пустое", "Ошибка в записи #3: rating < 1"]``
    """
    if not raw:
        return []
    text = raw if isinstance(raw, str) else str(raw)
    parts = [p.strip() for p in re.split(r"[;,]", text) if p.strip()]
    if not parts:
        return [text]
    match = _RECORD_PREFIX.match(parts[0])
    if match:
        prefix = f"Ошибка в записи #{match.group(1)}"
        return [p if i == 0 else f"{prefix}: {p}" for i, p in enumerate(parts)]
    return parts


# ═══════════════════════════════════════════════════════════════════════════
# СЕРВИС
# ═══════════════════════════════════════════════════════════════════════════


class OperationsService:
    """Клиент эндпоинтов ``/api/operations``."""

    def __init__(self, gateway: RegistryGateway, cache: QueryCache | None = None) -> None:
        self._gateway = gateway
        self._cache = cache

    # ── Запросы ─────────────────────────────────────────────────────────

    async def find_minimal_coordinates(self) -> Organization:
        data = await self._gateway.request("GET", f"{OPERATIONS_PREFIX}/minimal-coordinates")
        return Organization.model_validate(data)

    async def group_by_rating(self) -> dict[float, int]:
        data = await self._gateway.request("GET", f"{OPERATIONS_PREFIX}/group-by-rating")
        return {float(rating): int(count) for rating, count in (data or {}).items()}

    async def count_by_type(self, org_type: OrganizationType | str) -> int:
        org_type = OrganizationType(org_type)
        data = await self._gateway.request(
            "GET", f"{OPERATIONS_PREFIX}/count-by-type", params={"type": org_type.value},
        )
        if isinstance(data, dict):
            return int(data.get("count", 0))
        return int(data or 0)

    # ── Массовые мутации ────────────────────────────────────────────────

    async def dismiss_employees(self, organization_ids: Iterable[int]) -> OperationReport:
        report = OperationReport("dismiss-employees")
        for org_id in organization_ids:
            await self._attempt(
                report,
                f"Организация #{org_id}",
                "POST",
                f"{OPERATIONS_PREFIX}/dismiss-employees",
                {"organizationId": org_id},
                "Сотрудники уволены",
            )
        self._invalidate(report)
        return report

    async def absorb(self, absorbing_id: int, absorbed_id: int) -> OperationReport:
        return await self.absorb_many([(absorbing_id, absorbed_id)])

    async def absorb_many(self, pairs: Iterable[tuple[int, int]]) -> OperationReport:
        report = OperationReport("absorb")
        for absorbing_id, absorbed_id in pairs:
            await self._attempt(
                report,
                f"#{absorbing_id} ← #{absorbed_id}",
                "POST",
                f"{OPERATIONS_PREFIX}/absorb",
                {"absorbingId": absorbing_id, "absorbedId": absorbed_id},
                "Организация поглощена",
            )
        self._invalidate(report)
        return report

    async def _attempt(
        self,
        report: OperationReport,
        record: str,
        method: str,
        path: str,
        params: dict[str, Any],
        default_message: str,
    ) -> None:
        try:
            data = await self._gateway.request(method, path, params=params)
        except RegistryError as exc:
            logger.warning("%s failed for %s: %s", report.operation, record, exc.message)
            report.failures.append(
                OperationFailure(record, exc.code, split_error_messages(exc.message))
            )
            return
        message = data.get("message") if isinstance(data, dict) else None
        report.successes.append(OperationSuccess(record, message or default_message))

    def _invalidate(self, report: OperationReport) -> None:
        if self._cache is not None and report.successes:
            self._cache.invalidate(Collection.ORGANIZATIONS)
