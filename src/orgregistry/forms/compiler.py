"""
═══════════════════════════════════════════════════════════════════════════════
Registry — Компилятор формы организации (Nested-Entity Form Compiler)
═══════════════════════════════════════════════════════════════════════════════

Проверяет граф формы и собирает минимальный payload для create/update.
Каждый слот вложенной сущности в payload представлен ровно одним ключом:
``<slot>Id`` (ссылка) либо ``<slot>`` (inline-объект).

Порядок проверок (совпадает с порядком полей формы):
    1. Скалярные поля: name, employeesCount, type, rating, annualTurnover.
    2. Координаты: ссылка или целые x, y (+ опциональная политика границ).
    3. Почтовый адрес: ссылка или zipCode (пусто или ≥ 7) + город.
    4. Официальный адрес: «как почтовый», ссылка или inline.

``compile()`` возвращает payload или бросает ``FormValidationError`` с
первым ошибочным полем; ``validate()`` возвращает все ошибки.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from orgregistry.config import RegistrySettings, get_settings
from orgregistry.exceptions import FormValidationError
from orgregistry.forms.drafts import (
    ROOT,
    AddressDraft,
    CoordinatesDraft,
    FieldPath,
    LocationDraft,
    OrganizationDraft,
    Reference,
)
from orgregistry.models import Collection, OrganizationType
from orgregistry.references import ReferenceTable

logger = logging.getLogger(__name__)

MIN_ZIP_CODE_LENGTH = 7

MSG_REQUIRED = "Обязательное поле"
MSG_INTEGER = "Должно быть целым числом"
MSG_NUMBER = "Должно быть числом"
MSG_NEGATIVE = "Не может быть отрицательным"
MSG_POSITIVE = "Должно быть больше 0"
MSG_ZIP_CODE = f"Минимум {MIN_ZIP_CODE_LENGTH} символов"
MSG_UNKNOWN_REFERENCE = "Выбранная запись не найдена"


@dataclass(frozen=True)
class FieldError:
    path: FieldPath
    message: str


@dataclass(frozen=True)
class CoordinatesPolicy:
    """Необязательные границы координат (x ≤ x_max, y > y_min_exclusive)."""

    x_max: int | None = None
    y_min_exclusive: int | None = None

    @classmethod
    def from_settings(cls, settings: RegistrySettings | None = None) -> "CoordinatesPolicy":
        settings = settings or get_settings()
        return cls(settings.coordinates_x_max, settings.coordinates_y_min_exclusive)


@dataclass(frozen=True)
class Resolved:
    """Разрешённый слот: ссылка на id или inline-объект."""

    reference_id: int | None = None
    inline: dict[str, Any] | None = None

    def to_payload(self, slot: str) -> dict[str, Any]:
        if self.reference_id is not None:
            return {f"{slot}Id": self.reference_id}
        return {slot: self.inline}

    @property
    def creates(self) -> bool:
        return self.inline is not None


@dataclass(frozen=True)
class OrganizationPayload:
    """Скомпилированный payload организации."""

    name: str
    employees_count: int
    type: OrganizationType
    coordinates: Resolved
    postal_address: Resolved
    official_address: Resolved | None
    full_name: str | None = None
    rating: float | None = None
    annual_turnover: float | None = None
    reuse_postal_address_as_official: bool = False

    @property
    def official_resolution(self) -> Resolved:
        if self.reuse_postal_address_as_official:
            return self.postal_address
        assert self.official_address is not None
        return self.official_address

    @property
    def created_collections(self) -> set[Collection]:
        """Справочники, в которых payload создаёт новые записи."""
        created: set[Collection] = set()
        if self.coordinates.creates:
            created.add(Collection.COORDINATES)
        for address in (self.postal_address, self.official_address):
            if address is not None and address.creates:
                created.add(Collection.ADDRESSES)
                if "town" in address.inline:
                    created.add(Collection.LOCATIONS)
        return created

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": self.name,
            "employeesCount": self.employees_count,
            "type": self.type.value,
        }
        if self.full_name:
            body["fullName"] = self.full_name
        if self.rating is not None:
            body["rating"] = self.rating
        if self.annual_turnover is not None:
            body["annualTurnover"] = self.annual_turnover
        body.update(self.coordinates.to_payload("coordinates"))
        body.update(self.postal_address.to_payload("postalAddress"))
        if self.reuse_postal_address_as_official:
            body["reusePostalAddressAsOfficial"] = True
        else:
            body.update(self.official_resolution.to_payload("officialAddress"))
        return body


# ═══════════════════════════════════════════════════════════════════════════
# ПРИВЕДЕНИЕ ЗНАЧЕНИЙ
# ═══════════════════════════════════════════════════════════════════════════


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


# ═══════════════════════════════════════════════════════════════════════════
# ПРОХОД КОМПИЛЯЦИИ
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class _Pass:
    """Один проход по форме: копит ошибки и одновременно собирает payload."""

    policy: CoordinatesPolicy
    references: ReferenceTable | None
    errors: list[FieldError] = field(default_factory=list)

    def fail(self, path: FieldPath, message: str) -> None:
        self.errors.append(FieldError(path, message))

    # ── Скаляры ─────────────────────────────────────────────────────────

    def text(self, value: Any, path: FieldPath, message: str = MSG_REQUIRED) -> str | None:
        if _is_blank(value):
            self.fail(path, message)
            return None
        return str(value).strip()

    def integer(
        self, value: Any, path: FieldPath, *, minimum: int | None = None,
        below_minimum: str = MSG_NEGATIVE,
    ) -> int | None:
        if _is_blank(value):
            self.fail(path, MSG_REQUIRED)
            return None
        number = _as_int(value)
        if number is None:
            self.fail(path, MSG_INTEGER)
            return None
        if minimum is not None and number < minimum:
            self.fail(path, below_minimum)
            return None
        return number

    def number(self, value: Any, path: FieldPath, *, required: bool = True) -> float | None:
        if _is_blank(value):
            if required:
                self.fail(path, MSG_REQUIRED)
            return None
        number = _as_number(value)
        if number is None:
            self.fail(path, MSG_NUMBER)
        return number

    def positive(self, value: Any, path: FieldPath) -> float | None:
        number = self.number(value, path, required=False)
        if number is not None and number <= 0:
            self.fail(path, MSG_POSITIVE)
            return None
        return number

    def reference(self, kind: Collection, ref: Reference, path: FieldPath) -> Resolved:
        table = self.references
        if (
            table is not None
            and table.mounted
            and kind not in table.errors
            and not table.contains(kind, ref.id)
        ):
            self.fail(path.sibling_id(), MSG_UNKNOWN_REFERENCE)
        return Resolved(reference_id=ref.id)

    # ── Вложенные сущности ──────────────────────────────────────────────

    def coordinates(self, slot: Any, path: FieldPath) -> Resolved:
        if isinstance(slot, Reference):
            return self.reference(Collection.COORDINATES, slot, path)
        draft = slot if isinstance(slot, CoordinatesDraft) else CoordinatesDraft()
        x = self.integer(draft.x, path.child("x"))
        y = self.integer(draft.y, path.child("y"))
        if x is not None and self.policy.x_max is not None and x > self.policy.x_max:
            self.fail(path.child("x"), f"X должен быть ≤ {self.policy.x_max}")
        if (
            y is not None
            and self.policy.y_min_exclusive is not None
            and y <= self.policy.y_min_exclusive
        ):
            self.fail(path.child("y"), f"Y должен быть > {self.policy.y_min_exclusive}")
        return Resolved(inline={"x": x, "y": y})

    def location(self, slot: Any, path: FieldPath) -> Resolved:
        if isinstance(slot, Reference):
            return self.reference(Collection.LOCATIONS, slot, path)
        draft = slot if isinstance(slot, LocationDraft) else LocationDraft()
        name = self.text(draft.name, path.child("name"), "Название города обязательно")
        x = self.integer(draft.x, path.child("x"))
        y = self.integer(draft.y, path.child("y"))
        z = self.number(draft.z, path.child("z"))
        return Resolved(inline={"name": name, "x": x, "y": y, "z": z})

    def address(self, slot: Any, path: FieldPath) -> Resolved:
        if isinstance(slot, Reference):
            return self.reference(Collection.ADDRESSES, slot, path)
        draft = slot if isinstance(slot, AddressDraft) else AddressDraft()
        zip_code = None if _is_blank(draft.zip_code) else draft.zip_code.strip()
        if zip_code is not None and len(zip_code) < MIN_ZIP_CODE_LENGTH:
            self.fail(path.child("zipCode"), MSG_ZIP_CODE)
        town = self.location(draft.town, path.child("town"))
        body: dict[str, Any] = {"zipCode": zip_code}
        body.update(town.to_payload("town"))
        return Resolved(inline=body)


# ═══════════════════════════════════════════════════════════════════════════
# КОМПИЛЯТОР
# ═══════════════════════════════════════════════════════════════════════════


class FormCompiler:
    """
    Компилятор форм реестра.

    Использование::

        compiler = FormCompiler(references=table)
        payload = compiler.compile(draft)        # FormValidationError
        await gateway.organizations.create(payload.to_json())
    """

    def __init__(
        self,
        policy: CoordinatesPolicy | None = None,
        references: ReferenceTable | None = None,
    ) -> None:
        self.policy = policy or CoordinatesPolicy()
        self.references = references

    def _new_pass(self) -> _Pass:
        return _Pass(policy=self.policy, references=self.references)

    @staticmethod
    def _raise_first(run: _Pass) -> None:
        if run.errors:
            first = run.errors[0]
            logger.debug("Form rejected at %s: %s", first.path, first.message)
            raise FormValidationError(first.path, first.message)

    def _organization(self, draft: OrganizationDraft) -> tuple[_Pass, dict[str, Any]]:
        run = self._new_pass()
        name = run.text(draft.name, FieldPath(("name",)), "Название обязательно")
        employees = run.integer(draft.employees_count, FieldPath(("employeesCount",)), minimum=0)

        org_type: OrganizationType | None = None
        if _is_blank(draft.type):
            run.fail(FieldPath(("type",)), "Тип организации обязателен")
        else:
            try:
                org_type = OrganizationType(str(draft.type).strip())
            except ValueError:
                run.fail(FieldPath(("type",)), "Неизвестный тип организации")

        rating = run.positive(draft.rating, FieldPath(("rating",)))
        turnover = run.positive(draft.annual_turnover, FieldPath(("annualTurnover",)))

        coordinates = run.coordinates(draft.coordinates, FieldPath(("coordinates",)))
        postal = run.address(draft.postal_address, FieldPath(("postalAddress",)))
        official = None
        if not draft.reuse_postal_address_as_official:
            official = run.address(draft.official_address, FieldPath(("officialAddress",)))

        fields = {
            "name": name,
            "employees_count": employees,
            "type": org_type,
            "full_name": None if _is_blank(draft.full_name) else draft.full_name.strip(),
            "rating": rating,
            "annual_turnover": turnover,
            "coordinates": coordinates,
            "postal_address": postal,
            "official_address": official,
            "reuse_postal_address_as_official": draft.reuse_postal_address_as_official,
        }
        return run, fields

    def validate(self, draft: OrganizationDraft) -> list[FieldError]:
        """Все ошибки формы в порядке полей (для подсветки)."""
        run, _ = self._organization(draft)
        return run.errors

    def compile(self, draft: OrganizationDraft) -> OrganizationPayload:
        run, fields = self._organization(draft)
        self._raise_first(run)
        return OrganizationPayload(**fields)

    # ── Формы справочников ──────────────────────────────────────────────

    def compile_coordinates(self, draft: CoordinatesDraft) -> dict[str, Any]:
        run = self._new_pass()
        resolved = run.coordinates(draft, ROOT)
        self._raise_first(run)
        return resolved.inline

    def compile_location(self, draft: LocationDraft) -> dict[str, Any]:
        run = self._new_pass()
        resolved = run.location(draft, ROOT)
        self._raise_first(run)
        return resolved.inline

    def compile_address(self, draft: AddressDraft) -> dict[str, Any]:
        run = self._new_pass()
        resolved = run.address(draft, ROOT)
        self._raise_first(run)
        return resolved.inline


def compile_organization(
    draft: OrganizationDraft, references: ReferenceTable | None = None,
) -> OrganizationPayload:
    """Компиляция с политикой координат из настроек."""
    return FormCompiler(CoordinatesPolicy.from_settings(), references).compile(draft)


__all__ = [
    "CoordinatesPolicy",
    "FieldError",
    "FormCompiler",
    "OrganizationPayload",
    "Resolved",
    "compile_organization",
]
