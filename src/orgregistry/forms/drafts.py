"""
orgregistry/forms/drafts.py — Граф формы организации (Form Graph).

Каждый слот вложенной сущности находится ровно в одном состоянии:
    • Unset      — ничего не выбрано и не введено
    • Reference  — выбрана существующая запись по id
    • *Draft     — новая запись вводится inline

Поля черновиков принимают «сырые» значения из UI (строки, числа, None);
проверка и приведение типов выполняются компилятором.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import Field

from orgregistry.models import Address, Location, Organization, RegistryBase

RawValue = Union[int, float, str, None]


@dataclass(frozen=True)
class FieldPath:
    """Путь поля формы; строковое представление — через точку."""

    parts: tuple[str, ...] = ()

    @classmethod
    def parse(cls, dotted: str) -> "FieldPath":
        return cls(tuple(p for p in dotted.split(".") if p))

    def child(self, name: str) -> "FieldPath":
        return FieldPath(self.parts + (name,))

    def sibling_id(self) -> "FieldPath":
        """``postalAddress.town`` → ``postalAddress.townId``."""
        if not self.parts:
            return FieldPath(("id",))
        return FieldPath(self.parts[:-1] + (f"{self.parts[-1]}Id",))

    def __str__(self) -> str:
        return ".".join(self.parts)


ROOT = FieldPath()


class Unset(RegistryBase):
    kind: Literal["unset"] = "unset"


class Reference(RegistryBase):
    kind: Literal["reference"] = "reference"
    id: int


class CoordinatesDraft(RegistryBase):
    kind: Literal["inline"] = "inline"
    x: RawValue = None
    y: RawValue = None


class LocationDraft(RegistryBase):
    kind: Literal["inline"] = "inline"
    name: str | None = None
    x: RawValue = None
    y: RawValue = None
    z: RawValue = None


LocationSlot = Annotated[Union[Unset, Reference, LocationDraft], Field(discriminator="kind")]


class AddressDraft(RegistryBase):
    kind: Literal["inline"] = "inline"
    zip_code: str | None = None
    town: LocationSlot = Field(default_factory=Unset)


CoordinatesSlot = Annotated[
    Union[Unset, Reference, CoordinatesDraft], Field(discriminator="kind")
]
AddressSlot = Annotated[Union[Unset, Reference, AddressDraft], Field(discriminator="kind")]


class OrganizationDraft(RegistryBase):
    """Черновик организации до валидации."""

    name: str | None = None
    full_name: str | None = None
    employees_count: RawValue = None
    type: str | None = None
    rating: RawValue = None
    annual_turnover: RawValue = None
    coordinates: CoordinatesSlot = Field(default_factory=Unset)
    postal_address: AddressSlot = Field(default_factory=Unset)
    official_address: AddressSlot = Field(default_factory=Unset)
    reuse_postal_address_as_official: bool = False


# ═══════════════════════════════════════════════════════════════════════════
# ЧЕРНОВИК ИЗ СУЩЕСТВУЮЩЕЙ ОРГАНИЗАЦИИ (форма редактирования)
# ═══════════════════════════════════════════════════════════════════════════


def _location_slot(town: Location | None, inline: bool):
    if town is None:
        return Unset()
    if not inline and town.id is not None:
        return Reference(id=town.id)
    return LocationDraft(name=town.name, x=town.x, y=town.y, z=town.z)


def _address_slot(address: Address | None, inline: bool):
    if address is None:
        return Unset()
    if not inline and address.id is not None:
        return Reference(id=address.id)
    return AddressDraft(zip_code=address.zip_code, town=_location_slot(address.town, inline))


def draft_from_organization(org: Organization, *, inline: bool = False) -> OrganizationDraft:
    """
    Строит черновик формы редактирования из загруженной организации.

    По умолчанию вложенные сущности подставляются ссылками на id (правка
    не порождает новых строк справочников); ``inline=True`` копирует
    все поля вложенных сущностей.
    """
    coordinates = org.coordinates
    if coordinates is None:
        coordinates_slot = Unset()
    elif not inline and coordinates.id is not None:
        coordinates_slot = Reference(id=coordinates.id)
    else:
        coordinates_slot = CoordinatesDraft(x=coordinates.x, y=coordinates.y)

    return OrganizationDraft(
        name=org.name,
        full_name=org.full_name,
        employees_count=org.employees_count,
        type=org.type.value if org.type else None,
        rating=org.rating,
        annual_turnover=org.annual_turnover,
        coordinates=coordinates_slot,
        postal_address=_address_slot(org.postal_address, inline),
        official_address=_address_slot(org.official_address, inline),
    )
