"""
orgregistry/models/organization.py — Сущности реестра в формате Gateway.

Organization ссылается на разделяемые Coordinates и Address,
Address ссылается на Location (город).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from orgregistry.models.common import RegistryBase
from orgregistry.models.enums import ImportStatus, OrganizationType


class Coordinates(RegistryBase):
    """Координаты. Могут разделяться несколькими организациями."""
    id: int | None = None
    x: int
    y: int

    @property
    def label(self) -> str:
        return f"X: {self.x}, Y: {self.y}"


class Location(RegistryBase):
    """Город (Location)."""
    id: int | None = None
    name: str = Field(..., min_length=1)
    x: int
    y: int
    z: float

    @property
    def label(self) -> str:
        return self.name


class Address(RegistryBase):
    """Адрес: индекс + город."""
    id: int | None = None
    zip_code: str | None = None
    town: Location | None = None

    @property
    def label(self) -> str:
        town = self.town.name if self.town else "—"
        return f"{self.zip_code or '—'} - {town}"


class Organization(RegistryBase):
    """Организация."""
    id: int
    name: str
    full_name: str | None = None
    employees_count: int = Field(default=0, ge=0)
    type: OrganizationType | None = None
    rating: float | None = None
    annual_turnover: float | None = None
    creation_date: datetime | None = None
    coordinates: Coordinates | None = None
    postal_address: Address | None = None
    official_address: Address | None = None


class ImportOperation(RegistryBase):
    """Запись истории импорта."""
    id: int
    status: ImportStatus
    added_count: int | None = None
    username: str | None = None
    created_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None

    @property
    def in_progress(self) -> bool:
        return self.status is ImportStatus.IN_PROGRESS
