"""
orgregistry/models/enums.py — Перечисления домена реестра.

Содержит enum'ы:
    • OrganizationType — тип организации (с русской подписью)
    • SortDirection — направление сортировки списка
    • Collection — коллекции Gateway и push-топики
    • ImportStatus — статус операции импорта
"""

from enum import Enum


class OrganizationType(str, Enum):
    """Тип организации."""
    COMMERCIAL = "COMMERCIAL"
    PUBLIC = "PUBLIC"
    GOVERNMENT = "GOVERNMENT"
    TRUST = "TRUST"
    PRIVATE_LIMITED_COMPANY = "PRIVATE_LIMITED_COMPANY"
    OPEN_JOINT_STOCK_COMPANY = "OPEN_JOINT_STOCK_COMPANY"

    @property
    def label(self) -> str:
        return ORGANIZATION_TYPE_LABELS[self]


ORGANIZATION_TYPE_LABELS: dict[OrganizationType, str] = {
    OrganizationType.COMMERCIAL: "Коммерческая",
    OrganizationType.PUBLIC: "Публичная",
    OrganizationType.GOVERNMENT: "Государственная",
    OrganizationType.TRUST: "Траст",
    OrganizationType.PRIVATE_LIMITED_COMPANY: "ООО",
    OrganizationType.OPEN_JOINT_STOCK_COMPANY: "ОАО",
}


class SortDirection(str, Enum):
    """Направление сортировки."""
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class Collection(str, Enum):
    """Коллекции Gateway. Значение совпадает с сегментом URL и push-топиком."""
    ORGANIZATIONS = "organizations"
    COORDINATES = "coordinates"
    ADDRESSES = "addresses"
    LOCATIONS = "locations"
    IMPORTS = "imports"


# Коллекции, записи которых удаляются каскадом вместе с записью ключа.
CASCADE_DEPENDENTS: dict[Collection, tuple[Collection, ...]] = {
    Collection.ORGANIZATIONS: (),
    Collection.COORDINATES: (Collection.ORGANIZATIONS,),
    Collection.ADDRESSES: (Collection.ORGANIZATIONS,),
    Collection.LOCATIONS: (Collection.ADDRESSES, Collection.ORGANIZATIONS),
    Collection.IMPORTS: (),
}


class ImportStatus(str, Enum):
    """Статус операции импорта."""
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
