"""
orgregistry.models — Модели данных реестра.

Реэкспорт основных классов для удобства:
    from orgregistry.models import Organization, Collection
"""

from orgregistry.models.enums import (  # noqa: F401
    CASCADE_DEPENDENTS,
    Collection,
    ImportStatus,
    OrganizationType,
    SortDirection,
)
from orgregistry.models.common import ListQuery, Page, RegistryBase  # noqa: F401
from orgregistry.models.organization import (  # noqa: F401
    Address,
    Coordinates,
    ImportOperation,
    Location,
    Organization,
)
