"""
orgregistry/models/common.py — Базовые типы домена реестра.

RegistryBase задаёт общий формат обмена с Gateway: snake_case в Python,
camelCase в JSON (``employees_count`` ↔ ``employeesCount``).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orgregistry.models.enums import SortDirection


class RegistryBase(BaseModel):
    """Базовая Pydantic-модель для сущностей и схем реестра."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ListQuery(RegistryBase):
    """Параметры запроса страницы коллекции."""

    page: int = Field(default=0, ge=0)
    size: int = Field(default=10, ge=1)
    sort: str = "id"
    dir: SortDirection = SortDirection.ASC
    search: str | None = None
    search_field: str | None = None

    def to_params(self) -> dict[str, Any]:
        """Query-параметры HTTP-запроса (пустой поиск не передаётся)."""
        params: dict[str, Any] = {
            "page": self.page,
            "size": self.size,
            "sort": self.sort,
            "dir": self.dir.value,
        }
        if self.search:
            params["search"] = self.search
            params["searchField"] = self.search_field or "name"
        return params


class Page(RegistryBase):
    """Страница коллекции: ``{content, totalPages}``."""

    content: list[Any] = Field(default_factory=list)
    total_pages: int = 0
