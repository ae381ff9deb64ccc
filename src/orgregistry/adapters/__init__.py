"""
orgregistry.adapters — Адаптеры внешних систем (Gateway реестра).
"""

from orgregistry.adapters.gateway import CollectionGateway, RegistryGateway  # noqa: F401
from orgregistry.adapters.http_gateway import HttpCollection, HttpGateway  # noqa: F401
