"""
orgregistry — клиент реестра организаций.

Синхронизация списков (поиск, сортировка, пагинация, polling, push),
компиляция вложенных форм организации и защита от конкурентного удаления.
"""

__version__ = "0.3.0"
