"""
orgregistry.services — Сервисы поверх Gateway (специальные операции).
"""
