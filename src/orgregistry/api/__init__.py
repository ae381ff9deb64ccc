"""
orgregistry.api — Роутеры dev-сервера Gateway.
"""
