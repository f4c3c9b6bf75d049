"""Puertos del Core.

El orquestador solo conoce `RecordFetcher`; el cliente HTTP, el cache de
payloads y los stubs de tests lo implementan desde `adapters`.
"""
