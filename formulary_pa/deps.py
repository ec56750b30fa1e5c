"""
Request-scoped dependencies. Everything is constructed once in create_app()
and hung off app.state so tests can hand in their own doubles.
"""

from fastapi import Request

from formulary_pa.seed import StaticSeedProvider
from formulary_pa.services.pa_analyzer import PAAnalyzer
from formulary_pa.storage.base import FormularyStorage


def get_storage(request: Request) -> FormularyStorage:
    return request.app.state.storage


def get_analyzer(request: Request) -> PAAnalyzer:
    return request.app.state.analyzer


def get_seed_provider(request: Request) -> StaticSeedProvider:
    return request.app.state.seed_provider
