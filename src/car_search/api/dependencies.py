"""Dependency wiring for FastAPI endpoints."""

from __future__ import annotations

from functools import lru_cache

from fastapi import FastAPI

from car_search.domain.ports.availability_api import AvailabilityApiProtocol
from car_search.infrastructure.availability_http_client import AvailabilityHttpClient
from car_search.infrastructure.search_session_manager import SearchSessionManager


@lru_cache(maxsize=1)
def get_availability_api() -> AvailabilityApiProtocol:
    """Return HTTP transport for the availability backend (singleton)."""
    return AvailabilityHttpClient()


@lru_cache(maxsize=1)
def get_search_manager() -> SearchSessionManager:
    """Return search session manager (singleton)."""
    return SearchSessionManager(api=get_availability_api())


async def close_search_manager(app: FastAPI) -> None:
    """Stop running searches on shutdown and drop cached singletons."""
    provider = app.dependency_overrides.get(get_search_manager)
    if provider is None and get_search_manager.cache_info().currsize == 0:
        return

    manager = provider() if provider is not None else get_search_manager()
    await manager.aclose()
    get_search_manager.cache_clear()
    get_availability_api.cache_clear()
