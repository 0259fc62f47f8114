"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state

Collaborators already present on app.state before startup (``database``,
``registry``, ``ephemeral``, ``guard``) are used instead of the defaults;
that is how tests swap in SQLite files, fake providers and fake stores.
"""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from loguru import logger

from content_resolver.config import settings
from content_resolver.database import Database
from content_resolver.handlers import CacheHandler, MaintenanceHandler, SearchHandler
from content_resolver.logging_config import configure_logging
from content_resolver.repositories import HipolabsProvider, RedisEphemeralStore, StaticProvider
from content_resolver.services import MaintenanceService, ProviderGuard, ProviderRegistry, SearchOrchestrator

_UNSET = object()

_STATE_KEYS = (
    "database",
    "registry",
    "ephemeral",
    "guard",
    "orchestrator",
    "maintenance",
    "search_handler",
    "cache_handler",
    "maintenance_handler",
)


def default_registry() -> ProviderRegistry:
    """Registry with the Hipolabs API and the static dataset."""
    registry = ProviderRegistry(default=settings.provider_default)
    registry.register(HipolabsProvider.create())
    registry.register(StaticProvider())
    return registry


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Check lifespan setup.")
    return value


def get_search_handler(request: Request) -> SearchHandler:
    """Dependency injection for SearchHandler from app.state."""
    return _from_state(request, "search_handler")


def get_cache_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state."""
    return _from_state(request, "cache_handler")


def get_maintenance_handler(request: Request) -> MaintenanceHandler:
    """Dependency injection for MaintenanceHandler from app.state."""
    return _from_state(request, "maintenance_handler")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state:
    1. Persistent store (schema created if missing) and optional Redis tier
    2. Provider registry and provider guard (rate limiter + retries)
    3. Services: SearchOrchestrator, MaintenanceService
    4. Handlers: search, cache, maintenance

    Args:
        app: The FastAPI application instance

    Yields:
        None

    Cleanup:
        Drains pending search logs, closes clients, removes everything from app.state
    """
    configure_logging()
    state = app.state

    database = getattr(state, "database", None) or Database.create()
    await database.create_all()

    ephemeral = getattr(state, "ephemeral", _UNSET)
    if ephemeral is _UNSET:
        ephemeral = RedisEphemeralStore.create()

    registry = getattr(state, "registry", None) or default_registry()
    guard = getattr(state, "guard", None) or ProviderGuard.create()

    orchestrator = SearchOrchestrator.create(database, registry, ephemeral=ephemeral, guard=guard)
    maintenance = MaintenanceService(orchestrator)

    state.database = database
    state.registry = registry
    state.ephemeral = ephemeral
    state.guard = guard
    state.orchestrator = orchestrator
    state.maintenance = maintenance
    state.search_handler = SearchHandler(orchestrator=orchestrator)
    state.cache_handler = CacheHandler(cache=orchestrator.cache, database=database)
    state.maintenance_handler = MaintenanceHandler(maintenance=maintenance, search_logs=orchestrator.search_logs)

    logger.info(
        f"Content resolver ready: providers={registry.list_names()} default={registry.default_name} "
        f"tier1={'on' if ephemeral is not None else 'off'} store={database.dialect_name}"
    )

    yield

    await orchestrator.drain()
    for provider in registry.all():
        close = getattr(provider, "close", None)
        if close is not None:
            await close()
    close_ephemeral = getattr(ephemeral, "close", None)
    if close_ephemeral is not None:
        await close_ephemeral()
    await database.dispose()

    for key in _STATE_KEYS:
        if hasattr(state, key):
            delattr(state, key)
    logger.info("Content resolver shut down")


# Type aliases for cleaner dependency injection
SearchHandlerDep = Annotated[SearchHandler, Depends(get_search_handler)]
CacheHandlerDep = Annotated[CacheHandler, Depends(get_cache_handler)]
MaintenanceHandlerDep = Annotated[MaintenanceHandler, Depends(get_maintenance_handler)]
