"""
Process-wide collaborators handed to the routers through ``Depends``.

Tests swap them with ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dutytrack.core.config import settings
from dutytrack.db.session import AsyncSessionLocal, get_db
from dutytrack.identity import AuthEvents, IdentityProvider
from dutytrack.location import WatchOptions
from dutytrack.services.duty import DutySessionRegistry
from dutytrack.services.leaves import LeaveService
from dutytrack.store.base import DocumentStore
from dutytrack.store.memory import InMemoryDocumentStore
from dutytrack.store.sql import SqlDocumentStore


@lru_cache
def get_store() -> DocumentStore:
    if settings.STORE_BACKEND == "memory":
        return InMemoryDocumentStore()
    return SqlDocumentStore(AsyncSessionLocal)


@lru_cache
def get_auth_events() -> AuthEvents:
    return AuthEvents()


@lru_cache
def get_duty_registry() -> DutySessionRegistry:
    registry = DutySessionRegistry(
        get_store(),
        watch_options=WatchOptions(
            time_interval_sec=settings.LOCATION_TIME_INTERVAL_SEC,
            distance_interval_m=settings.LOCATION_DISTANCE_INTERVAL_M,
        ),
    )
    get_auth_events().subscribe(registry.on_auth_state_change)
    return registry


async def get_identity(
    db: AsyncSession = Depends(get_db),
    events: AuthEvents = Depends(get_auth_events),
) -> IdentityProvider:
    return IdentityProvider(db, events)


async def get_leave_service(store: DocumentStore = Depends(get_store)) -> LeaveService:
    return LeaveService(store)
