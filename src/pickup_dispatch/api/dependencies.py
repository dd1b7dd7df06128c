"""Service wiring shared by the routers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status
from supabase import Client

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import InfrastructureError
from ..models.domain import Actor, Role
from ..persistence import memory, supabase_store
from ..services.assignment.coordinator import AssignmentCoordinator
from ..services.collections.lifecycle import CollectionRequestLifecycle
from ..services.collections.service import CollectionService
from ..services.fleet.service import VehicleService
from ..services.notifications import BackgroundSink, DirectoryRecipientResolver, EventPublisher, LoggingSink, WebhookSink
from ..services.routing.service import RouteService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    collections: CollectionService
    routes: RouteService
    vehicles: VehicleService
    assignments: AssignmentCoordinator
    publisher: EventPublisher
    storage_backend: str
    client: Optional[Client] = None


def build_sinks() -> list:
    sinks: list = [LoggingSink()]
    for url in (settings.notification_webhook_url, settings.analytics_webhook_url):
        if url:
            sinks.append(BackgroundSink(WebhookSink(url)))
    return sinks


def build_container(publisher: EventPublisher | None = None) -> ServiceContainer:
    publisher = publisher or EventPublisher(build_sinks())
    client = None

    if settings.storage_backend == "supabase":
        client = get_supabase_client()
        if client is None:
            raise InfrastructureError("Supabase storage selected but PICKUP_SUPABASE_URL/PICKUP_SUPABASE_KEY are not set.")
        requests = supabase_store.SupabaseRequestRepository(client)
        routes = supabase_store.SupabaseRouteRepository(client)
        vehicles = supabase_store.SupabaseVehicleRepository(client)
        bindings = supabase_store.SupabaseDriverVehicleBindings(client)
        users = supabase_store.SupabaseUserDirectory(client)
    else:
        requests = memory.InMemoryRequestRepository()
        routes = memory.InMemoryRouteRepository()
        vehicles = memory.InMemoryVehicleRepository()
        bindings = memory.InMemoryDriverVehicleBindings()
        users = (
            memory.InMemoryUserDirectory.from_file(settings.users_file)
            if settings.users_file
            else memory.InMemoryUserDirectory()
        )

    logger.info(f"Using {settings.storage_backend} storage backend")
    lifecycle = CollectionRequestLifecycle()
    return ServiceContainer(
        collections=CollectionService(requests, publisher, DirectoryRecipientResolver(users), lifecycle=lifecycle),
        routes=RouteService(routes, publisher),
        vehicles=VehicleService(vehicles, bindings),
        assignments=AssignmentCoordinator(users, vehicles, bindings, routes, requests, publisher, lifecycle=lifecycle),
        publisher=publisher,
        storage_backend=settings.storage_backend,
        client=client,
    )


@lru_cache()
def get_container() -> ServiceContainer:
    return build_container()


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """Caller identity as already validated by the upstream auth layer."""

    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id and X-User-Role headers are required.",
        )
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{x_user_role}'.",
        ) from exc
    return Actor(user_id=x_user_id, role=role)
