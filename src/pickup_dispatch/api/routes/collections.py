"""Collection request endpoints."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import Actor, RequestStatus, Role
from ...persistence.base import RequestQuery
from ...schemas.collections import (
    AssignCollectionRequest,
    CancelCollectionRequest,
    CollectionListResponse,
    CollectionRequestResponse,
    CompleteCollectionRequest,
    CreateCollectionRequest,
    CustomerStatsResponse,
    RateCollectionRequest,
    RescheduleCollectionRequest,
    RescheduleResponse,
    UpdateCollectionRequest,
)
from ..dependencies import ServiceContainer, get_actor, get_container
from ..errors import translate_errors

router = APIRouter(prefix="/collections", tags=["collections"])


@router.post("", response_model=CollectionRequestResponse, status_code=status.HTTP_201_CREATED)
def create_collection_request(
    payload: CreateCollectionRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    customer_id = actor.user_id if actor.role is Role.CUSTOMER else payload.customer_id
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="customer_id is required when booking on behalf of a customer.",
        )
    with translate_errors("create collection request"):
        created = container.collections.create_request(payload.to_draft(customer_id))
    return CollectionRequestResponse.from_domain(created)


@router.get("", response_model=CollectionListResponse, status_code=status.HTTP_200_OK)
def list_collection_requests(
    customer_id: str | None = Query(default=None, description="Optional customer filter"),
    driver_id: str | None = Query(default=None, description="Optional assigned driver filter"),
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None, description="Earliest requested date (inclusive)"),
    end_date: date | None = Query(default=None, description="Latest requested date (inclusive)"),
    page: int = Query(default=1, ge=1, description="1-based page index for pagination"),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionListResponse:
    # Customers and drivers only ever see their own requests.
    if actor.role is Role.CUSTOMER:
        customer_id = actor.user_id
    elif actor.role is Role.DRIVER:
        driver_id = actor.user_id

    query = RequestQuery(
        customer_id=customer_id,
        driver_id=driver_id,
        statuses=(status_filter,) if status_filter else (),
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    with translate_errors("list collection requests"):
        items, total = container.collections.list_requests(query)
    return CollectionListResponse(
        items=[CollectionRequestResponse.from_domain(item) for item in items],
        page=page,
        limit=limit,
        total=total,
        has_next_page=query.offset + len(items) < total,
    )


@router.get("/upcoming", response_model=List[CollectionRequestResponse], status_code=status.HTTP_200_OK)
def list_upcoming_pickups(
    customer_id: str | None = Query(default=None, description="Defaults to the calling customer"),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[CollectionRequestResponse]:
    target = actor.user_id if actor.role is Role.CUSTOMER or not customer_id else customer_id
    with translate_errors("list upcoming pickups"):
        items = container.collections.upcoming_pickups(target, limit=limit)
    return [CollectionRequestResponse.from_domain(item) for item in items]


@router.get("/stats", response_model=CustomerStatsResponse, status_code=status.HTTP_200_OK)
def get_customer_stats(
    customer_id: str | None = Query(default=None, description="Customer to summarise; customers always get their own"),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CustomerStatsResponse:
    if actor.role is Role.CUSTOMER:
        customer_id = actor.user_id
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="customer_id is required.",
        )
    with translate_errors("load customer statistics"):
        stats = container.collections.customer_stats(customer_id)
    return CustomerStatsResponse.from_domain(customer_id, stats)


@router.get("/{request_id}", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def get_collection_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("load collection request"):
        request = container.collections.get_request(request_id)
    return CollectionRequestResponse.from_domain(request)


@router.get("/{request_id}/chain", response_model=List[CollectionRequestResponse], status_code=status.HTTP_200_OK)
def get_reschedule_chain(
    request_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[CollectionRequestResponse]:
    with translate_errors("load reschedule chain"):
        chain = container.collections.reschedule_chain(request_id)
    return [CollectionRequestResponse.from_domain(item) for item in chain]


@router.put("/{request_id}", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def update_collection_request(
    request_id: str,
    payload: UpdateCollectionRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("update collection request"):
        updated = container.collections.modify(request_id, payload.to_changes())
    return CollectionRequestResponse.from_domain(updated)


@router.post("/{request_id}/confirm", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def confirm_collection_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("confirm collection request"):
        confirmed = container.collections.confirm(request_id)
    return CollectionRequestResponse.from_domain(confirmed)


@router.post("/{request_id}/assign", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def assign_collection_request(
    request_id: str,
    payload: AssignCollectionRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("assign collection request"):
        assigned = container.assignments.assign_request_to_driver(
            request_id,
            payload.driver_id,
            vehicle_id=payload.vehicle_id,
            route_id=payload.route_id,
        )
    return CollectionRequestResponse.from_domain(assigned)


@router.post("/{request_id}/start", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def start_collection(
    request_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("start collection"):
        started = container.collections.start(request_id)
    return CollectionRequestResponse.from_domain(started)


@router.post("/{request_id}/complete", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def complete_collection(
    request_id: str,
    payload: Optional[CompleteCollectionRequest] = None,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("complete collection"):
        completed = container.collections.complete(request_id, payload.to_domain() if payload else None)
    return CollectionRequestResponse.from_domain(completed)


@router.post("/{request_id}/cancel", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def cancel_collection_request(
    request_id: str,
    payload: Optional[CancelCollectionRequest] = None,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("cancel collection request"):
        cancelled = container.collections.cancel(request_id, payload.reason if payload else None)
    return CollectionRequestResponse.from_domain(cancelled)


@router.post("/{request_id}/reschedule", response_model=RescheduleResponse, status_code=status.HTTP_200_OK)
def reschedule_collection_request(
    request_id: str,
    payload: RescheduleCollectionRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RescheduleResponse:
    with translate_errors("reschedule collection request"):
        original, created = container.collections.reschedule(request_id, payload.new_date, payload.new_time)
    return RescheduleResponse(
        original=CollectionRequestResponse.from_domain(original),
        created=CollectionRequestResponse.from_domain(created),
    )


@router.post("/{request_id}/rating", response_model=CollectionRequestResponse, status_code=status.HTTP_200_OK)
def rate_collection(
    request_id: str,
    payload: RateCollectionRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> CollectionRequestResponse:
    with translate_errors("rate collection"):
        rated = container.collections.rate(request_id, payload.rating, payload.feedback)
    return CollectionRequestResponse.from_domain(rated)
