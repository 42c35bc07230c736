"""Read-only world queries: clock, calendar, persons, buildings, cities, events."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from worldsim.api.routers.control import _get_world
from worldsim.api.schemas import EventResponse, HourResponse

router = APIRouter()


@router.get("/{world_id}/hour", response_model=HourResponse)
def get_current_hour(world_id: str, request: Request):
    return {"current_hour": _get_world(request, world_id).get_current_hour()}


@router.get("/{world_id}/calendar")
def get_calendar(world_id: str, request: Request) -> dict[str, Any]:
    return _get_world(request, world_id).get_calendar()


@router.get("/{world_id}/persons")
def list_persons(world_id: str, request: Request) -> list[dict[str, Any]]:
    return _get_world(request, world_id).list_persons()


@router.get("/{world_id}/persons/{person_id}")
def get_individual_needs(world_id: str, person_id: int, request: Request) -> dict[str, Any]:
    return _get_world(request, world_id).get_individual_needs(person_id)


@router.get("/{world_id}/buildings/{building_id}")
def get_building_status(world_id: str, building_id: int, request: Request) -> dict[str, Any]:
    return _get_world(request, world_id).get_building_status(building_id)


@router.get("/{world_id}/cities/{city_id}")
def get_city_status(world_id: str, city_id: int, request: Request) -> dict[str, Any]:
    return _get_world(request, world_id).get_city_status(city_id)


@router.get("/{world_id}/events", response_model=list[EventResponse])
def get_events(
    world_id: str,
    request: Request,
    entity_id: int | None = None,
    since_hour: int | None = None,
):
    return _get_world(request, world_id).get_events(entity_id, since_hour)
