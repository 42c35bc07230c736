"""World lifecycle and control endpoints (tick, skip, pause, autoticker)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from worldsim.api.schemas import (
    AutotickerResponse,
    AutotickerStatusResponse,
    CheckRequest,
    CheckResponse,
    CreateWorldRequest,
    SkipRequest,
    SkipResponse,
    TickRateRequest,
    TickResponse,
    ToggleResponse,
    WorldSummary,
)
from worldsim.core.config import SimulationConfig

router = APIRouter()


def _get_world(request: Request, world_id: str):
    mgr = request.app.state.world_manager
    try:
        return mgr.get_world(world_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"World '{world_id}' not found")


def _summary(sim) -> dict:
    return {
        "id": sim.world.world_id,
        "name": sim.config.world_name,
        "current_hour": sim.get_current_hour(),
        "paused": sim.world.paused,
        "population": len(sim.world.alive_persons()),
    }


@router.post("", response_model=WorldSummary)
def create_world(req: CreateWorldRequest, request: Request):
    mgr = request.app.state.world_manager
    config = SimulationConfig.from_dict(req.config) if req.config else SimulationConfig()
    if req.name:
        config.world_name = req.name
    seed = {"cities": [c.model_dump() for c in req.cities]}
    sim = mgr.create_world(config=config, seed=seed)
    return _summary(sim)


@router.get("", response_model=list[WorldSummary])
def list_worlds(request: Request):
    return request.app.state.world_manager.list_worlds()


@router.get("/{world_id}", response_model=WorldSummary)
def get_world(world_id: str, request: Request):
    return _summary(_get_world(request, world_id))


@router.delete("/{world_id}")
def delete_world(world_id: str, request: Request):
    mgr = request.app.state.world_manager
    try:
        mgr.delete_world(world_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"World '{world_id}' not found")
    return {"deleted": True}


@router.post("/{world_id}/tick", response_model=TickResponse)
def tick(world_id: str, request: Request):
    return _get_world(request, world_id).tick()


@router.post("/{world_id}/skip", response_model=SkipResponse)
def skip(world_id: str, req: SkipRequest, request: Request):
    return _get_world(request, world_id).skip(req.hours)


@router.post("/{world_id}/toggle", response_model=ToggleResponse)
def toggle(world_id: str, request: Request):
    sim = _get_world(request, world_id)
    paused = sim.toggle()
    request.app.state.world_manager.persist(sim)
    return {"paused": paused}


@router.post("/{world_id}/autoticker/start", response_model=AutotickerResponse)
def start_autoticker(world_id: str, request: Request):
    sim = _get_world(request, world_id)
    state = sim.start_autoticker()
    request.app.state.world_manager.persist(sim)
    return state


@router.post("/{world_id}/autoticker/stop", response_model=AutotickerResponse)
def stop_autoticker(world_id: str, request: Request):
    sim = _get_world(request, world_id)
    state = sim.stop_autoticker()
    request.app.state.world_manager.persist(sim)
    return state


@router.post("/{world_id}/autoticker/check", response_model=CheckResponse)
def check_autotick(world_id: str, request: Request, req: CheckRequest | None = None):
    sim = _get_world(request, world_id)
    ticks = sim.check_autotick(req.now_ms if req else None)
    return {"ticks_applied": ticks, "current_hour": sim.get_current_hour()}


@router.put("/{world_id}/autoticker/rate", response_model=AutotickerResponse)
def set_tick_rate(world_id: str, req: TickRateRequest, request: Request):
    sim = _get_world(request, world_id)
    state = sim.set_tick_rate(req.rate)
    request.app.state.world_manager.persist(sim)
    return state


@router.get("/{world_id}/autoticker", response_model=AutotickerStatusResponse)
def get_autoticker_status(world_id: str, request: Request):
    return _get_world(request, world_id).get_autoticker_status()
