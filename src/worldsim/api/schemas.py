"""
Pydantic models for API request/response validation.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any


# === Seeding ===

class BuildingSeed(BaseModel):
    kind: str
    name: str | None = None
    capacity: int = Field(default=10, ge=1)
    x: float = 0.0
    y: float = 0.0
    quality: float | None = Field(default=None, ge=-3.0, le=2.0)


class PersonSeed(BaseModel):
    name: str
    home: int | None = None
    workplace: int | None = None
    location: int | None = None
    role: str = "none"
    needs: dict[str, float] | None = None


class CitySeed(BaseModel):
    name: str
    buildings: list[BuildingSeed] = Field(default_factory=list)
    persons: list[PersonSeed] = Field(default_factory=list)


# === Worlds ===

class CreateWorldRequest(BaseModel):
    config: dict[str, Any] | None = None
    name: str | None = None
    cities: list[CitySeed] = Field(default_factory=list)


class WorldSummary(BaseModel):
    id: str
    name: str
    current_hour: int
    paused: bool
    population: int


# === Control ===

class SkipRequest(BaseModel):
    hours: int = Field(default=1, ge=1)


class TickRateRequest(BaseModel):
    rate: str | int


class CheckRequest(BaseModel):
    now_ms: int | None = None


class TickResponse(BaseModel):
    hour: int
    daily: bool
    weekly: bool
    actions: dict[str, str]
    events: int
    deaths: list[int]


class SkipResponse(BaseModel):
    hours: int
    current_hour: int
    events: int
    deaths: list[int]


class ToggleResponse(BaseModel):
    paused: bool


class CheckResponse(BaseModel):
    ticks_applied: int
    current_hour: int


class AutotickerResponse(BaseModel):
    enabled: bool
    interval_ms: int
    rate_name: str | None
    last_checked_ms: int | None
    next_due_ms: int | None
    version: int
    total_auto_ticks: int


class AutotickerStatusResponse(AutotickerResponse):
    paused: bool
    current_hour: int
    hours_behind: int
    ms_until_next: int | None


# === Queries ===

class HourResponse(BaseModel):
    current_hour: int


class EventResponse(BaseModel):
    hour: int
    entity_id: int
    entity_type: str
    kind: str
    description: str
    location_id: int | None
    data: dict[str, Any]
