"""
Append-only world event log.

Every movement, action, achievement and threshold breach is recorded as an
``Event`` keyed by ``(entity_id, hour)`` so narrative consumers can ask
"what happened, where, to whom" for any entity and time range.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    MOVEMENT = "movement"
    WORK = "work"
    SOCIAL = "social"
    BUILDING = "building"
    NEED_FULFILLMENT = "need_fulfillment"
    ACHIEVEMENT = "achievement"
    THRESHOLD = "threshold"


@dataclass
class Event:
    """One recorded occurrence."""

    hour: int
    entity_id: int
    entity_type: str  # person | building | city
    kind: EventKind
    description: str
    location_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "kind": self.kind.value,
            "description": self.description,
            "location_id": self.location_id,
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Event:
        return cls(
            hour=d["hour"],
            entity_id=d["entity_id"],
            entity_type=d["entity_type"],
            kind=EventKind(d["kind"]),
            description=d["description"],
            location_id=d.get("location_id"),
            data=dict(d.get("data", {})),
        )


class EventLog:
    """Events in hour order with a per-entity index."""

    def __init__(self, events: list[Event] | None = None):
        self._events: list[Event] = []
        self._by_entity: dict[int, list[int]] = {}
        for event in events or []:
            self.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)

    def append(self, event: Event) -> Event:
        if self._events and event.hour < self._events[-1].hour:
            raise ValueError(
                f"Event at hour {event.hour} precedes the log tail "
                f"(hour {self._events[-1].hour})"
            )
        self._by_entity.setdefault(event.entity_id, []).append(len(self._events))
        self._events.append(event)
        return event

    def truncate(self, length: int) -> None:
        """Drop every event appended after the log had *length* entries."""
        if length >= len(self._events):
            return
        for entity_id in {e.entity_id for e in self._events[length:]}:
            positions = self._by_entity[entity_id]
            while positions and positions[-1] >= length:
                positions.pop()
            if not positions:
                del self._by_entity[entity_id]
        del self._events[length:]

    def query(
        self,
        entity_id: int | None = None,
        since_hour: int | None = None,
        kind: EventKind | None = None,
    ) -> list[Event]:
        """Events for *entity_id* (or all) at or after *since_hour*."""
        if entity_id is None:
            candidates = self._events
            if since_hour is not None:
                hours = [e.hour for e in candidates]
                candidates = candidates[bisect_left(hours, since_hour):]
        else:
            candidates = [self._events[i] for i in self._by_entity.get(entity_id, [])]
            if since_hour is not None:
                candidates = [e for e in candidates if e.hour >= since_hour]
        if kind is not None:
            candidates = [e for e in candidates if e.kind == kind]
        return list(candidates)

    def to_list(self, start: int = 0) -> list[dict[str, Any]]:
        """Serialized events from position *start* on."""
        return [e.to_dict() for e in self._events[start:]]

    @classmethod
    def from_list(cls, items: list[dict[str, Any]]) -> EventLog:
        return cls([Event.from_dict(d) for d in items])
