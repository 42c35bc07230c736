"""
Error taxonomy for the world simulation.

Threshold breaches (death, eviction, condemnation, shutdown, decline,
unrest) are not errors: they are deterministic transitions recorded as
events.  Everything here is raised *before* state is mutated, or causes the
surrounding tick to roll back.
"""

from __future__ import annotations


class WorldSimError(Exception):
    """Base class for all simulation errors."""


class ValidationError(WorldSimError, ValueError):
    """Malformed request (bad action, bad rate, paused world).

    Raised before any mutation; the world is left untouched.
    """


class UnknownEntityError(ValidationError, LookupError):
    """An id that does not address any entity in the world."""

    def __init__(self, kind: str, entity_id: int):
        super().__init__(f"Unknown {kind} id {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class ConcurrencyConflict(WorldSimError):
    """Two advances raced on one world.

    Transient and retry-safe: nothing was applied.
    """


class StorageUnavailable(WorldSimError):
    """The persistence collaborator could not be reached.

    The whole tick aborts and is rolled back.
    """
