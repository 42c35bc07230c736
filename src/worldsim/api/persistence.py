"""
SQLite-backed world persistence.

Stores world metadata in columns for fast listing, and the world state
(entities, clock, autoticker) as a zlib-compressed JSON blob. The event
log lives in its own table, one row per event, so each commit appends
only the events produced since the previous one. Only metadata is read
on startup; full state is deserialized on demand.

``commit`` is the scheduler's storage collaborator and raises
``StorageUnavailable`` so the tick rolls back. The read helpers degrade
gracefully: failures are logged as warnings and reported as "not found".
"""

from __future__ import annotations

import json
import logging
import sqlite3
import zlib
from datetime import datetime, timezone
from typing import Any

import numpy as np

from worldsim.core.errors import StorageUnavailable
from worldsim.core.world import World

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def _json_fallback(obj: Any) -> Any:
    """Handle numpy scalars and enums that slip into state dicts."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if hasattr(obj, "value"):
        return obj.value
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def compress_state(state: dict[str, Any]) -> bytes:
    """Serialize state dict to zlib-compressed JSON bytes."""
    json_bytes = json.dumps(state, default=_json_fallback).encode("utf-8")
    return zlib.compress(json_bytes, level=6)


def decompress_state(blob: bytes) -> dict[str, Any]:
    """Decompress zlib blob and parse JSON."""
    return json.loads(zlib.decompress(blob).decode("utf-8"))


def restore_world(blob: bytes, events: list[dict[str, Any]]) -> World:
    """Rebuild a world from its state blob and its stored event log."""
    state = decompress_state(blob)
    state["events_offset"] = 0
    state["events"] = events
    world = World.from_dict(state)
    world.committed_events = len(world.events)
    return world


# ---------------------------------------------------------------------------
# SQLite WorldStore
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS worlds (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    current_hour INTEGER NOT NULL DEFAULT 0,
    paused INTEGER NOT NULL DEFAULT 0,
    population INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    config_json TEXT NOT NULL,
    state_blob BLOB
);
CREATE TABLE IF NOT EXISTS world_events (
    world_id TEXT NOT NULL,
    seq INTEGER NOT NULL,
    hour INTEGER NOT NULL,
    event_json TEXT NOT NULL,
    PRIMARY KEY (world_id, seq)
);
"""


class SqliteWorldStore:
    """SQLite-backed storage for worlds.

    Thread-safety: uses ``check_same_thread=False`` so FastAPI's
    thread pool can access it. Writes are serialized by SQLite's
    internal locking.
    """

    def __init__(self, db_path: str = "data/worldsim.db"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _init_db(self) -> None:
        """Open connection and create table if needed."""
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error:
            logger.warning(
                "Failed to open SQLite database at %s; worlds will not be persisted",
                self.db_path,
                exc_info=True,
            )
            self._conn = None

    @property
    def available(self) -> bool:
        """True if the database connection is open."""
        return self._conn is not None

    # ---- Write operations ----

    def commit(self, snapshot: dict[str, Any]) -> None:
        """
        Upsert a world record and append its new events.

        ``snapshot["events"]`` holds the events from ``events_offset`` on;
        stored events at or past that offset are replaced. The state blob
        itself never carries the event log.
        """
        if not self.available:
            raise StorageUnavailable(f"Database at {self.db_path} is not open")
        state = dict(snapshot)
        offset = state.pop("events_offset", 0)
        events = state.pop("events", [])
        world_id = state["world_id"]
        now = datetime.now(timezone.utc).isoformat()
        population = sum(1 for p in state.get("persons", []) if p.get("is_alive", True))
        config = state.get("config", {})
        try:
            with self._conn:  # type: ignore[union-attr]
                if offset:
                    stored = self._event_count(world_id)
                    if stored < offset:
                        raise StorageUnavailable(
                            f"World {world_id!r} commits events from {offset} "
                            f"but only {stored} are stored"
                        )
                self._conn.execute(  # type: ignore[union-attr]
                    "DELETE FROM world_events WHERE world_id = ? AND seq >= ?",
                    (world_id, offset),
                )
                self._conn.executemany(  # type: ignore[union-attr]
                    "INSERT INTO world_events (world_id, seq, hour, event_json) "
                    "VALUES (?, ?, ?, ?)",
                    [
                        (world_id, offset + i, e["hour"], json.dumps(e, default=_json_fallback))
                        for i, e in enumerate(events)
                    ],
                )
                self._conn.execute(  # type: ignore[union-attr]
                    """
                    INSERT INTO worlds
                        (id, name, current_hour, paused, population,
                         created_at, updated_at, config_json, state_blob)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        current_hour = excluded.current_hour,
                        paused = excluded.paused,
                        population = excluded.population,
                        updated_at = excluded.updated_at,
                        config_json = excluded.config_json,
                        state_blob = excluded.state_blob
                    """,
                    (
                        world_id,
                        config.get("world_name", world_id),
                        int(state.get("current_hour", 0)),
                        int(bool(state.get("paused", False))),
                        population,
                        now, now,
                        json.dumps(config, default=_json_fallback),
                        compress_state(state),
                    ),
                )
        except sqlite3.Error as exc:
            logger.warning("Failed to save world %s to database", world_id, exc_info=True)
            raise StorageUnavailable(f"Could not save world {world_id!r}") from exc

    def _event_count(self, world_id: str) -> int:
        row = self._conn.execute(  # type: ignore[union-attr]
            "SELECT MAX(seq) FROM world_events WHERE world_id = ?", (world_id,),
        ).fetchone()
        return 0 if row[0] is None else row[0] + 1

    def delete_world(self, world_id: str) -> None:
        """Remove a world and its events from the database."""
        if not self.available:
            return
        try:
            with self._conn:  # type: ignore[union-attr]
                self._conn.execute(  # type: ignore[union-attr]
                    "DELETE FROM world_events WHERE world_id = ?", (world_id,),
                )
                self._conn.execute(  # type: ignore[union-attr]
                    "DELETE FROM worlds WHERE id = ?", (world_id,),
                )
        except sqlite3.Error:
            logger.warning(
                "Failed to delete world %s from database", world_id,
                exc_info=True,
            )

    # ---- Read operations ----

    def list_worlds(self) -> list[dict[str, Any]]:
        """Return metadata for all persisted worlds (no state blob)."""
        if not self.available:
            return []
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                """
                SELECT id, name, current_hour, paused, population,
                       created_at, updated_at
                FROM worlds
                ORDER BY created_at DESC
                """,
            )
            return [
                {
                    "id": r[0],
                    "name": r[1],
                    "current_hour": r[2],
                    "paused": bool(r[3]),
                    "population": r[4],
                    "created_at": r[5],
                    "updated_at": r[6],
                }
                for r in cur.fetchall()
            ]
        except sqlite3.Error:
            logger.warning("Failed to list worlds from database", exc_info=True)
            return []

    def load_world(self, world_id: str) -> World | None:
        """Load and rebuild a world. Returns ``None`` if not found or on error."""
        if not self.available:
            return None
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                "SELECT state_blob FROM worlds WHERE id = ?", (world_id,),
            )
            row = cur.fetchone()
            if row is None or row[0] is None:
                return None
            events = [
                json.loads(r[0])
                for r in self._conn.execute(  # type: ignore[union-attr]
                    "SELECT event_json FROM world_events WHERE world_id = ? ORDER BY seq",
                    (world_id,),
                )
            ]
            return restore_world(row[0], events)
        except (sqlite3.Error, zlib.error, ValueError, KeyError):
            logger.warning(
                "Failed to load world %s from database", world_id,
                exc_info=True,
            )
            return None

    def has_world(self, world_id: str) -> bool:
        if not self.available:
            return False
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                "SELECT 1 FROM worlds WHERE id = ?", (world_id,),
            )
            return cur.fetchone() is not None
        except sqlite3.Error:
            logger.warning("Failed to look up world %s", world_id, exc_info=True)
            return False

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
