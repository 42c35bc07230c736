"""
FastAPI application factory for the world simulation API.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from worldsim.api.worlds import WorldManager
from worldsim.api.routers import control, queries
from worldsim.core.errors import (
    ConcurrencyConflict,
    StorageUnavailable,
    UnknownEntityError,
    ValidationError,
)

# Load .env from the project root first, then CWD
_project_root = Path(__file__).resolve().parents[3]  # src/worldsim/api/app.py -> project root
load_dotenv(_project_root / ".env")
load_dotenv(Path.cwd() / ".env")

# Most specific first: UnknownEntityError is a ValidationError
_ERROR_STATUS = (
    (UnknownEntityError, 404),
    (ValidationError, 400),
    (ConcurrencyConflict, 409),
    (StorageUnavailable, 503),
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="World Simulation API",
        description="REST API for the layered world simulation engine",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    db_path = os.environ.get("WORLDSIM_DB_PATH", "data/worldsim.db")
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    application.state.world_manager = WorldManager(db_path=db_path)

    for exc_type, status in _ERROR_STATUS:
        application.add_exception_handler(exc_type, _error_handler(status))

    application.include_router(control.router, prefix="/api/worlds", tags=["control"])
    application.include_router(queries.router, prefix="/api/worlds", tags=["queries"])

    @application.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return application


def _error_handler(status: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status, content={"detail": str(exc)})
    return handler


app = create_app()
