"""
Users Backend API Server
Core functionality: CRUD over users, database availability gating, health reporting
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.connection import DatabaseClient
from services.users_service import UsersService
from middleware.availability_middleware import AvailabilityMiddleware
from api.routes import health, users
from utils.error_handling import setup_error_handling

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start connecting in the background so the server answers immediately"""
    app.state.database.start()
    yield
    await app.state.database.close()

def create_app(
    database: DatabaseClient,
    users_service: Optional[UsersService] = None,
    allowed_origins: Optional[List[str]] = None
) -> FastAPI:
    """
    Build the FastAPI application around an explicit database client

    Args:
        database: Client whose connection state gates /api requests
        users_service: Service used by the user routes (built from database if omitted)
        allowed_origins: CORS origins (CORS disabled when empty)
    """
    app = FastAPI(
        title="Users Backend",
        description="CRUD API for user records backed by PostgreSQL",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.database = database
    app.state.users_service = users_service or UsersService(database)

    # Last added runs first: CORS -> request context -> availability gate
    app.add_middleware(AvailabilityMiddleware)
    setup_error_handling(app)

    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(health.router, tags=["Health"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])

    return app
