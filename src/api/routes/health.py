"""
Health check API route
"""

from fastapi import APIRouter, Request

from database.connection import ConnectionState

router = APIRouter()

@router.get("/health")
async def health_check(request: Request):
    """
    Health check - always 200, outside the availability gate

    Reports process liveness and whether the database pool is connected.
    """
    database = request.app.state.database
    return {
        "server": "ok",
        "database": ConnectionState.CONNECTED.value if database.is_connected
        else ConnectionState.DISCONNECTED.value,
    }
