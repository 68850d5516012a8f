"""
Availability middleware for blocking API requests while the database is down
"""

import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from utils.exceptions import DATABASE_UNAVAILABLE_MESSAGE

logger = logging.getLogger(__name__)

class AvailabilityMiddleware(BaseHTTPMiddleware):
    """
    Middleware that answers 503 for every /api request while the
    database client attached to app.state is not connected

    Health checks and documentation are never gated.
    """

    GATED_PREFIX = "/api"

    async def dispatch(self, request: Request, call_next):
        if self._is_gated(request.url.path):
            database = request.app.state.database
            if not database.is_connected:
                logger.warning(
                    f"BLOCKED REQUEST while database {database.state.value}: "
                    f"{request.method} {request.url.path}"
                )
                return JSONResponse(
                    status_code=503,
                    content={"message": DATABASE_UNAVAILABLE_MESSAGE}
                )

        return await call_next(request)

    def _is_gated(self, path: str) -> bool:
        """Check if a path belongs to the gated API namespace"""
        return path == self.GATED_PREFIX or path.startswith(self.GATED_PREFIX + "/")
