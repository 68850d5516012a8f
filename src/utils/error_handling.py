"""
Centralized Error Handling and Logging System
Maps every failure raised below the route handlers onto one HTTP response shape.
"""

import json
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from contextvars import ContextVar

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from utils.exceptions import SchemaValidationError, UserServiceError

# Context variable for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

logger = logging.getLogger(__name__)

class ErrorHandlingConfig:
    """Centralized configuration for error handling behavior"""

    SANITIZE_SENSITIVE_FIELDS = True
    SENSITIVE_FIELD_PATTERNS = [
        'password', 'token', 'secret', 'authorization', 'credential', 'api_key'
    ]
    MAX_VALUE_LOG_SIZE = 2000

    INCLUDE_TRACE_ID = True

    @classmethod
    def is_sensitive_field(cls, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(pattern in field_lower for pattern in cls.SENSITIVE_FIELD_PATTERNS)

    @classmethod
    def sanitize_data(cls, data: Union[Dict, str, Any]) -> Any:
        """Recursively redact sensitive keys and truncate long strings"""
        if not cls.SANITIZE_SENSITIVE_FIELDS:
            return data

        if isinstance(data, dict):
            return {
                key: "***REDACTED***" if cls.is_sensitive_field(str(key)) else cls.sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [cls.sanitize_data(item) for item in data]
        elif isinstance(data, str) and len(data) > cls.MAX_VALUE_LOG_SIZE:
            return data[:cls.MAX_VALUE_LOG_SIZE] + "...[TRUNCATED]"
        else:
            return data

class StructuredLogger:
    """Structured logging with consistent format and context"""

    @staticmethod
    def log_error(
        error_type: str,
        message: str,
        request: Optional[Request] = None,
        exception: Optional[BaseException] = None,
        include_traceback: bool = True
    ) -> str:
        """Log structured error with full context, returning its trace ID"""

        trace_id = request_id_var.get('') or str(uuid.uuid4())[:8]

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "trace_id": trace_id,
            "error_type": error_type,
            "message": message,
            "level": "ERROR"
        }

        if request:
            log_entry["request"] = {
                "method": request.method,
                "path": request.url.path,
                "query_params": ErrorHandlingConfig.sanitize_data(dict(request.query_params)),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent", "unknown")
            }

        if exception:
            log_entry["exception"] = {
                "type": type(exception).__name__,
                "details": str(exception),
                "module": getattr(exception, '__module__', 'unknown')
            }

            if include_traceback:
                log_entry["exception"]["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )

        logger.error(json.dumps(log_entry, indent=2, default=str))

        return trace_id

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a trace ID to every request and echoes it in X-Trace-ID"""

    async def dispatch(self, request: Request, call_next):
        trace_id = str(uuid.uuid4())[:8]
        request_id_var.set(trace_id)
        request.state.trace_id = trace_id

        try:
            response = await call_next(request)
        except Exception as e:
            response = await general_exception_handler(request, e)

        response.headers["X-Trace-ID"] = trace_id
        return response

def _server_error_body(trace_id: Optional[str]) -> Dict[str, Any]:
    body = {"message": UserServiceError.public_message}
    if ErrorHandlingConfig.INCLUDE_TRACE_ID and trace_id:
        body["trace_id"] = trace_id
    return body

# Global Exception Handlers
async def user_service_exception_handler(request: Request, exc: UserServiceError) -> JSONResponse:
    """Handle the closed set of service failures"""

    if exc.status_code >= 500 and exc.status_code != 503:
        trace_id = StructuredLogger.log_error(
            "internal_server_error",
            f"Service failure: {str(exc)}",
            request=request,
            exception=exc
        )
        return JSONResponse(status_code=exc.status_code, content=_server_error_body(trace_id))

    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unparseable request bodies as schema validation failures (HTTP 400)"""

    details = {}
    for error in exc.errors():
        location = [str(loc) for loc in error.get("loc", []) if loc != "body"]
        path = location[0] if location else "body"
        if path in details:
            continue
        details[path] = {
            "message": error.get("msg", "Unknown validation error"),
            "kind": error.get("type", "unknown"),
            "path": path,
            "value": None
        }

    failure = SchemaValidationError(details)
    logger.warning(f"{request.method} {request.url.path} -> 400: {failure}")
    return JSONResponse(status_code=failure.status_code, content=failure.to_response())

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle routing-level HTTP errors (unknown path, wrong method)"""

    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None)
    )

async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions without exposing internal details"""

    trace_id = StructuredLogger.log_error(
        "internal_server_error",
        f"Unhandled exception: {str(exc)}",
        request=request,
        exception=exc
    )
    return JSONResponse(status_code=500, content=_server_error_body(trace_id))

def setup_error_handling(app):
    """Setup centralized error handling for FastAPI app"""

    app.add_middleware(RequestContextMiddleware)

    # Most specific first
    app.add_exception_handler(UserServiceError, user_service_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Centralized error handling system initialized")
