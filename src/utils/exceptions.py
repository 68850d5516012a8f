"""
Failure kinds raised by the users service layer

Every failure carries the HTTP status and response body it maps to, so the
error handlers in utils.error_handling stay a thin translation layer.
"""

from typing import Any, Dict, Optional

DATABASE_UNAVAILABLE_MESSAGE = "Database unavailable. Please try again shortly."


class UserServiceError(Exception):
    """Unclassified failure - always reported as a generic 500"""

    status_code = 500
    public_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    def to_response(self) -> Dict[str, Any]:
        """Body returned to the client (never includes internal error text)"""
        return {"message": self.public_message}


class SchemaValidationError(UserServiceError):
    """One or more fields violate the user schema"""

    status_code = 400
    public_message = "Validation error"

    def __init__(self, details: Dict[str, Dict[str, Any]]):
        self.details = details
        fields = ", ".join(sorted(details)) or "request body"
        super().__init__(f"Validation failed for: {fields}")

    def to_response(self) -> Dict[str, Any]:
        return {"message": self.public_message, "details": self.details}


class InvalidIdentifierError(UserServiceError):
    """Identifier is not well-formed for the store"""

    status_code = 400
    public_message = "Invalid ID format"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid user id: {value!r}")


class RecordNotFoundError(UserServiceError):
    status_code = 404
    public_message = "User not found"

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"No user with id {record_id}")


class DuplicateKeyError(UserServiceError):
    """Unique index rejected the write"""

    status_code = 409
    public_message = "Duplicate key"

    def __init__(self, key_value: Dict[str, Any]):
        self.key_value = key_value
        super().__init__(f"Duplicate key: {key_value}")

    def to_response(self) -> Dict[str, Any]:
        return {"message": self.public_message, "keyValue": self.key_value}


class DatabaseUnavailableError(UserServiceError):
    """Store connection is not established or was lost mid-request"""

    status_code = 503
    public_message = DATABASE_UNAVAILABLE_MESSAGE
