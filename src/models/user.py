"""
User-related Pydantic models and field validation
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from utils.exceptions import SchemaValidationError

NAME_MIN_LENGTH = 2
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
DEFAULT_CITY = "Portmore"
# Upper bound of the INTEGER age column
AGE_MAX = 2147483647

REQUIRED_MESSAGES = {
    "name": "Name is required",
    "email": "Email is required",
}


def _required(field_name: str) -> PydanticCustomError:
    return PydanticCustomError("required", REQUIRED_MESSAGES[field_name])


class UserChanges(BaseModel):
    """
    Partial user payload - only fields present in the input are validated

    Explicit null on name/email is a "required" violation; null age clears
    the value and null city falls back to the default city.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[StrictInt] = None
    city: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise _required("name")
        value = value.strip()
        if len(value) < NAME_MIN_LENGTH:
            raise PydanticCustomError(
                "minlength", "Name must be at least {min_length} characters",
                {"min_length": NAME_MIN_LENGTH}
            )
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise _required("email")
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise PydanticCustomError("regexp", "Please use a valid email address")
        return value

    @field_validator("age")
    @classmethod
    def check_age(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise PydanticCustomError("min", "Age must be >= 0")
        if value is not None and value > AGE_MAX:
            raise PydanticCustomError(
                "max", "Age must be <= {max_age}", {"max_age": AGE_MAX}
            )
        return value

    @field_validator("city")
    @classmethod
    def check_city(cls, value: Optional[str]) -> str:
        if value is None:
            return DEFAULT_CITY
        return value.strip()


class UserCreate(UserChanges):
    """Full user payload for creation - name and email must be present"""

    name: Optional[str] = Field(default=None, validate_default=True)
    email: Optional[str] = Field(default=None, validate_default=True)
    city: Optional[str] = Field(default=DEFAULT_CITY, validate_default=True)


class UserRecord(BaseModel):
    """Persisted user as returned to clients"""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    name: str
    email: str
    age: Optional[int] = None
    city: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_row(cls, row) -> "UserRecord":
        """Build a record from a users table row (asyncpg Record or dict)"""
        return cls(**dict(row))


def _collect_details(exc: ValidationError) -> Dict[str, Dict[str, Any]]:
    """Flatten pydantic errors into one entry per offending field"""
    details: Dict[str, Dict[str, Any]] = {}
    for error in exc.errors():
        location = error.get("loc") or ("body",)
        path = str(location[0])
        if path in details:
            continue
        details[path] = {
            "message": REQUIRED_MESSAGES.get(path, error["msg"])
            if error["type"] == "missing" else error["msg"],
            "kind": error["type"],
            "path": path,
            "value": error.get("input"),
        }
    return details


def _ensure_mapping(fields: Any) -> Dict[str, Any]:
    if not isinstance(fields, dict):
        raise SchemaValidationError({
            "body": {
                "message": "Request body must be a JSON object",
                "kind": "type",
                "path": "body",
                "value": None,
            }
        })
    return fields


def validate_new_user(fields: Any) -> UserCreate:
    """
    Validate a creation payload

    Args:
        fields: Raw request body

    Returns:
        UserCreate with trimmed/lowercased values and defaults applied

    Raises:
        SchemaValidationError: with a detail entry for every invalid field
    """
    try:
        return UserCreate.model_validate(_ensure_mapping(fields))
    except ValidationError as e:
        raise SchemaValidationError(_collect_details(e))


def validate_user_changes(fields: Any) -> Dict[str, Any]:
    """
    Validate a partial update payload

    Returns only the fields that were present in the payload, normalized.
    """
    try:
        changes = UserChanges.model_validate(_ensure_mapping(fields))
    except ValidationError as e:
        raise SchemaValidationError(_collect_details(e))
    return changes.model_dump(include=changes.model_fields_set)
