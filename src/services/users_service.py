"""
Users service - business logic for user management
"""

import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List
from uuid import UUID

import asyncpg

from database.connection import CONNECTION_LOST_ERRORS, DatabaseClient
from models.user import UserRecord, validate_new_user, validate_user_changes
from utils.exceptions import (
    DuplicateKeyError,
    InvalidIdentifierError,
    RecordNotFoundError,
    UserServiceError,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, name, email, age, city, created_at, updated_at"
UPDATABLE_FIELDS = ("name", "email", "age", "city")

# e.g. 'Key (email)=(ada@example.com) already exists.'
DUPLICATE_KEY_DETAIL = re.compile(r"Key \((?P<key>[^)]+)\)=\((?P<value>.*)\) already exists")


def parse_user_id(value: Any) -> UUID:
    """Parse a path identifier, raising InvalidIdentifierError if malformed"""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidIdentifierError(value)


def _duplicate_key_value(error: asyncpg.UniqueViolationError, attempted: Dict[str, Any]) -> Dict[str, Any]:
    match = DUPLICATE_KEY_DETAIL.search(getattr(error, "detail", None) or "")
    if match:
        return {match.group("key"): match.group("value")}
    return attempted


@contextmanager
def translate_store_errors(operation: str, attempted: Dict[str, Any]) -> Iterator[None]:
    """
    Map asyncpg failures raised inside the block onto service failures

    Lost-connection errors pass through untouched so DatabaseClient.acquire()
    can flag the outage.
    """
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        logger.warning(f"Unique constraint violation during {operation}: {e}")
        raise DuplicateKeyError(_duplicate_key_value(e, attempted)) from e
    except CONNECTION_LOST_ERRORS:
        raise
    except asyncpg.PostgresError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise UserServiceError(f"Database {operation} failed: {e}") from e


class UsersService:
    """CRUD operations over the users table"""

    def __init__(self, database: DatabaseClient):
        self.database = database

    async def find_all(self) -> List[UserRecord]:
        """Return every user in store order (no filtering or pagination)"""
        query = f"SELECT {USER_COLUMNS} FROM users"
        async with self.database.acquire() as conn:
            with translate_store_errors("SELECT", {}):
                rows = await conn.fetch(query)
        return [UserRecord.from_row(row) for row in rows]

    async def create(self, fields: Dict[str, Any]) -> UserRecord:
        """
        Validate and insert a new user

        Args:
            fields: Raw request body (name, email, age?, city?)

        Returns:
            The created record with its generated id and timestamps

        Raises:
            SchemaValidationError: payload violates the user schema
            DuplicateKeyError: email already registered
        """
        user = validate_new_user(fields)
        query = (
            "INSERT INTO users (name, email, age, city) VALUES ($1, $2, $3, $4) "
            f"RETURNING {USER_COLUMNS}"
        )

        logger.info(f"Creating new user: {user.email}")
        async with self.database.acquire() as conn:
            with translate_store_errors("INSERT", {"email": user.email}):
                row = await conn.fetchrow(query, user.name, user.email, user.age, user.city)

        if not row:
            raise UserServiceError("Insert operation failed - no data returned")
        return UserRecord.from_row(row)

    async def update_by_id(self, record_id: Any, fields: Dict[str, Any]) -> UserRecord:
        """
        Apply a partial update to one user

        Only the fields present in the payload are validated and written;
        updated_at is always refreshed.

        Raises:
            InvalidIdentifierError: record_id is not a UUID
            SchemaValidationError: a present field is invalid
            RecordNotFoundError: no user has that id
            DuplicateKeyError: the new email belongs to another user
        """
        user_id = parse_user_id(record_id)
        changes = validate_user_changes(fields)

        params: List[Any] = []
        assignments = []
        for field_name in UPDATABLE_FIELDS:
            if field_name in changes:
                params.append(changes[field_name])
                assignments.append(f"{field_name} = ${len(params)}")
        assignments.append("updated_at = now()")
        params.append(user_id)

        query = (
            f"UPDATE users SET {', '.join(assignments)} "
            f"WHERE id = ${len(params)} RETURNING {USER_COLUMNS}"
        )

        logger.info(f"Updating user {user_id}: {sorted(changes)}")
        async with self.database.acquire() as conn:
            with translate_store_errors("UPDATE", {k: v for k, v in changes.items() if k == "email"}):
                row = await conn.fetchrow(query, *params)

        if not row:
            raise RecordNotFoundError(user_id)
        return UserRecord.from_row(row)

    async def delete_by_id(self, record_id: Any) -> UUID:
        """
        Hard-delete one user

        Returns:
            The id of the deleted user
        """
        user_id = parse_user_id(record_id)

        logger.info(f"Deleting user {user_id}")
        async with self.database.acquire() as conn:
            with translate_store_errors("DELETE", {}):
                deleted_id = await conn.fetchval("DELETE FROM users WHERE id = $1 RETURNING id", user_id)

        if deleted_id is None:
            raise RecordNotFoundError(user_id)
        return deleted_id
