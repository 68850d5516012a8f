"""
UsersService SQL generation and asyncpg error translation
"""

from uuid import uuid4

import asyncpg
import pytest

from infrastructure import StubConnection, StubDatabase, unique_violation, user_row
from services.users_service import UsersService, parse_user_id
from utils.exceptions import (
    DuplicateKeyError,
    InvalidIdentifierError,
    RecordNotFoundError,
    SchemaValidationError,
    UserServiceError,
)


class TestParseUserId:

    def test_accepts_uuid_string(self):
        value = uuid4()
        assert parse_user_id(str(value)) == value

    @pytest.mark.parametrize("value", ["", "abc", "12345", "64f1c2a9e4b0a1b2c3d4e5f6"])
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidIdentifierError):
            parse_user_id(value)


class TestFindAll:

    @pytest.mark.asyncio
    async def test_returns_records_in_store_order(self):
        rows = [user_row(email="b@example.com"), user_row(email="a@example.com")]
        connection = StubConnection(rows)

        users = await UsersService(StubDatabase(connection)).find_all()

        assert [user.email for user in users] == ["b@example.com", "a@example.com"]
        method, query, _ = connection.calls[0]
        assert method == "fetch"
        assert "ORDER BY" not in query


class TestCreate:

    @pytest.mark.asyncio
    async def test_inserts_normalized_values(self):
        connection = StubConnection(user_row(name="Ada", email="ada@example.com", age=None))

        record = await UsersService(StubDatabase(connection)).create({"name": " Ada ", "email": "ADA@example.com"})

        assert record.email == "ada@example.com"
        _, query, args = connection.calls[0]
        assert query.startswith("INSERT INTO users")
        assert args == ("Ada", "ada@example.com", None, "Portmore")

    @pytest.mark.asyncio
    async def test_invalid_payload_never_reaches_database(self):
        connection = StubConnection()

        with pytest.raises(SchemaValidationError):
            await UsersService(StubDatabase(connection)).create({"name": "A"})

        assert connection.calls == []

    @pytest.mark.asyncio
    async def test_unique_violation_reports_key_value_from_detail(self):
        connection = StubConnection(unique_violation("Key (email)=(ada@example.com) already exists."))

        with pytest.raises(DuplicateKeyError) as exc_info:
            await UsersService(StubDatabase(connection)).create({"name": "Ada", "email": "ada@example.com"})

        assert exc_info.value.key_value == {"email": "ada@example.com"}

    @pytest.mark.asyncio
    async def test_unique_violation_without_detail_uses_attempted_email(self):
        connection = StubConnection(unique_violation())

        with pytest.raises(DuplicateKeyError) as exc_info:
            await UsersService(StubDatabase(connection)).create({"name": "Ada", "email": "ADA@example.com"})

        assert exc_info.value.key_value == {"email": "ada@example.com"}

    @pytest.mark.asyncio
    async def test_other_database_errors_are_unclassified(self):
        connection = StubConnection(asyncpg.exceptions.UndefinedTableError('relation "users" does not exist'))

        with pytest.raises(UserServiceError) as exc_info:
            await UsersService(StubDatabase(connection)).create({"name": "Ada", "email": "ada@example.com"})

        assert type(exc_info.value) is UserServiceError


class TestUpdateById:

    @pytest.mark.asyncio
    async def test_sets_only_present_fields_and_refreshes_timestamp(self):
        user_id = uuid4()
        connection = StubConnection(user_row(id=user_id, city="Kingston", age=40))

        record = await UsersService(StubDatabase(connection)).update_by_id(str(user_id), {"age": 40, "city": " Kingston "})

        assert record.city == "Kingston"
        _, query, args = connection.calls[0]
        assert "age = $1" in query
        assert "city = $2" in query
        assert "name =" not in query and "email =" not in query
        assert "updated_at = now()" in query
        assert "WHERE id = $3" in query
        assert args == (40, "Kingston", user_id)

    @pytest.mark.asyncio
    async def test_empty_payload_only_touches_timestamp(self):
        user_id = uuid4()
        connection = StubConnection(user_row(id=user_id))

        await UsersService(StubDatabase(connection)).update_by_id(str(user_id), {})

        _, query, args = connection.calls[0]
        assert "SET updated_at = now() WHERE id = $1" in query
        assert args == (user_id,)

    @pytest.mark.asyncio
    async def test_missing_row_is_not_found(self):
        connection = StubConnection(None)

        with pytest.raises(RecordNotFoundError):
            await UsersService(StubDatabase(connection)).update_by_id(str(uuid4()), {"city": "Kingston"})

    @pytest.mark.asyncio
    async def test_malformed_id_is_rejected_before_validation(self):
        connection = StubConnection()

        with pytest.raises(InvalidIdentifierError):
            await UsersService(StubDatabase(connection)).update_by_id("nope", {"age": -1})

        assert connection.calls == []

    @pytest.mark.asyncio
    async def test_email_conflict(self):
        connection = StubConnection(unique_violation("Key (email)=(bob@example.com) already exists."))

        with pytest.raises(DuplicateKeyError) as exc_info:
            await UsersService(StubDatabase(connection)).update_by_id(str(uuid4()), {"email": "Bob@example.com"})

        assert exc_info.value.key_value == {"email": "bob@example.com"}


class TestDeleteById:

    @pytest.mark.asyncio
    async def test_returns_deleted_id(self):
        user_id = uuid4()
        connection = StubConnection(user_id)

        assert await UsersService(StubDatabase(connection)).delete_by_id(str(user_id)) == user_id
        _, query, args = connection.calls[0]
        assert query.startswith("DELETE FROM users")
        assert args == (user_id,)

    @pytest.mark.asyncio
    async def test_missing_row_is_not_found(self):
        connection = StubConnection(None)

        with pytest.raises(RecordNotFoundError):
            await UsersService(StubDatabase(connection)).delete_by_id(str(uuid4()))

    @pytest.mark.asyncio
    async def test_malformed_id(self):
        with pytest.raises(InvalidIdentifierError):
            await UsersService(StubDatabase(StubConnection())).delete_by_id("not-an-id")
