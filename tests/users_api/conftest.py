"""
pytest configuration and fixtures for the users API suite
"""

import httpx
import pytest
import pytest_asyncio

from app import create_app
from infrastructure import FakeDatabase, InMemoryUsersService


@pytest.fixture
def database():
    return FakeDatabase(connected=True)


@pytest.fixture
def users_service():
    return InMemoryUsersService()


@pytest.fixture
def app(database, users_service):
    return create_app(database, users_service=users_service)


@pytest_asyncio.fixture
async def api_client(app):
    """HTTP client bound to the ASGI app (lifespan is not run)"""
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def valid_user():
    return {"name": "Ada Lovelace", "email": "ada@example.com", "age": 36}
