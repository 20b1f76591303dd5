"""
Pytest configuration and fixtures for the test suite.
"""
import pytest
import pytest_asyncio
import os
import sys
import httpx

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bearer_refresh import InMemoryCredentialStore, WithTokenOptions, with_token
from tests.fixtures.token_server import BASE_URL, REFRESH_PATH, FakeTokenServer


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture
def server():
    """Fake API that accepts only 'abc2' and refreshes to abc2/r2."""
    return FakeTokenServer()


@pytest.fixture
def store():
    """Store holding an expired access credential and a valid refresh credential."""
    return InMemoryCredentialStore("abc", "r1")


@pytest_asyncio.fixture
async def make_client(server):
    """Factory building augmented clients against the fake server; closes them afterwards."""
    clients = []

    def _make(credential_store, **option_overrides):
        client = httpx.AsyncClient(
            base_url=option_overrides.pop("base_url", BASE_URL),
            transport=httpx.MockTransport(server.handler),
        )
        options = WithTokenOptions.from_store(
            credential_store,
            option_overrides.pop("refresh_endpoint", REFRESH_PATH),
            **option_overrides,
        )
        clients.append(client)
        return with_token(client, options)

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove BEARER_REFRESH_* variables for the duration of a test."""
    for key in list(os.environ):
        if key.startswith("BEARER_REFRESH_"):
            monkeypatch.delenv(key)
    return monkeypatch
