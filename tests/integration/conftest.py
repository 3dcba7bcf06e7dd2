"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Integration tests are skipped if required services are not running.
"""

import httpx
import pytest
import pytest_asyncio
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from inference_gateway.llm.ollama_client import OllamaClient

OLLAMA_URL = "http://localhost:11434"
REDIS_TEST_URL = "redis://localhost:6379/15"


@pytest.fixture(scope="session")
def check_ollama():
    """Check if Ollama is available at localhost:11434.

    Skips tests if Ollama is not reachable.
    """
    try:
        response = httpx.get(f"{OLLAMA_URL}/api/tags", timeout=5)
        if response.status_code != 200:
            pytest.skip("Ollama not available (non-200 status)")
    except httpx.HTTPError as e:
        pytest.skip(f"Ollama not available: {e}")


@pytest.fixture(scope="session")
def check_redis():
    """Check if Redis is available at localhost:6379.

    Skips tests if Redis is not reachable.
    """
    try:
        client = Redis.from_url(REDIS_TEST_URL)
        client.ping()
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")


@pytest_asyncio.fixture
async def real_ollama_client(check_ollama):
    """Real OllamaClient instance for integration tests.

    Requires Ollama to be running (checked by check_ollama fixture).
    """
    client = OllamaClient(base_url=OLLAMA_URL, timeout=60)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def real_async_redis_client(check_redis):
    """Real AsyncRedis client instance for integration tests (async).

    Uses database 15 (test database), flushed before and after each test.
    """
    client = AsyncRedis.from_url(REDIS_TEST_URL, decode_responses=True)

    await client.flushdb()

    yield client

    await client.flushdb()
    await client.aclose()


@pytest.fixture
def integration_settings(test_settings):
    """Settings for integration tests with real services.

    Points to localhost services on standard ports.
    """
    test_settings.OLLAMA_BASE_URL = OLLAMA_URL
    test_settings.REDIS_URL = REDIS_TEST_URL  # Test database
    test_settings.TELEMETRY_STORE = "redis"

    return test_settings
