"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Integration tests are skipped if required services are not running.
"""

import httpx
import pytest
from redis import Redis

OLLAMA_URL = "http://localhost:11434"
REDIS_URL = "redis://localhost:6379/15"
OLLAMA_MODEL = "qwen2.5:7b"


@pytest.fixture(scope="session")
def check_ollama():
    """Check if Ollama is available at localhost:11434 with the test model pulled.

    Skips tests if Ollama is not reachable.
    """
    try:
        response = httpx.get(f"{OLLAMA_URL}/api/tags", timeout=5)
    except Exception as e:
        pytest.skip(f"Ollama not available: {e}")
    if response.status_code != 200:
        pytest.skip("Ollama not available (non-200 status)")
    models = {model.get("name") for model in response.json().get("models", [])}
    if OLLAMA_MODEL not in models:
        pytest.skip(f"Ollama model {OLLAMA_MODEL} not pulled")


@pytest.fixture(scope="session")
def check_redis():
    """Check if Redis is available at localhost:6379.

    Skips tests if Redis is not reachable. Uses database 15 and flushes it
    before the session starts.
    """
    try:
        client = Redis.from_url(REDIS_URL)
        client.ping()
        client.flushdb()
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")
