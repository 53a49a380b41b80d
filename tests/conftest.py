"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit tests:
settings, schemas and sample inputs.
"""

from typing import Any, Literal, Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field

from extraction_layer.config import Settings


class Person(BaseModel):
    """Small model exercising types, bounds, enums and extra keys."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0, le=150)
    role: Literal["admin", "editor", "viewer"] = "viewer"
    tags: list[str] = Field(default_factory=list, max_length=5)
    nickname: Optional[str] = None


PERSON_JSON_SCHEMA: dict[str, Any] = {
    "title": "Person",
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "age": {"type": "integer", "minimum": 0, "maximum": 150},
        "role": {"enum": ["admin", "editor", "viewer"]},
        "email": {"type": "string", "format": "email"},
    },
    "required": ["name", "age"],
    "additionalProperties": False,
}


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests with ``model_copy``:
        def test_something(test_settings):
            custom = test_settings.model_copy(update={"DEFAULT_RETRIES": 0})
    """
    return Settings(
        # === Application ===
        APP_NAME="LLM Extraction Layer (Test)",
        APP_VERSION="0.1.0",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Run Defaults ===
        DEFAULT_RETRIES=2,
        MAX_RETRIES_LIMIT=10,
        DEFAULT_MODEL="test-model",
        DEFAULT_TEMPERATURE=0.4,
        DEFAULT_MAX_TOKENS=512,
        PERSISTENT_FAILURE_THRESHOLD=3,

        # === Sessions ===
        SESSION_BACKEND="memory",
        SESSION_STORAGE_DIR="/tmp/extraction-layer-test-sessions",

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,
    )


@pytest.fixture
def person_model() -> type[Person]:
    return Person


@pytest.fixture
def person_json_schema() -> dict[str, Any]:
    return dict(PERSON_JSON_SCHEMA)


@pytest.fixture
def valid_person() -> dict[str, Any]:
    return {"name": "Ada", "age": 36, "role": "admin", "tags": ["math"]}
