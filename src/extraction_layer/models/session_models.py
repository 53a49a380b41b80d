"""
Session store data models.

A ``SessionRecord`` is the durable side of a logical conversation. Its
``provider_data`` may hold the provider-native session handle under
``PROVIDER_SESSION_ID_KEY``; the session coordinator uses it to translate
between the two identity spaces.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from extraction_layer.models.timestamps import to_iso, utc_now

PROVIDER_SESSION_ID_KEY = "provider_session_id"


class SessionMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: Optional[str] = None
    model: Optional[str] = None
    prompt_count: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    success_feedback_count: int = Field(default=0, ge=0)
    last_activity: datetime = Field(default_factory=utc_now)
    tags: list[str] = Field(default_factory=list)
    active: bool = True

    @field_serializer("last_activity")
    def _serialize_last_activity(self, value: datetime) -> str:
        return to_iso(value)


class SessionRecord(BaseModel):
    """
    Durable session record.

    Serializes to JSON with ISO-8601 timestamps at millisecond precision.
    The ``id`` never changes once the record has been created.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    context: Optional[str] = None
    provider_data: dict[str, Any] = Field(default_factory=dict)
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamps(self, value: datetime) -> str:
        return to_iso(value)

    @property
    def provider_session_id(self) -> Optional[str]:
        return self.provider_data.get(PROVIDER_SESSION_ID_KEY)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, payload: str | bytes) -> "SessionRecord":
        return cls.model_validate_json(payload)


class SessionFilter(BaseModel):
    """Criteria for ``SessionStore.list_sessions``."""
    model_config = ConfigDict(frozen=True)

    provider: Optional[str] = None
    model: Optional[str] = None
    active: Optional[bool] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    tags: Optional[list[str]] = Field(default=None, description="Match records carrying any of these tags")
    limit: Optional[int] = Field(default=None, ge=1)
    sort_by: Literal["created_at", "updated_at", "last_activity"] = "updated_at"
    sort_order: Literal["asc", "desc"] = "desc"


class SessionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    active: int = 0
    oldest: Optional[datetime] = None
    newest: Optional[datetime] = None
