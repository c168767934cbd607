from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class SOAPFields(BaseModel):
    """The five sections the model must return for a study."""

    scripture: str = Field(min_length=1)
    reference: str = Field(min_length=1)
    observation: str = Field(min_length=1)
    application: str = Field(min_length=1)
    prayer: str = Field(min_length=1)

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class StudyArtifact(SOAPFields):
    """A generated SOAP study as stored and returned to clients.

    ``id`` and ``created_at`` are assigned here, never by the model. ``ttl``
    is filled in by the study store at save time.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    user_id: Optional[str] = Field(default=None, alias="userId")
    ttl: Optional[int] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @classmethod
    def from_fields(cls, fields: SOAPFields) -> "StudyArtifact":
        return cls(**fields.model_dump())

    @field_serializer("created_at")
    def _serialize_created_at(self, v: datetime) -> str:
        return v.isoformat()


class UserNote(BaseModel):
    """A journal note; written by the journal endpoints, read for context."""

    id: Optional[str] = None
    user_id: str = Field(alias="userId")
    study_id: str = Field(alias="studyId")
    content: str
    timestamp: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class SearchHit(BaseModel):
    content: str
    score: Optional[float] = None


class ScriptureReference(BaseModel):
    book: str
    chapter: int
    verses: List[int] = []
